"""Cooperative cancellation for resolution calls.

A caller may abandon a resolution by cancelling the :class:`CancellationToken`
it passed in.  The resolver checks the token between stages and the dataset
cache checks it between download chunks, so a partially written archive is
discarded instead of replacing a valid one.
"""

from __future__ import annotations

import threading

from .errors import ResolutionCancelled


class CancellationToken:
    """Thread-safe cancellation token for cooperative task cancellation.

    Examples:
        >>> token = CancellationToken()
        >>> token.is_cancelled()
        False
        >>> token.cancel()
        >>> token.is_cancelled()
        True
    """

    def __init__(self) -> None:
        self._is_cancelled = threading.Event()

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        self._is_cancelled.set()

    def is_cancelled(self) -> bool:
        return self._is_cancelled.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        """Raise :class:`ResolutionCancelled` when cancellation was requested."""
        if self._is_cancelled.is_set():
            raise ResolutionCancelled(f"resolution cancelled during {stage}")
