"""Publication status model for resolved catalog documents."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidStageError

__all__ = [
    "STAGES",
    "DRAFT_STAGES",
    "FINAL_STAGES",
    "DocumentStatus",
    "iteration_from_marker",
    "is_draft_marker",
]

STAGES = (
    "draft-internal",
    "draft-wip",
    "draft-prelim",
    "draft-public",
    "draft-retire",
    "draft-withdrawn",
    "final",
    "final-review",
    "final-withdrawn",
)

DRAFT_STAGES = frozenset(stage for stage in STAGES if stage.startswith("draft-"))
FINAL_STAGES = frozenset(stage for stage in STAGES if stage.startswith("final"))

# Statuses rendered by the live search table.
_SEARCH_STATUS_TO_STAGE = {
    "final": "final",
    "draft": "draft-public",
    "retired draft": "draft-retire",
    "withdrawn": "final-withdrawn",
}

_ACTIVE_STAGES = frozenset({"draft-public", "draft-prelim", "final"})

_ITERATION_MARKER = re.compile(r"^(?P<iteration>I|F|\d+)?PD$")


def is_draft_marker(marker: Optional[str]) -> bool:
    """Return ``True`` when a citation stage marker asks for a draft."""

    return bool(marker) and "PD" in marker


def iteration_from_marker(marker: Optional[str]) -> Optional[str]:
    """Translate ``IPD``/``FPD``/``2PD`` style markers into an iteration.

    Examples:
        >>> iteration_from_marker("IPD")
        '1'
        >>> iteration_from_marker("FPD")
        'final'
        >>> iteration_from_marker("PD") is None
        True
    """

    if not marker:
        return None
    match = _ITERATION_MARKER.match(marker.strip().upper())
    if not match or not match.group("iteration"):
        return None
    value = match.group("iteration")
    if value == "I":
        return "1"
    if value == "F":
        return "final"
    return str(int(value))


@dataclass(frozen=True, slots=True)
class DocumentStatus:
    """Publication stage of a document plus optional substage and iteration.

    Attributes:
        stage: One of :data:`STAGES`.
        substage: Free-form qualifier such as ``"active"``.
        iteration: Draft revision counter or ``"final"`` for the final draft.

    Examples:
        >>> DocumentStatus.create("draft-public", iteration="2").iteration
        '2'
    """

    stage: str
    substage: Optional[str] = None
    iteration: Optional[str] = None

    def __post_init__(self) -> None:
        if self.stage not in STAGES:
            raise InvalidStageError(self.stage)

    @classmethod
    def create(
        cls,
        stage: str,
        substage: Optional[str] = None,
        iteration: Optional[str] = None,
    ) -> "DocumentStatus":
        """Build a status, raising :class:`InvalidStageError` for unknown stages."""

        return cls(stage=stage, substage=substage, iteration=iteration)

    @classmethod
    def from_upstream(
        cls,
        raw_status: str,
        stage_marker: Optional[str] = None,
    ) -> "DocumentStatus":
        """Map a dataset or live-search status string into a :class:`DocumentStatus`.

        Dataset records already carry stage names; the search table uses
        human labels such as ``"Retired Draft"`` which are translated first.
        The iteration is only attached to draft stages.
        """

        normalized = (raw_status or "").strip().lower()
        stage = normalized if normalized in STAGES else _SEARCH_STATUS_TO_STAGE.get(normalized)
        if stage is None:
            raise InvalidStageError(raw_status)
        substage = "active" if stage in _ACTIVE_STAGES else None
        iteration = iteration_from_marker(stage_marker) if stage in DRAFT_STAGES else None
        return cls(stage=stage, substage=substage, iteration=iteration)

    @property
    def is_draft(self) -> bool:
        return self.stage in DRAFT_STAGES
