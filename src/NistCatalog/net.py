# === NAVMAP v1 ===
# {
#   "module": "NistCatalog.net",
#   "purpose": "Provide the shared HTTPX client used by the dataset cache and live search",
#   "sections": [
#     {"id": "constants", "name": "Constants & globals", "anchor": "CONST", "kind": "constants"},
#     {"id": "helpers", "name": "Client construction helpers", "anchor": "HELP", "kind": "helpers"},
#     {"id": "api", "name": "Public API", "anchor": "API", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Shared HTTPX client used across catalog networking."""

from __future__ import annotations

import contextlib
import logging
import ssl
import threading
import time
from typing import Callable, Dict, Mapping, MutableMapping, Optional

import certifi
import httpx

from .settings import HttpConfiguration

LOGGER = logging.getLogger("NistCatalog.net")

# --- Constants & globals -------------------------------------------------------

_CLIENT_LOCK = threading.RLock()
_HTTP_CLIENT: Optional[httpx.Client] = None
_CLIENT_FACTORY: Optional[Callable[[], httpx.Client]] = None
_DEFAULT_CONFIG = HttpConfiguration()

# --- Client construction helpers ----------------------------------------------


def _build_ssl_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.load_verify_locations(certifi.where())
    return context


def _request_hook(request: httpx.Request) -> None:
    extension_payload = request.extensions.pop("catalog_headers", None)
    config: Optional[HttpConfiguration] = None
    correlation_id: Optional[str] = None

    if isinstance(extension_payload, Mapping):
        cfg = extension_payload.get("config")
        if isinstance(cfg, HttpConfiguration):
            config = cfg
        corr = extension_payload.get("correlation_id")
        if isinstance(corr, str):
            correlation_id = corr

    cfg = config or _DEFAULT_CONFIG
    # httpx already set its own User-Agent; configured headers replace it
    for header, value in cfg.polite_http_headers(correlation_id=correlation_id).items():
        request.headers[header] = value

    meta: MutableMapping[str, object] = request.extensions.setdefault("catalog_meta", {})  # type: ignore[assignment]
    meta["start_time"] = time.perf_counter()


def _response_hook(response: httpx.Response) -> None:
    meta: MutableMapping[str, object] = response.request.extensions.setdefault(  # type: ignore[assignment]
        "catalog_meta", {}
    )
    start = meta.get("start_time")
    elapsed = None
    if isinstance(start, (int, float)):
        elapsed = time.perf_counter() - start
        meta["elapsed_sec"] = elapsed

    LOGGER.debug(
        "catalog-http-response",
        extra={
            "method": response.request.method,
            "url": str(response.request.url),
            "status": response.status_code,
            "elapsed_sec": elapsed,
        },
    )


def _timeout_for(config: HttpConfiguration) -> httpx.Timeout:
    return httpx.Timeout(
        connect=config.connect_timeout_sec,
        read=config.timeout_sec,
        write=config.timeout_sec,
        pool=config.connect_timeout_sec,
    )


def _limits_for(config: HttpConfiguration) -> httpx.Limits:
    return httpx.Limits(
        max_connections=config.max_connections,
        max_keepalive_connections=config.max_keepalive_connections,
    )


def _build_http_client(config: Optional[HttpConfiguration]) -> httpx.Client:
    cfg = config or _DEFAULT_CONFIG
    return httpx.Client(
        timeout=_timeout_for(cfg),
        limits=_limits_for(cfg),
        verify=_build_ssl_context(),
        trust_env=True,
        follow_redirects=True,
        event_hooks={"request": [_request_hook], "response": [_response_hook]},
    )


def _close_client_unlocked() -> None:
    global _HTTP_CLIENT
    if _HTTP_CLIENT is not None:
        with contextlib.suppress(Exception):
            _HTTP_CLIENT.close()
    _HTTP_CLIENT = None


# --- Public API ----------------------------------------------------------------


def request_extensions(
    config: HttpConfiguration, correlation_id: Optional[str] = None
) -> Dict[str, object]:
    """Build the ``extensions`` payload consumed by the request hook."""

    payload: Dict[str, object] = {"config": config}
    if correlation_id:
        payload["correlation_id"] = correlation_id
    return {"catalog_headers": payload}


def configure_http_client(
    client: Optional[httpx.Client] = None,
    *,
    factory: Optional[Callable[[], httpx.Client]] = None,
    default_config: Optional[HttpConfiguration] = None,
) -> None:
    """Override the shared HTTPX client or register a factory for tests."""

    if client is not None and factory is not None:
        raise ValueError("provide either a client or factory, not both")

    with _CLIENT_LOCK:
        global _HTTP_CLIENT, _CLIENT_FACTORY, _DEFAULT_CONFIG

        if default_config is not None:
            _DEFAULT_CONFIG = default_config

        if client is None:
            _close_client_unlocked()
        else:
            if _HTTP_CLIENT is not client:
                _close_client_unlocked()
            _HTTP_CLIENT = client

        _CLIENT_FACTORY = factory


def reset_http_client() -> None:
    """Reset the shared HTTPX client to its default configuration (test helper)."""

    with _CLIENT_LOCK:
        global _CLIENT_FACTORY, _DEFAULT_CONFIG
        _CLIENT_FACTORY = None
        _DEFAULT_CONFIG = HttpConfiguration()
        _close_client_unlocked()


def get_http_client(config: Optional[HttpConfiguration] = None) -> httpx.Client:
    """Return the shared HTTPX client, creating it if necessary."""

    global _HTTP_CLIENT
    with _CLIENT_LOCK:
        if _HTTP_CLIENT is not None:
            return _HTTP_CLIENT

        if _CLIENT_FACTORY is not None:
            candidate = _CLIENT_FACTORY()
            if not isinstance(candidate, httpx.Client):
                raise TypeError("client factory must return an httpx.Client")
            LOGGER.info(
                "using custom httpx client",
                extra={"factory": getattr(_CLIENT_FACTORY, "__qualname__", repr(_CLIENT_FACTORY))},
            )
            _HTTP_CLIENT = candidate
            return candidate

        _HTTP_CLIENT = _build_http_client(config)
        return _HTTP_CLIENT
