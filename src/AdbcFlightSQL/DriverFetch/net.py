# === NAVMAP v1 ===
# {
#   "module": "AdbcFlightSQL.DriverFetch.net",
#   "purpose": "Provide the shared HTTPX client and buffered GET helper for registry requests",
#   "sections": [
#     {"id": "state", "name": "Shared client state", "anchor": "STATE", "kind": "constants"},
#     {"id": "client", "name": "Client factory and hooks", "anchor": "CLIENT", "kind": "helpers"},
#     {"id": "lifecycle", "name": "Client lifecycle", "anchor": "LIFE", "kind": "api"},
#     {"id": "fetch", "name": "Buffered GET", "anchor": "FETCH", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Shared HTTPX client used for registry metadata and artifact downloads.

One client is created lazily per process and reused for the metadata call
and the artifact download, so TLS setup happens once. Tests swap it for a
``MockTransport``-backed client through :func:`configure_http_client`.
"""

from __future__ import annotations

import logging
import ssl
import threading
import time
from typing import Optional

import certifi
import httpx

from .errors import DownloadFailure
from .retry import RETRYABLE_STATUS_CODES, create_http_retry_policy
from .settings import HttpSettings

LOGGER = logging.getLogger("AdbcFlightSQL.DriverFetch.net")

# --- Shared client state -------------------------------------------------------

_state_lock = threading.RLock()
_shared_client: Optional[httpx.Client] = None
_fallback_http = HttpSettings()

_STARTED_AT = "driverfetch_started_at"

# --- Client factory and hooks ---------------------------------------------------


def _tls_context() -> ssl.SSLContext:
    """Trust store pinned to certifi so builds behave the same on bare CI images."""

    return ssl.create_default_context(cafile=certifi.where())


def _mark_start(request: httpx.Request) -> None:
    request.extensions[_STARTED_AT] = time.perf_counter()


def _log_response(response: httpx.Response) -> None:
    started = response.request.extensions.get(_STARTED_AT)
    elapsed = None if started is None else round(time.perf_counter() - started, 3)
    LOGGER.debug(
        "HTTP %s %s -> %s",
        response.request.method,
        response.request.url,
        response.status_code,
        extra={"stage": "http", "elapsed_sec": elapsed},
    )


def _build_http_client(http: HttpSettings) -> httpx.Client:
    # Conda channels redirect artifact requests to a CDN.
    return httpx.Client(
        headers={"User-Agent": http.user_agent},
        timeout=http.timeout(),
        verify=_tls_context(),
        follow_redirects=True,
        trust_env=True,
        event_hooks={"request": [_mark_start], "response": [_log_response]},
    )


def _drop_shared_client() -> None:
    # Caller holds _state_lock.
    global _shared_client
    previous, _shared_client = _shared_client, None
    if previous is not None:
        previous.close()


# --- Client lifecycle ------------------------------------------------------------


def configure_http_client(
    client: Optional[httpx.Client] = None,
    *,
    default_http: Optional[HttpSettings] = None,
) -> None:
    """Install ``client`` as the shared client and optionally replace default settings.

    Passing ``None`` discards the current client; the next request builds a
    fresh one.
    """

    global _shared_client, _fallback_http
    with _state_lock:
        if default_http is not None:
            _fallback_http = default_http
        if client is not _shared_client:
            _drop_shared_client()
        _shared_client = client


def reset_http_client() -> None:
    """Close the shared client and go back to the default HTTP settings."""

    global _fallback_http
    with _state_lock:
        _drop_shared_client()
        _fallback_http = HttpSettings()


def get_http_client(http: Optional[HttpSettings] = None) -> httpx.Client:
    global _shared_client
    with _state_lock:
        if _shared_client is None:
            _shared_client = _build_http_client(http or _fallback_http)
        return _shared_client


# --- Buffered GET ------------------------------------------------------------------


def fetch_bytes(
    url: str,
    *,
    http: Optional[HttpSettings] = None,
    purpose: str = "artifact",
) -> bytes:
    """GET ``url`` and return the fully buffered body.

    Transient failures are retried according to ``http``. Whatever is left
    once the attempt budget is spent becomes a :class:`DownloadFailure`.
    """

    cfg = http or _fallback_http
    attempt = create_http_retry_policy(
        max_attempts=cfg.max_attempts,
        backoff_base=cfg.backoff_base,
        backoff_max=cfg.backoff_max,
    )
    client = get_http_client(cfg)

    try:
        response = attempt(client.get, url, timeout=cfg.timeout())
    except httpx.HTTPError as exc:
        transient = isinstance(exc, httpx.TransportError)
        raise DownloadFailure(f"Failed to fetch {purpose} from {url}: {exc}", retryable=transient) from exc

    status = response.status_code
    if not response.is_success:
        raise DownloadFailure(
            f"Failed to fetch {purpose}: HTTP {status}",
            status_code=status,
            retryable=status in RETRYABLE_STATUS_CODES,
        )

    payload = response.content
    LOGGER.debug("fetched %s (%d bytes)", purpose, len(payload), extra={"stage": "download", "url": url})
    return payload


__all__ = ["configure_http_client", "fetch_bytes", "get_http_client", "reset_http_client"]
