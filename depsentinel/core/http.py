"""HTTP helpers: typed failure classification and the transient retry budget.

Network collaborators never retry on their own. They raise a
:class:`CatalogError` whose ``kind`` says what went wrong, and the
pipeline stage that owns the call decides what to do with it via
:func:`call_with_retry`.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any, TypeVar

import httpx
import structlog

from depsentinel.exceptions import CatalogError, ErrorKind, TransientNetworkFailure

log = structlog.get_logger("depsentinel.engine")

T = TypeVar("T")

# One retry, two attempts in total.
MAX_ATTEMPTS = 2

_UNRESOLVABLE_STATUSES = frozenset({404, 410})
_AUTH_STATUSES = frozenset({401, 403})

# Proxy/VCS hosts report these in the body of an otherwise generic error.
_UNRESOLVABLE_MARKERS = (
    "no go-import meta tags",
    "unrecognized import path",
    "Repository not found",
    "404 Not Found",
)


def http_timeout() -> float:
    return float(os.environ.get("DEPSENTINEL_HTTP_TIMEOUT", "30"))


def build_client(
    base_url: str = "",
    headers: dict[str, str] | None = None,
    *,
    auth: tuple[str, str] | None = None,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    return httpx.Client(
        base_url=base_url,
        headers=headers,
        auth=auth,
        timeout=http_timeout(),
        transport=transport,
        follow_redirects=True,
    )


def classify_response(response: httpx.Response) -> ErrorKind:
    """Map a non-2xx response to an error kind."""
    if response.status_code >= 500:
        return "transient"
    body = response.text or ""
    if response.status_code in _UNRESOLVABLE_STATUSES:
        return "unresolvable"
    if any(marker in body for marker in _UNRESOLVABLE_MARKERS):
        return "unresolvable"
    if response.status_code in _AUTH_STATUSES:
        if response.headers.get("X-RateLimit-Remaining") == "0":
            return "transient"
        return "auth"
    return "other"


def check_response(response: httpx.Response) -> None:
    """Raise a classified :class:`CatalogError` unless *response* is a success."""
    if response.is_success:
        return
    host = response.request.url.host
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        kind = classify_response(response)
        message = f"{response.status_code} from {host}: {response.text[:200]}"
        if kind == "transient":
            raise TransientNetworkFailure(
                message, host=host, status=response.status_code, cause=exc
            ) from exc
        raise CatalogError(kind, message, host=host, status=response.status_code, cause=exc) from exc


def send(client: httpx.Client, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
    """GET *url*, turning transport-level errors into classified failures."""
    try:
        response = client.get(url, params=params)
    except (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError) as exc:
        host = httpx.URL(url).host or str(client.base_url.host) or None
        raise TransientNetworkFailure(f"{type(exc).__name__}: {exc}", host=host, cause=exc) from exc
    check_response(response)
    return response


def get_json(client: httpx.Client, url: str, params: dict[str, Any] | None = None) -> Any:
    return send(client, url, params).json()


def call_with_retry(fn: Callable[..., T], *args: Any, description: str, **kwargs: Any) -> T:
    """Call *fn*, retrying transient failures up to :data:`MAX_ATTEMPTS` times.

    Once the budget is spent the failure is re-raised as a plain
    :class:`CatalogError` of kind ``other``, keeping its host, status and
    underlying cause.
    """
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            return fn(*args, **kwargs)
        except TransientNetworkFailure as exc:
            if attempt < MAX_ATTEMPTS:
                log.warning(
                    "http.transient_retry",
                    call=description,
                    attempt=attempt,
                    max_attempts=MAX_ATTEMPTS,
                    error=str(exc),
                )
                continue
            raise CatalogError(
                "other",
                f"{description} failed after {MAX_ATTEMPTS} attempts: {exc}",
                host=exc.host,
                status=exc.status,
                cause=exc.cause,
            ) from (exc.cause or exc)
    raise AssertionError("unreachable")
