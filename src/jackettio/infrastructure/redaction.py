"""Log-safe renderings of URLs and httpx errors."""

from __future__ import annotations

from urllib.parse import urlsplit

import httpx

_MASK = "******"
_KEEP = 5


def _mask(value: str) -> str:
    if len(value) <= 2 * _KEEP:
        return _MASK
    return f"{value[:_KEEP]}{_MASK}{value[-_KEEP:]}"


def _origin(url: str) -> str:
    parts = urlsplit(url)
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return f"{parts.scheme}://{host}" if parts.scheme else host


def redact_url(url: str) -> str:
    """Log-safe form of *url*.

    Scheme and host survive; path and query keep only their first and last
    five characters. Userinfo is dropped.
    """
    parts = urlsplit(url)
    out = _origin(url)
    if parts.path and parts.path != "/":
        out += _mask(parts.path)
    if parts.query:
        out += "?" + _mask(parts.query)
    return out


def describe_http_error(exc: httpx.HTTPError) -> str:
    """One-line summary of *exc* without its request URL.

    ``str(exc)`` of an httpx error carries the full URL including query
    parameters such as ``apikey``; only the error type, the status code and
    the origin are kept.
    """
    name = type(exc).__name__
    try:
        origin = _origin(str(exc.request.url))
    except RuntimeError:
        # raised by ``.request`` when the error was built without one
        return name
    if isinstance(exc, httpx.HTTPStatusError):
        return f"{name}: HTTP {exc.response.status_code} from {origin}"
    return f"{name} from {origin}"
