"""Client identity for rate limiting and provider IP forwarding."""

from __future__ import annotations

from starlette.requests import Request


def client_ip(request: Request, *, trust_proxy: bool) -> str:
    """Return the requesting client's IP.

    Behind a trusted proxy ``CF-Connecting-IP`` wins, then the first
    ``X-Forwarded-For`` hop; otherwise the socket peer.
    """
    if trust_proxy:
        cf_ip = request.headers.get("cf-connecting-ip", "").strip()
        if cf_ip:
            return cf_ip
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"
