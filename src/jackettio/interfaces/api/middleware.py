"""FastAPI middleware for API rate limiting."""

from __future__ import annotations

import math
import re

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response

from jackettio.domain.entities.errors import RateLimited
from jackettio.infrastructure.rate_limiter import FixedWindowRateLimiter
from jackettio.interfaces.api.client_ip import client_ip

log = structlog.get_logger(__name__)

# /{userConfig}/stream/{type}/{id}.json
STREAM_ROUTE_RE = re.compile(r"^/[^/]+/stream/[^/]+/[^/]+\.json$")


def _minutes(seconds: float) -> int:
    return max(1, math.ceil(seconds / 60))


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window rate limiter per client IP, one counter across all routes.

    The stream-listing route has no error channel in the addon protocol, so a
    rejection there is a normal ``200`` stream list holding one explanatory
    entry. Every other route gets ``429`` with ``Retry-After``.

    Args:
        app: ASGI application.
        limiter: Shared window counter.
        addon_name: Shown as the synthetic stream's name.
        trust_proxy: Key on forwarded client IP headers.
    """

    def __init__(
        self,
        app: object,
        *,
        limiter: FixedWindowRateLimiter,
        addon_name: str = "Jackettio",
        trust_proxy: bool = False,
    ) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._limiter = limiter
        self._addon_name = addon_name
        self._trust_proxy = trust_proxy

    def _reject(self, request: Request, exc: RateLimited) -> Response:
        retry_after = math.ceil(exc.retry_after)
        minutes = _minutes(retry_after)
        if STREAM_ROUTE_RE.match(request.url.path):
            return JSONResponse(
                content={
                    "streams": [
                        {
                            "name": self._addon_name,
                            "title": (
                                "🛑 Too many requests, please try again in "
                                f"{minutes} minute(s)."
                            ),
                            "url": "#",
                        }
                    ]
                },
                headers={"Access-Control-Allow-Origin": "*"},
            )
        return PlainTextResponse(
            f"Too many requests, please try again in {minutes} minute(s).",
            status_code=429,
            headers={"Retry-After": str(retry_after)},
        )

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not self._limiter.enabled:
            return await call_next(request)

        try:
            decision = self._limiter.acquire(
                client_ip(request, trust_proxy=self._trust_proxy)
            )
        except RateLimited as e:
            return self._reject(request, e)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response
