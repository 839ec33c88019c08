"""FastAPI application factory (create_app)."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.responses import Response

from jackettio import __version__
from jackettio.infrastructure.config import AppConfig
from jackettio.infrastructure.lifecycle import LifecycleManager
from jackettio.infrastructure.persistence.stream_store import DiskcacheStreamStore
from jackettio.infrastructure.rate_limiter import FixedWindowRateLimiter
from jackettio.infrastructure.scheduler import JobScheduler
from jackettio.interfaces.api.middleware import RateLimitMiddleware
from jackettio.interfaces.app_state import AppState
from jackettio.interfaces.composition import lifespan

log = structlog.get_logger(__name__)


def create_app(config: AppConfig) -> FastAPI:
    """Create FastAPI app: configuration ONLY, NO resource initialization.

    Resources (HTTP client, cache, indexer, providers) are created in
    lifespan(). The store and lifecycle exist up front so the request
    middleware and the server can reach them; the store is opened in
    lifespan().
    """
    app = FastAPI(
        title=config.addon.name,
        description=config.addon.description,
        version=__version__,
        lifespan=lifespan,
    )

    app.state = AppState()
    app.state.config = config
    app.state.store = DiskcacheStreamStore(config.store.path)
    app.state.lifecycle = LifecycleManager(
        scheduler=JobScheduler(),
        store=app.state.store,
        shutdown_timeout=config.shutdown_timeout_seconds,
    )
    app.state.rate_limiter = FixedWindowRateLimiter(
        window_seconds=config.rate_limit.window_seconds,
        max_requests=config.rate_limit.max_requests,
    )

    # Per-client fixed window, one counter across all routes
    app.add_middleware(
        RateLimitMiddleware,
        limiter=app.state.rate_limiter,
        addon_name=config.addon.name,
        trust_proxy=config.rate_limit.trust_proxy,
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    from jackettio.interfaces.api.download.router import router as download_router
    from jackettio.interfaces.api.stremio.router import router as stremio_router

    @app.get("/healthz")
    async def healthz() -> dict[str, str | int]:
        """Liveness check, returns 200 as long as the process is running."""
        lifecycle: LifecycleManager = app.state.lifecycle
        return {
            "status": "ok",
            "state": lifecycle.state.value,
            "active_requests": lifecycle.active_requests,
        }

    @app.get("/readyz")
    async def readyz() -> Response:
        """Readiness check: 200 while running, 503 while starting or draining."""
        lifecycle: LifecycleManager = app.state.lifecycle
        if lifecycle.is_ready:
            return JSONResponse({"status": "ready"}, status_code=200)
        return JSONResponse({"status": "not_ready"}, status_code=503)

    app.include_router(stremio_router)
    app.include_router(download_router)

    videos_dir = config.static_dir / "videos"
    if videos_dir.is_dir():
        app.mount("/videos", StaticFiles(directory=videos_dir), name="videos")
    else:
        log.warning("static_videos_missing", path=str(videos_dir))

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ):
        lifecycle: LifecycleManager = app.state.lifecycle
        lifecycle.request_started()
        start = time.perf_counter()
        try:
            response = await call_next(request)
            return response
        finally:
            lifecycle.request_finished()
            duration_ms = (time.perf_counter() - start) * 1000.0
            status_code = getattr(locals().get("response", None), "status_code", 500)

            log.info(
                "http_request",
                method=request.method,
                path=_redact_path(request.url.path),
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                client_host=(request.client.host if request.client else None),
            )

    return app


def _redact_path(path: str) -> str:
    """Mask the config blob (it holds the debrid API key)."""
    head, sep, rest = path.lstrip("/").partition("/")
    if not sep or head in {"stream", "videos", "configure", "manifest.json"}:
        return path
    return f"/<config>/{rest}"
