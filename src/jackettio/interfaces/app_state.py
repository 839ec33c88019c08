"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from jackettio.infrastructure.config import AppConfig
from jackettio.infrastructure.lifecycle import LifecycleManager

if TYPE_CHECKING:
    from jackettio.application.use_cases import DownloadResolver, StreamOrchestrator
    from jackettio.domain.ports import CachePort
    from jackettio.infrastructure.debrid import DebridRegistry
    from jackettio.infrastructure.icon import IconCache
    from jackettio.infrastructure.indexer import JackettIndexer, TorrentFetcher
    from jackettio.infrastructure.persistence.stream_store import DiskcacheStreamStore
    from jackettio.infrastructure.rate_limiter import FixedWindowRateLimiter
    from jackettio.infrastructure.stremio.user_config import UserConfigCodec


class AppState(State):
    """FastAPI application state with all DI resources.

    ``config``, ``store``, ``lifecycle`` and ``rate_limiter`` are set by
    ``create_app``; everything else by composition.py::lifespan().
    """

    # Configuration
    config: AppConfig
    codec: UserConfigCodec

    # Infrastructure
    cache: CachePort
    http_client: httpx.AsyncClient
    store: DiskcacheStreamStore
    icon: IconCache
    rate_limiter: FixedWindowRateLimiter

    # Indexer + debrid
    indexer: JackettIndexer
    fetcher: TorrentFetcher
    registry: DebridRegistry

    # Application services
    orchestrator: StreamOrchestrator
    download_resolver: DownloadResolver

    # Background jobs + drain
    lifecycle: LifecycleManager
