"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

import functools
from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

import httpx
import structlog
from fastapi import FastAPI

from jackettio.application.use_cases import DownloadResolver, StreamOrchestrator
from jackettio.domain.entities.user_config import UserConfig
from jackettio.infrastructure.cache.diskcache_adapter import DiskcacheAdapter
from jackettio.infrastructure.config.schema import AppConfig
from jackettio.infrastructure.debrid import DebridRegistry
from jackettio.infrastructure.debrid.base import DEFAULT_USER_AGENT
from jackettio.infrastructure.icon import IconCache
from jackettio.infrastructure.indexer import JackettIndexer, TorrentFetcher
from jackettio.infrastructure.scheduler import BackgroundJob
from jackettio.infrastructure.stremio.stream_sorter import StreamSorter
from jackettio.infrastructure.stremio.user_config import UserConfigCodec
from jackettio.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

_HOUR = 3600.0


def _sorter_for(config: UserConfig) -> StreamSorter:
    return StreamSorter(config.prioritize_languages)


def build_jobs(state: AppState, config: AppConfig) -> list[BackgroundJob]:
    """Recurring maintenance owned by the lifecycle manager."""
    store = state.store
    return [
        BackgroundJob(
            name="icon_refresh",
            period=config.icon.refresh_interval_hours * _HOUR,
            action=state.icon.refresh,
            run_at_start=True,
        ),
        BackgroundJob(
            name="torrent_folder_cleanup",
            period=config.torrents.cleanup_interval_hours * _HOUR,
            action=functools.partial(
                state.fetcher.clean_folder, config.torrents.max_age_hours * _HOUR
            ),
            run_at_start=True,
        ),
        BackgroundJob(
            name="store_vacuum",
            period=config.store.vacuum_interval_hours * _HOUR,
            action=store.vacuum,
            run_at_start=True,
        ),
        BackgroundJob(
            name="store_clean",
            period=config.store.clean_interval_hours * _HOUR,
            action=functools.partial(store.clean, config.store.retention_hours * _HOUR),
            run_at_start=True,
        ),
        BackgroundJob(
            name="store_autosave",
            period=config.store.autosave_interval_seconds,
            action=store.flush,
        ),
        BackgroundJob(
            name="indexer_cache_expire",
            period=_HOUR,
            action=state.cache.expire,
        ),
    ]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan Hook: Initialize and cleanup all resources (DI Composition Root).

    Order matters:
        1. Cache (indexer responses)
        2. HTTP Client (indexer, torrent links, debrid APIs, icon)
        3. Stream store (load stored records)
        4. UserConfig codec (validates server defaults)
        5. Indexer + torrent fetcher
        6. Debrid registry
        7. Use cases
        8. Icon cache
        9. Background jobs (lifecycle -> RUNNING)
    """
    state = cast(AppState, app.state)
    config = state.config

    # 1) Cache
    cache = DiskcacheAdapter(
        directory=config.store.data_dir / "cache",
        ttl_seconds=config.jackett.cache_ttl_seconds,
    )
    await cache.__aenter__()
    state.cache = cache
    log.info("cache_initialized", directory=str(cache.directory))

    # 2) HTTP client (shared, carries no credentials)
    state.http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(config.jackett.timeout_seconds),
        headers={"User-Agent": DEFAULT_USER_AGENT},
    )
    log.info("http_client_initialized")

    try:
        # 3) Stream store
        await state.store.open()

        # 4) UserConfig codec
        state.codec = UserConfigCodec(
            config.user_config.defaults,
            immutable_keys=config.user_config.immutable_keys,
            passkey_pattern=config.passkey.pattern if config.passkey.enabled else None,
        )

        # 5) Indexer + torrent fetcher
        state.indexer = JackettIndexer(
            state.http_client,
            url=config.jackett.url,
            api_key=config.jackett.api_key,
            cache=state.cache,
            cache_ttl=config.jackett.cache_ttl_seconds,
            max_concurrent=config.jackett.max_concurrent,
        )
        state.fetcher = TorrentFetcher(
            state.http_client,
            temp_dir=config.torrents.temp_dir,
            max_concurrent=config.torrents.max_concurrent,
            timeout=config.torrents.timeout_seconds,
            passkey_placeholder=config.passkey.replace,
        )
        log.info("indexer_initialized", url=config.jackett.url)

        # 6) Debrid registry
        state.registry = DebridRegistry(state.http_client, config.debrid)
        log.info("debrid_registry_initialized", providers=[d["id"] for d in state.registry.list()])

        # 7) Use cases
        state.orchestrator = StreamOrchestrator(
            indexer=state.indexer,
            fetcher=state.fetcher,
            registry=state.registry,
            store=state.store,
            sorter_for=_sorter_for,
            max_candidates=config.jackett.max_candidates,
        )
        state.download_resolver = DownloadResolver(
            indexer=state.indexer,
            fetcher=state.fetcher,
            registry=state.registry,
            store=state.store,
        )

        # 8) Icon cache
        state.icon = IconCache(
            state.http_client,
            url=config.icon.url,
            data_dir=config.store.data_dir,
        )

        # 9) Background jobs
        state.lifecycle.start(build_jobs(state, config))
        log.info("app_startup_complete")

        yield
    finally:
        await state.lifecycle.drain("lifespan_shutdown")
        log.info("lifecycle_drained")

        await state.store.close()
        log.info("stream_store_closed")

        await state.http_client.aclose()
        log.info("http_client_closed")

        await state.cache.aclose()
        log.info("cache_closed")

        log.info("app_shutdown_complete")
