"""Stream listing use case.

Media id -> indexer search -> candidate selection -> hash resolution
-> debrid availability -> sort -> persist -> stream records.

Stream listing never fails: every error degrades to a shorter (possibly
empty) list.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from contextlib import aclosing
from typing import Protocol

import structlog

from jackettio.domain.entities.errors import (
    DebridError,
    IndexerUnavailable,
    StorageUnavailable,
    UnknownProvider,
)
from jackettio.domain.entities.stremio import (
    IndexerRelease,
    MediaRequest,
    StreamQuality,
    StreamRecord,
)
from jackettio.domain.entities.user_config import UserConfig
from jackettio.domain.ports.debrid_provider import DebridProviderPort
from jackettio.domain.ports.indexer import IndexerPort
from jackettio.domain.ports.stream_store import StreamStorePort
from jackettio.domain.ports.torrent_fetcher import TorrentFetcherPort

log = structlog.get_logger(__name__)


class _ProviderRegistry(Protocol):
    def instantiate(self, user_config: UserConfig) -> DebridProviderPort: ...


class _StreamSorter(Protocol):
    def arrange(
        self, records: Sequence[StreamRecord], config: UserConfig
    ) -> list[StreamRecord]: ...


def download_link(
    base_url: str, raw_config: str, request: MediaRequest, torrent_id: str
) -> str:
    """Deferred URL a stream entry points at (resolved on playback)."""
    return (
        f"{base_url.rstrip('/')}/{raw_config}/download/"
        f"{request.media_type}/{request.media_id}/{torrent_id}"
    )


class StreamOrchestrator:
    """Produces the ranked stream list for one request.

    Args:
        indexer: Release search.
        fetcher: Fills in info hashes from download links.
        registry: Builds the user's debrid provider.
        store: Receives every produced record, in response order.
        sorter_for: Builds the sorter for a user's preferences.
        max_candidates: Releases handed to the provider at most.
    """

    def __init__(
        self,
        *,
        indexer: IndexerPort,
        fetcher: TorrentFetcherPort,
        registry: _ProviderRegistry,
        store: StreamStorePort,
        sorter_for: Callable[[UserConfig], _StreamSorter],
        max_candidates: int = 100,
    ) -> None:
        self._indexer = indexer
        self._fetcher = fetcher
        self._registry = registry
        self._store = store
        self._sorter_for = sorter_for
        self._max_candidates = max_candidates

    async def get_streams(
        self,
        user_config: UserConfig,
        media_type: str,
        media_id: str,
        *,
        base_url: str,
        raw_config: str,
    ) -> list[StreamRecord]:
        try:
            request = MediaRequest.parse(media_type, media_id)
        except ValueError as e:
            log.info("stream_invalid_media_id", media_type=media_type, media_id=media_id, error=str(e))
            return []

        started = time.perf_counter()
        try:
            streams = await self._get_streams(
                user_config, request, base_url=base_url, raw_config=raw_config
            )
        except Exception:
            log.error("stream_orchestration_failed", media_id=request.media_id, exc_info=True)
            return []

        log.info(
            "stream_request_done",
            media_id=request.media_id,
            provider=user_config.debrid_id,
            streams=len(streams),
            duration_ms=round((time.perf_counter() - started) * 1000),
        )
        return streams

    def _select(
        self, releases: Sequence[IndexerRelease], config: UserConfig
    ) -> list[IndexerRelease]:
        """Quality/keyword filter, de-duplicate by hash, keep indexer order."""
        allowed = set(config.qualities)
        seen: set[str] = set()
        selected: list[IndexerRelease] = []
        for r in releases:
            if int(r.quality) not in allowed:
                continue
            title = r.title.lower()
            if any(k in title for k in config.exclude_keywords):
                continue
            if r.info_hash:
                if r.info_hash in seen:
                    continue
                seen.add(r.info_hash)
            selected.append(r)
            if len(selected) >= self._max_candidates:
                break
        return selected

    @staticmethod
    def _dedupe_hashes(releases: Sequence[IndexerRelease]) -> list[IndexerRelease]:
        seen: set[str] = set()
        out: list[IndexerRelease] = []
        for r in releases:
            if r.info_hash:
                if r.info_hash in seen:
                    continue
                seen.add(r.info_hash)
            out.append(r)
        return out

    async def _get_streams(
        self,
        config: UserConfig,
        request: MediaRequest,
        *,
        base_url: str,
        raw_config: str,
    ) -> list[StreamRecord]:
        try:
            releases = await self._indexer.search(
                request, indexers=config.indexers, timeout=config.indexer_timeout_sec
            )
        except IndexerUnavailable as e:
            log.warning("stream_indexer_unavailable", media_id=request.media_id, error=str(e))
            return []

        candidates = self._select(releases, config)
        if not candidates:
            log.info("stream_no_candidates", media_id=request.media_id, releases=len(releases))
            return []

        try:
            provider = self._registry.instantiate(config)
        except UnknownProvider as e:
            log.warning("stream_unknown_provider", provider=e.provider_id)
            return []

        candidates = self._dedupe_hashes(await self._fetcher.resolve_hashes(candidates))

        records: list[StreamRecord] = []
        try:
            async with aclosing(
                provider.resolve_streams(
                    candidates,
                    request=request,
                    link_for=lambda r: download_link(base_url, raw_config, request, r.torrent_id),
                    max_results=config.max_torrents,
                    quality_threshold=StreamQuality(max(config.qualities, default=0)),
                    include_uncached=not config.hide_uncached,
                )
            ) as resolved:
                async for record in resolved:
                    records.append(record)
        except DebridError as e:
            log.warning(
                "stream_provider_failed",
                provider=provider.id,
                kind=e.kind.value,
                partial=len(records),
            )

        ordered = self._sorter_for(config).arrange(records, config)
        if not ordered:
            return []

        try:
            return await self._store.append(ordered)
        except StorageUnavailable:
            log.error("stream_store_append_failed", records=len(ordered), exc_info=True)
            return ordered
