"""Download use case: torrent id -> direct debrid URL."""

from __future__ import annotations

from typing import Protocol

import structlog

from jackettio.domain.entities.errors import IndexerUnavailable, TorrentNotFound
from jackettio.domain.entities.stremio import IndexerRelease, MediaRequest, StreamRecord
from jackettio.domain.entities.user_config import UserConfig
from jackettio.domain.ports.debrid_provider import DebridProviderPort
from jackettio.domain.ports.indexer import IndexerPort
from jackettio.domain.ports.stream_store import StreamStorePort
from jackettio.domain.ports.torrent_fetcher import TorrentFetcherPort
from jackettio.infrastructure.redaction import redact_url

log = structlog.get_logger(__name__)


class _ProviderRegistry(Protocol):
    def instantiate(self, user_config: UserConfig) -> DebridProviderPort: ...


def _release_from_record(record: StreamRecord) -> IndexerRelease:
    return IndexerRelease(
        torrent_id=record.torrent_id,
        title=record.title,
        indexer=record.indexer,
        link=record.torrent_link,
        magnet_uri=record.magnet_uri,
        info_hash=record.info_hash,
        size=record.size,
        seeders=record.seeders,
        quality=record.quality,
        languages=record.languages,
        position=record.position,
    )


class DownloadResolver:
    """Resolves the URL behind a stream entry.

    ``DebridError`` from the provider propagates unchanged; the route maps
    its kind to a redirect target.
    """

    def __init__(
        self,
        *,
        indexer: IndexerPort,
        fetcher: TorrentFetcherPort,
        registry: _ProviderRegistry,
        store: StreamStorePort,
    ) -> None:
        self._indexer = indexer
        self._fetcher = fetcher
        self._registry = registry
        self._store = store

    async def _locate(
        self, config: UserConfig, request: MediaRequest, torrent_id: str
    ) -> IndexerRelease:
        record = self._store.find(request.media_type, request.media_id, torrent_id)
        if record is not None:
            return _release_from_record(record)

        log.info("download_torrent_not_stored", torrent_id=torrent_id, media_id=request.media_id)
        try:
            releases = await self._indexer.search(
                request, indexers=config.indexers, timeout=config.indexer_timeout_sec
            )
        except IndexerUnavailable as e:
            raise TorrentNotFound(f"{torrent_id}: indexer unavailable") from e
        for r in releases:
            if r.torrent_id == torrent_id:
                return r
        raise TorrentNotFound(torrent_id)

    async def get_download(
        self,
        user_config: UserConfig,
        media_type: str,
        media_id: str,
        torrent_id: str,
    ) -> str:
        """Return the direct URL for the requested file.

        Raises:
            UnknownProvider: unsupported ``debrid_id``.
            TorrentNotFound: bad media id, or the torrent cannot be located.
            DebridError: classified provider failure.
        """
        try:
            request = MediaRequest.parse(media_type, media_id)
        except ValueError as e:
            raise TorrentNotFound(str(e)) from e

        provider = self._registry.instantiate(user_config)
        release = await self._locate(user_config, request, torrent_id)
        source = await self._fetcher.source_for(release, passkey=user_config.passkey)
        url = await provider.resolve_download(source, request)

        log.info(
            "download_resolved",
            provider=provider.id,
            torrent_id=torrent_id,
            media_id=request.media_id,
            target=redact_url(url),
        )
        return url
