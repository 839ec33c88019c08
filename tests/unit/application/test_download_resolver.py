"""Tests for DownloadResolver."""

from __future__ import annotations

from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest

from jackettio.application.use_cases.download_resolver import DownloadResolver
from jackettio.domain.entities.errors import (
    DebridError,
    DebridErrorKind,
    IndexerUnavailable,
    TorrentNotFound,
    UnknownProvider,
)
from jackettio.domain.entities.stremio import TorrentSource


@pytest.fixture()
def provider() -> MagicMock:
    provider = MagicMock()
    provider.id = "realdebrid"
    provider.resolve_download = AsyncMock(return_value="https://cdn.example.com/file.mkv")
    return provider


@pytest.fixture()
def resolver(mock_indexer, mock_fetcher, mock_store, provider) -> DownloadResolver:
    registry = MagicMock()
    registry.instantiate.return_value = provider
    mock_fetcher.source_for.side_effect = lambda release, **kw: TorrentSource(
        release.torrent_id, magnet_uri=release.magnet_uri or "magnet:?xt=urn:btih:x"
    )
    return DownloadResolver(
        indexer=mock_indexer, fetcher=mock_fetcher, registry=registry, store=mock_store
    )


class TestGetDownload:
    @pytest.mark.asyncio
    async def test_stored_record_is_used(
        self, resolver, mock_store, mock_indexer, provider, record_factory, user_config
    ) -> None:
        mock_store.find.return_value = record_factory(3, magnet_uri="magnet:?xt=urn:btih:abc")

        url = await resolver.get_download(user_config, "movie", "tt0133093", "t3")

        assert url == "https://cdn.example.com/file.mkv"
        mock_store.find.assert_called_once_with("movie", "tt0133093", "t3")
        mock_indexer.search.assert_not_awaited()
        source, request = provider.resolve_download.call_args.args
        assert source.magnet_uri == "magnet:?xt=urn:btih:abc"
        assert request.media_id == "tt0133093"

    @pytest.mark.asyncio
    async def test_falls_back_to_indexer(
        self, resolver, mock_indexer, release_factory, user_config
    ) -> None:
        mock_indexer.search.return_value = [release_factory(1), release_factory(2)]
        url = await resolver.get_download(user_config, "movie", "tt0133093", "t2")
        assert url == "https://cdn.example.com/file.mkv"
        mock_indexer.search.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_user_passkey_reaches_fetcher(
        self, resolver, mock_store, mock_fetcher, record_factory, user_config
    ) -> None:
        mock_store.find.return_value = record_factory(4)
        await resolver.get_download(
            replace(user_config, passkey="USERKEY"), "movie", "tt0133093", "t4"
        )
        assert mock_fetcher.source_for.call_args.kwargs == {"passkey": "USERKEY"}

    @pytest.mark.asyncio
    async def test_unknown_torrent(self, resolver, mock_indexer, release_factory, user_config) -> None:
        mock_indexer.search.return_value = [release_factory(1)]
        with pytest.raises(TorrentNotFound):
            await resolver.get_download(user_config, "movie", "tt0133093", "t9")

    @pytest.mark.asyncio
    async def test_indexer_down_is_not_found(self, resolver, mock_indexer, user_config) -> None:
        mock_indexer.search.side_effect = IndexerUnavailable("down")
        with pytest.raises(TorrentNotFound):
            await resolver.get_download(user_config, "movie", "tt0133093", "t1")

    @pytest.mark.asyncio
    async def test_bad_media_id(self, resolver, user_config) -> None:
        with pytest.raises(TorrentNotFound):
            await resolver.get_download(user_config, "movie", "tt0133093:1:2", "t1")

    @pytest.mark.asyncio
    async def test_unknown_provider_propagates(
        self, mock_indexer, mock_fetcher, mock_store, user_config
    ) -> None:
        registry = MagicMock()
        registry.instantiate.side_effect = UnknownProvider("torbox")
        resolver = DownloadResolver(
            indexer=mock_indexer, fetcher=mock_fetcher, registry=registry, store=mock_store
        )
        with pytest.raises(UnknownProvider):
            await resolver.get_download(user_config, "movie", "tt0133093", "t1")

    @pytest.mark.asyncio
    async def test_debrid_error_propagates(
        self, resolver, mock_store, provider, record_factory, user_config
    ) -> None:
        mock_store.find.return_value = record_factory(1)
        provider.resolve_download.side_effect = DebridError(DebridErrorKind.NOT_READY)
        with pytest.raises(DebridError) as exc_info:
            await resolver.get_download(user_config, "movie", "tt0133093", "t1")
        assert exc_info.value.kind is DebridErrorKind.NOT_READY
