"""Tests for HttpxDebridBase: batching, early stop, uncached handling, file choice."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest

from jackettio.domain.entities.errors import DebridError, DebridErrorKind, UnknownProvider
from jackettio.domain.entities.stremio import (
    DebridFile,
    StreamQuality,
    TorrentSource,
)
from jackettio.domain.entities.user_config import UserConfig
from jackettio.infrastructure.config.schema import DebridConfig
from jackettio.infrastructure.debrid import DebridRegistry, HttpxDebridBase, RealDebrid


class _FakeProvider(HttpxDebridBase):
    id = "fake"
    name = "Fake"
    short_name = "FK"

    def __init__(self, *, cached: set[str], files: list[DebridFile] | None = None, **kw: Any):
        super().__init__(httpx.AsyncClient(), api_key="k", **kw)
        self.cached = cached
        self.files = files or []
        self.batches: list[list[str]] = []

    async def _check_cached(self, hashes: list[str]) -> set[str]:
        self.batches.append(hashes)
        await asyncio.sleep(0)
        return {h for h in hashes if h in self.cached}

    async def _fetch_files(self, source: TorrentSource) -> list[DebridFile]:
        return self.files

    def _classify(self, status: int, data: Any) -> DebridErrorKind | None:
        return None


def _link(release) -> str:
    return f"http://addon/dl/{release.torrent_id}"


async def _collect(provider, candidates, request, **kwargs) -> list:
    params = {
        "max_results": 10,
        "quality_threshold": StreamQuality.UNKNOWN,
        "include_uncached": True,
    }
    params.update(kwargs)
    return [
        r
        async for r in provider.resolve_streams(
            candidates, request=request, link_for=_link, **params
        )
    ]


class TestResolveStreams:
    @pytest.mark.asyncio
    async def test_marks_cached_and_uncached(self, release_factory, movie_request) -> None:
        releases = [release_factory(1), release_factory(2)]
        provider = _FakeProvider(cached={releases[0].info_hash})

        records = await _collect(provider, releases, movie_request)

        by_id = {r.torrent_id: r for r in records}
        assert by_id["t1"].cached is True
        assert by_id["t2"].cached is False
        assert by_id["t1"].provider == "FK"
        assert by_id["t1"].url == "http://addon/dl/t1"
        assert by_id["t1"].media_id == "tt0133093"

    @pytest.mark.asyncio
    async def test_uncached_dropped_when_not_requested(
        self, release_factory, movie_request
    ) -> None:
        releases = [release_factory(1), release_factory(2)]
        provider = _FakeProvider(cached={releases[0].info_hash})
        records = await _collect(provider, releases, movie_request, include_uncached=False)
        assert [r.torrent_id for r in records] == ["t1"]

    @pytest.mark.asyncio
    async def test_hashless_candidates_are_never_cached(
        self, release_factory, movie_request
    ) -> None:
        releases = [release_factory(1, info_hash=""), release_factory(2)]
        provider = _FakeProvider(cached={releases[1].info_hash})

        records = await _collect(provider, releases, movie_request)
        assert [(r.torrent_id, r.cached) for r in records] == [("t2", True), ("t1", False)]

        records = await _collect(provider, releases, movie_request, include_uncached=False)
        assert [r.torrent_id for r in records] == ["t2"]

    @pytest.mark.asyncio
    async def test_batches_by_batch_size(self, release_factory, movie_request) -> None:
        releases = [release_factory(i) for i in range(5)]
        provider = _FakeProvider(cached=set(), batch_size=2)
        await _collect(provider, releases, movie_request)
        assert sorted(len(b) for b in provider.batches) == [1, 2, 2]

    @pytest.mark.asyncio
    async def test_early_stop_after_enough_good_streams(
        self, release_factory, movie_request
    ) -> None:
        releases = [release_factory(i) for i in range(6)]
        provider = _FakeProvider(
            cached={r.info_hash for r in releases}, batch_size=1, fan_out=1
        )

        records = await _collect(
            provider,
            releases,
            movie_request,
            max_results=2,
            quality_threshold=StreamQuality.P1080,
        )

        assert len(records) == 2
        assert len(provider.batches) < len(releases)

    @pytest.mark.asyncio
    async def test_low_quality_does_not_count_towards_early_stop(
        self, release_factory, movie_request
    ) -> None:
        releases = [release_factory(i, quality=StreamQuality.P480) for i in range(4)]
        provider = _FakeProvider(cached={r.info_hash for r in releases}, batch_size=1)
        records = await _collect(
            provider,
            releases,
            movie_request,
            max_results=1,
            quality_threshold=StreamQuality.P1080,
        )
        assert len(records) == 4

    @pytest.mark.asyncio
    async def test_malformed_reply_becomes_debrid_error(
        self, release_factory, movie_request
    ) -> None:
        class Broken(_FakeProvider):
            async def _check_cached(self, hashes: list[str]) -> set[str]:
                return {}["missing"]

        with pytest.raises(DebridError) as exc_info:
            await _collect(Broken(cached=set()), [release_factory(1)], movie_request)
        assert exc_info.value.kind is DebridErrorKind.UNCLASSIFIED


class TestResolveDownload:
    @pytest.mark.asyncio
    async def test_movie_picks_largest_video(self, movie_request) -> None:
        provider = _FakeProvider(
            cached=set(),
            files=[
                DebridFile("Movie/sample.mkv", 50, "https://cdn/sample"),
                DebridFile("Movie/Movie.2020.1080p.mkv", 4_000, "https://cdn/main"),
                DebridFile("Movie/extras.nfo", 9_000, "https://cdn/nfo"),
            ],
        )
        url = await provider.resolve_download(TorrentSource("t1", magnet_uri="magnet:?"), movie_request)
        assert url == "https://cdn/main"

    @pytest.mark.asyncio
    async def test_series_picks_matching_episode(self, series_request) -> None:
        provider = _FakeProvider(
            cached=set(),
            files=[
                DebridFile("Show.S01E04.1080p.mkv", 2_000, "https://cdn/e4"),
                DebridFile("Show.S01E05.1080p.mkv", 1_000, "https://cdn/e5"),
                DebridFile("Show.S01E06.1080p.mkv", 3_000, "https://cdn/e6"),
            ],
        )
        url = await provider.resolve_download(TorrentSource("t1", magnet_uri="magnet:?"), series_request)
        assert url == "https://cdn/e5"

    @pytest.mark.asyncio
    async def test_series_pack_without_episode_fails(self, series_request) -> None:
        provider = _FakeProvider(
            cached=set(),
            files=[
                DebridFile("Show.S01E01.mkv", 1, "a"),
                DebridFile("Show.S01E02.mkv", 1, "b"),
            ],
        )
        with pytest.raises(DebridError):
            await provider.resolve_download(TorrentSource("t1", magnet_uri="magnet:?"), series_request)

    @pytest.mark.asyncio
    async def test_empty_torrent_fails(self, movie_request) -> None:
        provider = _FakeProvider(cached=set(), files=[])
        with pytest.raises(DebridError):
            await provider.resolve_download(TorrentSource("t1", magnet_uri="magnet:?"), movie_request)


class TestRegistry:
    def test_instantiate_known_provider(self) -> None:
        registry = DebridRegistry(httpx.AsyncClient(), DebridConfig())
        provider = registry.instantiate(
            UserConfig(debrid_id="realdebrid", debrid_api_key="k").with_ip("1.2.3.4")
        )
        assert isinstance(provider, RealDebrid)
        assert provider.short_name == "RD"

    def test_unknown_provider(self) -> None:
        registry = DebridRegistry(httpx.AsyncClient(), DebridConfig())
        assert "torbox" not in registry
        with pytest.raises(UnknownProvider):
            registry.instantiate(UserConfig(debrid_id="torbox"))

    def test_list_descriptors(self) -> None:
        registry = DebridRegistry(httpx.AsyncClient(), DebridConfig())
        ids = [d["id"] for d in registry.list()]
        assert ids == ["alldebrid", "realdebrid", "debridlink", "premiumize"]
        assert all(d["configUrl"].startswith("https://") for d in registry.list())

    def test_provider_without_id_is_rejected(self) -> None:
        class Anonymous(HttpxDebridBase):
            pass

        with pytest.raises(ValueError):
            DebridRegistry(httpx.AsyncClient(), DebridConfig(), providers=[Anonymous])

