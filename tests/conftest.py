"""Shared test fixtures for Jackettio test suite."""

from __future__ import annotations

import base64
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from jackettio.domain.entities.stremio import (
    IndexerRelease,
    MediaRequest,
    StreamQuality,
    StreamRecord,
)
from jackettio.domain.entities.user_config import UserConfig

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def encode_config(settings: dict[str, Any]) -> str:
    """Base64 blob as the configure page produces it."""
    return base64.b64encode(json.dumps(settings).encode()).decode()


def make_release(
    n: int,
    *,
    quality: StreamQuality = StreamQuality.P1080,
    info_hash: str | None = None,
    **kwargs: Any,
) -> IndexerRelease:
    return IndexerRelease(
        torrent_id=f"t{n}",
        title=kwargs.pop("title", f"Movie.2020.{quality.label}.WEB-DL-GRP{n}"),
        indexer=kwargs.pop("indexer", "yts"),
        info_hash=f"{n:040x}" if info_hash is None else info_hash,
        quality=quality,
        position=n,
        **kwargs,
    )


def make_record(n: int, **kwargs: Any) -> StreamRecord:
    defaults: dict[str, Any] = {
        "media_type": "movie",
        "media_id": "tt0133093",
        "torrent_id": f"t{n}",
        "title": f"Movie.2020.1080p-GRP{n}",
        "provider": "RD",
        "url": f"http://addon/cfg/download/movie/tt0133093/t{n}",
        "quality": StreamQuality.P1080,
        "position": n,
    }
    defaults.update(kwargs)
    return StreamRecord(**defaults)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture()
def config_blob():
    return encode_config


@pytest.fixture()
def release_factory():
    return make_release


@pytest.fixture()
def record_factory():
    return make_record


# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def movie_request() -> MediaRequest:
    return MediaRequest.parse("movie", "tt0133093")


@pytest.fixture()
def series_request() -> MediaRequest:
    return MediaRequest.parse("series", "tt0944947:1:5")


@pytest.fixture()
def user_config() -> UserConfig:
    """Configured for Real-Debrid with every quality enabled."""
    return UserConfig(
        debrid_id="realdebrid",
        debrid_api_key="rd-key",
        qualities=(0, 360, 480, 720, 1080, 2160),
        max_torrents=8,
    )


# ---------------------------------------------------------------------------
# Port mocks
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_indexer() -> AsyncMock:
    indexer = AsyncMock()
    indexer.search.return_value = []
    indexer.list_indexers.return_value = []
    return indexer


@pytest.fixture()
def mock_fetcher() -> AsyncMock:
    fetcher = AsyncMock()

    async def passthrough(releases):
        return list(releases)

    fetcher.resolve_hashes.side_effect = passthrough
    return fetcher


@pytest.fixture()
def mock_store() -> MagicMock:
    store = MagicMock()

    async def append(records):
        return list(records)

    store.append = AsyncMock(side_effect=append)
    store.find.return_value = None
    store.flush = AsyncMock(return_value=0)
    return store
