"""Port for turning indexer releases into addable torrent sources."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from jackettio.domain.entities.stremio import IndexerRelease, TorrentSource


@runtime_checkable
class TorrentFetcherPort(Protocol):
    async def resolve_hashes(
        self, releases: Sequence[IndexerRelease]
    ) -> list[IndexerRelease]: ...

    async def source_for(
        self, release: IndexerRelease, *, passkey: str = ""
    ) -> TorrentSource: ...
