"""Port for the torrent indexer."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from jackettio.domain.entities.stremio import IndexerInfo, IndexerRelease, MediaRequest


@runtime_checkable
class IndexerPort(Protocol):
    """Searches release metadata. Raises ``IndexerUnavailable`` on failure."""

    async def search(
        self,
        request: MediaRequest,
        *,
        indexers: Sequence[str],
        timeout: float,
    ) -> list[IndexerRelease]: ...

    async def list_indexers(self) -> list[IndexerInfo]: ...
