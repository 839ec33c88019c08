"""Port for stream record persistence."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from jackettio.domain.entities.stremio import StreamRecord


@runtime_checkable
class StreamStorePort(Protocol):
    """Append-only collection of resolved stream records.

    Write failures raise ``StorageUnavailable``.
    """

    async def append(self, records: Sequence[StreamRecord]) -> list[StreamRecord]: ...

    def find(
        self, media_type: str, media_id: str, torrent_id: str
    ) -> StreamRecord | None: ...

    async def flush(self) -> int: ...

    async def vacuum(self) -> None: ...

    async def clean(self, retention_seconds: float) -> int: ...
