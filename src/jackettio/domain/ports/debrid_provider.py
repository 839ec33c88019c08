"""Port for debrid providers (cached-download services)."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Sequence
from typing import Protocol, runtime_checkable

from jackettio.domain.entities.stremio import (
    IndexerRelease,
    MediaRequest,
    StreamQuality,
    StreamRecord,
    TorrentSource,
)

# Builds the deferred download URL a stream entry points at.
LinkBuilder = Callable[[IndexerRelease], str]


@runtime_checkable
class DebridProviderPort(Protocol):
    """Capabilities every debrid variant exposes.

    Both resolution methods fail with ``DebridError`` only; the provider's
    native error vocabulary never crosses this boundary.
    """

    id: str
    name: str
    short_name: str

    def resolve_streams(
        self,
        candidates: Sequence[IndexerRelease],
        *,
        request: MediaRequest,
        link_for: LinkBuilder,
        max_results: int,
        quality_threshold: StreamQuality,
        include_uncached: bool,
    ) -> AsyncIterator[StreamRecord]:
        """Yield stream records, stopping early once enough were found."""
        ...

    async def resolve_download(
        self, source: TorrentSource, request: MediaRequest
    ) -> str:
        """Return a direct URL for the file matching *request*."""
        ...
