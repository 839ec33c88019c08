"""Shared base class for httpx-based debrid providers.

Subclasses talk to one debrid service. They only implement the wire calls
(availability check, add + list files, unrestrict) and the mapping of the
service's native errors to ``DebridErrorKind``; batching, fan-out, early
stop and file selection live here.

Subclasses **must** set ``id``, ``name``, ``short_name``, ``base_url``
and override ``_check_cached()``, ``_fetch_files()``, ``_classify()``.
They **may** override ``_unrestrict()`` (default: the file ref is already
a direct link), ``_auth_headers()`` and ``_auth_params()``.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from pathlib import PurePosixPath
from typing import Any

import httpx
import structlog

from jackettio.domain.entities.errors import DebridError, DebridErrorKind
from jackettio.domain.entities.stremio import (
    DebridFile,
    IndexerRelease,
    MediaRequest,
    StreamQuality,
    StreamRecord,
    TorrentSource,
)
from jackettio.domain.ports.debrid_provider import LinkBuilder
from jackettio.infrastructure.redaction import describe_http_error
from jackettio.infrastructure.stremio.release_parser import is_video_file, parse_episode

DEFAULT_USER_AGENT = "jackettio"


class HttpxDebridBase:
    """Shared base for debrid providers.

    Args:
        http_client: Pooled client (carries no credentials).
        api_key: The user's provider key.
        ip: Requesting client IP, forwarded where the provider wants it.
        timeout: Per-call timeout (seconds).
        fan_out: Max concurrent availability batches.
        batch_size: Info hashes per availability call.
    """

    id: str = ""
    name: str = ""
    short_name: str = ""
    base_url: str = ""
    configure_url: str = ""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        api_key: str,
        ip: str = "",
        timeout: float = 30.0,
        fan_out: int = 3,
        batch_size: int = 25,
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._ip = ip
        self._timeout = timeout
        self._fan_out = max(1, fan_out)
        self._batch_size = max(1, batch_size)
        self._log = structlog.get_logger(self.id or __name__)

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    async def _check_cached(self, hashes: list[str]) -> set[str]:
        """Return the lower-cased subset of *hashes* instantly available."""
        raise NotImplementedError

    async def _fetch_files(self, source: TorrentSource) -> list[DebridFile]:
        """Add *source* and list its files.

        Raises ``DebridError(NOT_READY)`` while the provider is still
        downloading the torrent.
        """
        raise NotImplementedError

    async def _unrestrict(self, file: DebridFile) -> str:
        return file.ref

    def _classify(self, status: int, data: Any) -> DebridErrorKind | None:
        """Map a response to an error kind, or ``None`` if it is a success."""
        raise NotImplementedError

    def _auth_headers(self) -> dict[str, str]:
        return {}

    def _auth_params(self) -> dict[str, str]:
        return {}

    # ------------------------------------------------------------------
    # HTTP helper
    # ------------------------------------------------------------------

    async def _call(
        self,
        method: str,
        path: str,
        *,
        context: str,
        params: dict[str, Any] | list[tuple[str, Any]] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Perform one API call and return the decoded JSON body.

        Every failure leaves as ``DebridError``: transport errors and
        timeouts as ``UNCLASSIFIED``, error payloads via ``_classify``.
        """
        if isinstance(params, list):
            query: Any = [*self._auth_params().items(), *params]
        else:
            query = {**self._auth_params(), **(params or {})}

        try:
            resp = await self._http.request(
                method,
                f"{self.base_url}{path}",
                params=query,
                headers={"User-Agent": DEFAULT_USER_AGENT, **self._auth_headers()},
                timeout=self._timeout,
                **kwargs,
            )
        except httpx.TimeoutException as e:
            self._log.warning(f"{self.id}_timeout", context=context)
            raise DebridError(detail=f"{context}: timeout", provider=self.id) from e
        except httpx.HTTPError as e:
            error = describe_http_error(e)
            self._log.warning(f"{self.id}_transport_error", context=context, error=error)
            raise DebridError(detail=f"{context}: {error}", provider=self.id) from e

        try:
            data = resp.json() if resp.content else None
        except ValueError:
            data = None

        kind = self._classify(resp.status_code, data)
        if kind is None and resp.status_code >= 400:
            kind = DebridErrorKind.UNCLASSIFIED
        if kind is not None:
            self._log.warning(
                f"{self.id}_api_error",
                context=context,
                status=resp.status_code,
                kind=kind.value,
            )
            raise DebridError(kind, f"{context}: HTTP {resp.status_code}", provider=self.id)
        return data

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def _to_record(
        self,
        release: IndexerRelease,
        *,
        request: MediaRequest,
        link_for: LinkBuilder,
        cached: bool,
    ) -> StreamRecord:
        return StreamRecord(
            media_type=request.media_type,
            media_id=request.media_id,
            torrent_id=release.torrent_id,
            title=release.title,
            provider=self.short_name,
            url=link_for(release),
            quality=release.quality,
            languages=release.languages,
            size=release.size,
            seeders=release.seeders,
            indexer=release.indexer,
            cached=cached,
            info_hash=release.info_hash,
            magnet_uri=release.magnet_uri,
            torrent_link=release.link,
            position=release.position,
        )

    async def resolve_streams(
        self,
        candidates: Sequence[IndexerRelease],
        *,
        request: MediaRequest,
        link_for: LinkBuilder,
        max_results: int,
        quality_threshold: StreamQuality,
        include_uncached: bool,
    ) -> AsyncIterator[StreamRecord]:
        """Yield stream records as availability batches complete.

        Stops once ``max_results`` cached streams at or above
        ``quality_threshold`` were yielded; outstanding batches are
        cancelled. Candidates without an info hash are never cached.
        """
        hashed = [c for c in candidates if c.info_hash]
        batches = [
            hashed[i : i + self._batch_size]
            for i in range(0, len(hashed), self._batch_size)
        ]
        sem = asyncio.Semaphore(self._fan_out)

        async def check(batch: list[IndexerRelease]) -> tuple[list[IndexerRelease], set[str]]:
            async with sem:
                try:
                    available = await self._check_cached([c.info_hash for c in batch])
                except (KeyError, IndexError, TypeError, AttributeError) as e:
                    raise DebridError(
                        detail=f"unexpected availability response: {e!r}", provider=self.id
                    ) from e
                return batch, available

        tasks = [asyncio.ensure_future(check(b)) for b in batches]
        good = 0
        try:
            for next_done in asyncio.as_completed(tasks):
                batch, available = await next_done
                for c in batch:
                    is_cached = c.info_hash.lower() in available
                    if not is_cached and not include_uncached:
                        continue
                    yield self._to_record(
                        c, request=request, link_for=link_for, cached=is_cached
                    )
                    if is_cached and c.quality >= quality_threshold:
                        good += 1
                        if good >= max_results:
                            self._log.info(
                                f"{self.id}_early_stop",
                                found=good,
                                pending_batches=sum(1 for t in tasks if not t.done()),
                            )
                            return

            if include_uncached:
                for c in candidates:
                    if not c.info_hash:
                        yield self._to_record(
                            c, request=request, link_for=link_for, cached=False
                        )
        finally:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def resolve_download(self, source: TorrentSource, request: MediaRequest) -> str:
        try:
            files = await self._fetch_files(source)
            chosen = self._select_file(files, request)
            url = await self._unrestrict(chosen)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise DebridError(
                detail=f"unexpected response: {e!r}", provider=self.id
            ) from e
        if not url:
            raise DebridError(detail="empty download link", provider=self.id)
        return url

    def _select_file(self, files: Sequence[DebridFile], request: MediaRequest) -> DebridFile:
        """Largest video for movies; the matching SxxEyy for series."""
        videos = [f for f in files if is_video_file(f.name)] or list(files)
        if not videos:
            raise DebridError(detail="torrent has no files", provider=self.id)

        if request.media_type == "series" and request.episode is not None:
            for f in sorted(videos, key=lambda f: f.size, reverse=True):
                season, episode = parse_episode(PurePosixPath(f.name).name)
                if episode == request.episode and season in (None, request.season):
                    return f
            if len(videos) > 1:
                raise DebridError(
                    detail=f"episode {request.media_id} not found in torrent",
                    provider=self.id,
                )
        return max(videos, key=lambda f: f.size)
