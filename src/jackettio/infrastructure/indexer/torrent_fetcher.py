"""Fetch indexer download links: magnet redirects or .torrent files.

Jackett download links either redirect to a magnet URI or return the
.torrent body. Bodies are kept in a temp folder so the download step does
not have to fetch them again; a background job prunes the folder.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import re
import time
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

import bencodepy
import httpx
import structlog

from jackettio.domain.entities.errors import TorrentNotFound
from jackettio.domain.entities.stremio import IndexerRelease, TorrentSource
from jackettio.infrastructure.redaction import describe_http_error

log = structlog.get_logger(__name__)

_BTIH_RE = re.compile(r"urn:btih:([0-9a-zA-Z]+)", re.IGNORECASE)
_MAX_REDIRECTS = 3


def info_hash_from_magnet(magnet_uri: str) -> str:
    """Lower-case hex info hash of a magnet URI ('' if absent or malformed)."""
    m = _BTIH_RE.search(magnet_uri or "")
    if not m:
        return ""
    value = m.group(1)
    if len(value) == 40:
        return value.lower()
    if len(value) == 32:
        try:
            return base64.b32decode(value.upper()).hex()
        except ValueError:
            return ""
    return ""


def info_hash_from_torrent(data: bytes) -> str:
    """SHA-1 of the bencoded ``info`` dict ('' if *data* is not a torrent)."""
    try:
        meta = bencodepy.decode(data)
    except (bencodepy.BencodeDecodeError, ValueError, TypeError):
        return ""
    info = meta.get(b"info") if isinstance(meta, dict) else None
    if not isinstance(info, dict):
        return ""
    return hashlib.sha1(bencodepy.encode(info)).hexdigest()


def _fetch_error(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPError):
        return describe_http_error(exc)
    return "redirect without location"


class TorrentFetcher:
    """Resolves missing info hashes and produces ``TorrentSource`` values.

    Args:
        http_client: Shared client (redirects are handled here, not by httpx).
        temp_dir: Folder for downloaded .torrent files.
        max_concurrent: Max parallel link fetches per request.
        timeout: Per-fetch timeout (seconds).
        passkey_placeholder: Server passkey embedded in Jackett links; a
            user passkey replaces it at download time. Empty disables it.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        temp_dir: Path,
        max_concurrent: int = 5,
        timeout: float = 10.0,
        passkey_placeholder: str = "",
    ) -> None:
        self._http = http_client
        self._temp_dir = temp_dir
        self._max_concurrent = max(1, max_concurrent)
        self._timeout = timeout
        self._passkey_placeholder = passkey_placeholder

    def _file_for(self, torrent_id: str) -> Path:
        return self._temp_dir / f"{torrent_id}.torrent"

    async def _download(self, link: str) -> tuple[str, bytes | None]:
        """Follow *link* up to a magnet URI or a torrent body.

        Returns ``(magnet_uri, None)`` or ``("", body)``.
        """
        url = link
        for _ in range(_MAX_REDIRECTS + 1):
            if url.startswith("magnet:"):
                return url, None
            resp = await self._http.get(url, follow_redirects=False, timeout=self._timeout)
            if resp.is_redirect:
                location = resp.headers["location"]
                url = location if location.startswith("magnet:") else str(resp.url.join(location))
                continue
            resp.raise_for_status()
            return "", resp.content
        raise httpx.TooManyRedirects(f"more than {_MAX_REDIRECTS} redirects", request=None)

    async def _resolve_one(self, release: IndexerRelease) -> IndexerRelease:
        if release.info_hash or not release.link:
            return release
        try:
            magnet, body = await self._download(release.link)
        except (httpx.HTTPError, KeyError) as e:
            log.warning(
                "torrent_fetch_failed",
                torrent_id=release.torrent_id,
                indexer=release.indexer,
                error=_fetch_error(e),
            )
            return release

        if magnet:
            return replace(release, magnet_uri=magnet, info_hash=info_hash_from_magnet(magnet))

        assert body is not None
        info_hash = info_hash_from_torrent(body)
        if not info_hash:
            log.warning("torrent_body_invalid", torrent_id=release.torrent_id)
            return release
        await asyncio.to_thread(self._save, self._file_for(release.torrent_id), body)
        return replace(release, info_hash=info_hash)

    @staticmethod
    def _save(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def resolve_hashes(self, releases: Sequence[IndexerRelease]) -> list[IndexerRelease]:
        """Fill in info hashes for releases that only carry a download link.

        Order is preserved; releases whose link cannot be fetched are
        returned unchanged (hashless).
        """
        sem = asyncio.Semaphore(self._max_concurrent)

        async def bounded(r: IndexerRelease) -> IndexerRelease:
            async with sem:
                return await self._resolve_one(r)

        resolved = await asyncio.gather(*(bounded(r) for r in releases))
        fetched = sum(1 for a, b in zip(releases, resolved) if a is not b)
        if fetched:
            log.info("torrent_hashes_resolved", fetched=fetched, total=len(releases))
        return list(resolved)

    def _with_passkey(self, release: IndexerRelease, passkey: str) -> IndexerRelease | None:
        """Copy of *release* carrying *passkey*, or ``None`` if nothing changes."""
        placeholder = self._passkey_placeholder
        if not placeholder or not passkey:
            return None
        if placeholder not in release.link and placeholder not in release.magnet_uri:
            return None
        return replace(
            release,
            link=release.link.replace(placeholder, passkey),
            magnet_uri=release.magnet_uri.replace(placeholder, passkey),
        )

    async def source_for(self, release: IndexerRelease, *, passkey: str = "") -> TorrentSource:
        """Magnet if known, else the cached or re-downloaded .torrent file.

        With a user *passkey* and a link carrying the server passkey, the
        link is rewritten and fetched fresh; the result is not kept in the
        shared temp folder.

        Raises:
            TorrentNotFound: no magnet, no file and the link cannot be fetched.
        """
        personal = self._with_passkey(release, passkey)
        if personal is not None:
            release = personal

        if release.magnet_uri:
            return TorrentSource(
                torrent_id=release.torrent_id,
                magnet_uri=release.magnet_uri,
                info_hash=release.info_hash or info_hash_from_magnet(release.magnet_uri),
            )

        path = self._file_for(release.torrent_id)
        if personal is None and path.exists():
            data = await asyncio.to_thread(path.read_bytes)
            return TorrentSource(
                torrent_id=release.torrent_id, torrent_file=data, info_hash=release.info_hash
            )

        if not release.link:
            raise TorrentNotFound(f"no magnet or link for {release.torrent_id}")
        try:
            magnet, body = await self._download(release.link)
        except (httpx.HTTPError, KeyError) as e:
            raise TorrentNotFound(f"cannot fetch {release.torrent_id}: {_fetch_error(e)}") from e
        if magnet:
            return TorrentSource(
                torrent_id=release.torrent_id,
                magnet_uri=magnet,
                info_hash=info_hash_from_magnet(magnet),
            )
        assert body is not None
        if personal is None:
            await asyncio.to_thread(self._save, path, body)
        return TorrentSource(
            torrent_id=release.torrent_id,
            torrent_file=body,
            info_hash=info_hash_from_torrent(body),
        )

    async def clean_folder(self, max_age_seconds: float) -> int:
        """Delete .torrent files older than *max_age_seconds*."""
        removed = await asyncio.to_thread(self._clean_sync, max_age_seconds)
        if removed:
            log.info("torrent_folder_cleaned", removed=removed, path=str(self._temp_dir))
        return removed

    def _clean_sync(self, max_age_seconds: float) -> int:
        if not self._temp_dir.exists():
            return 0
        cutoff = time.time() - max_age_seconds
        removed = 0
        for path in self._temp_dir.glob("*.torrent"):
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except FileNotFoundError:
                continue
        return removed
