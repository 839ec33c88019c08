"""Jackett (Torznab) indexer client."""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Sequence
from dataclasses import replace
from typing import Any
from xml.etree import ElementTree as ET

import httpx
import structlog

from jackettio.domain.entities.errors import IndexerUnavailable
from jackettio.domain.entities.stremio import (
    IndexerInfo,
    IndexerRelease,
    MediaRequest,
    MediaType,
)
from jackettio.domain.ports.cache import CachePort
from jackettio.infrastructure.redaction import describe_http_error
from jackettio.infrastructure.stremio.release_parser import parse_languages, parse_quality

from .torrent_fetcher import info_hash_from_magnet

log = structlog.get_logger(__name__)

TORZNAB_NS = "http://torznab.com/schemas/2015/feed"
_ATTR = f"{{{TORZNAB_NS}}}attr"


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def torrent_id_for(indexer: str, guid: str) -> str:
    """Stable id of a release across searches."""
    return hashlib.sha1(f"{indexer}:{guid}".encode()).hexdigest()


def _check_error(root: ET.Element) -> None:
    if root.tag == "error":
        raise IndexerUnavailable(
            f"torznab error {root.get('code')}: {root.get('description', '')}"
        )


def parse_torznab_results(xml_text: str, indexer_id: str) -> list[IndexerRelease]:
    """Parse a Torznab RSS document into releases (positions start at 0).

    Raises:
        IndexerUnavailable: malformed XML or a Torznab ``<error>`` reply.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise IndexerUnavailable(f"invalid torznab XML from {indexer_id}: {e}") from e
    _check_error(root)

    releases: list[IndexerRelease] = []
    for item in root.iter("item"):
        title = (item.findtext("title") or "").strip()
        if not title:
            continue

        attrs = {a.get("name", ""): a.get("value", "") for a in item.iter(_ATTR)}
        link = (item.findtext("link") or "").strip()
        if not link:
            enclosure = item.find("enclosure")
            link = enclosure.get("url", "") if enclosure is not None else ""

        magnet = attrs.get("magneturl", "")
        if not magnet and link.startswith("magnet:"):
            magnet = link
        info_hash = attrs.get("infohash", "").lower() or info_hash_from_magnet(magnet)

        indexer_el = item.find("jackettindexer")
        indexer = indexer_id
        if indexer_el is not None:
            indexer = indexer_el.get("id") or indexer_el.text or indexer_id

        guid = (item.findtext("guid") or link or title).strip()
        releases.append(
            IndexerRelease(
                torrent_id=torrent_id_for(indexer, guid),
                title=title,
                indexer=indexer,
                link=link,
                magnet_uri=magnet,
                info_hash=info_hash,
                size=_to_int(item.findtext("size") or attrs.get("size")),
                seeders=_to_int(attrs.get("seeders")),
                peers=_to_int(attrs.get("peers")),
                quality=parse_quality(title),
                languages=parse_languages(title),
                position=len(releases),
            )
        )
    return releases


def parse_torznab_indexers(xml_text: str) -> list[IndexerInfo]:
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise IndexerUnavailable(f"invalid indexer list XML: {e}") from e
    _check_error(root)

    indexers: list[IndexerInfo] = []
    for el in root.iter("indexer"):
        types: list[MediaType] = []
        searching = el.find("caps/searching")
        if searching is not None:
            movie = searching.find("movie-search")
            if movie is not None and movie.get("available") == "yes":
                types.append("movie")
            tv = searching.find("tv-search")
            if tv is not None and tv.get("available") == "yes":
                types.append("series")
        indexers.append(
            IndexerInfo(
                id=el.get("id", ""),
                title=(el.findtext("title") or el.get("id", "")).strip(),
                types=types,
            )
        )
    return indexers


class JackettIndexer:
    """Queries Jackett's Torznab endpoints.

    One request per enabled indexer, bounded by ``max_concurrent``. Results
    are cached per indexer and media id for ``cache_ttl`` seconds. A search
    fails only when every indexer failed.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        url: str,
        api_key: str,
        cache: CachePort | None = None,
        cache_ttl: int = 3600,
        max_concurrent: int = 5,
    ) -> None:
        self._http = http_client
        self._url = url.rstrip("/")
        self._api_key = api_key
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._max_concurrent = max(1, max_concurrent)

    def _endpoint(self, indexer_id: str) -> str:
        return f"{self._url}/api/v2.0/indexers/{indexer_id}/results/torznab/api"

    async def list_indexers(self) -> list[IndexerInfo]:
        try:
            resp = await self._http.get(
                self._endpoint("all"),
                params={"apikey": self._api_key, "t": "indexers", "configured": "true"},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise IndexerUnavailable(f"cannot list indexers: {describe_http_error(e)}") from e
        return parse_torznab_indexers(resp.text)

    @staticmethod
    def _query_params(request: MediaRequest) -> dict[str, str]:
        if request.media_type == "series":
            params = {"t": "tvsearch", "imdbid": request.imdb_id}
            if request.season is not None:
                params["season"] = str(request.season)
            if request.episode is not None:
                params["ep"] = str(request.episode)
            return params
        return {"t": "movie", "imdbid": request.imdb_id}

    async def _resolve_indexers(
        self, request: MediaRequest, indexers: Sequence[str]
    ) -> list[str]:
        if indexers and "all" not in indexers:
            return list(indexers)
        available = await self.list_indexers()
        return [i.id for i in available if request.media_type in i.types]

    async def _cache_get(self, key: str) -> list[IndexerRelease] | None:
        if self._cache is None or self._cache_ttl <= 0:
            return None
        try:
            return await self._cache.get(key)
        except Exception:
            log.warning("indexer_cache_get_failed", key=key, exc_info=True)
            return None

    async def _cache_set(self, key: str, value: list[IndexerRelease]) -> None:
        if self._cache is None or self._cache_ttl <= 0:
            return
        try:
            await self._cache.set(key, value, ttl=self._cache_ttl)
        except Exception:
            log.warning("indexer_cache_set_failed", key=key, exc_info=True)

    async def _search_one(
        self, indexer_id: str, request: MediaRequest, timeout: float
    ) -> list[IndexerRelease]:
        key = f"jackett:{indexer_id}:{request.media_type}:{request.media_id}"
        cached = await self._cache_get(key)
        if cached is not None:
            log.debug("indexer_cache_hit", indexer=indexer_id, media_id=request.media_id)
            return cached

        try:
            resp = await self._http.get(
                self._endpoint(indexer_id),
                params={"apikey": self._api_key, **self._query_params(request)},
                timeout=timeout,
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise IndexerUnavailable(f"{indexer_id}: {describe_http_error(e)}") from e

        releases = parse_torznab_results(resp.text, indexer_id)
        await self._cache_set(key, releases)
        return releases

    async def search(
        self,
        request: MediaRequest,
        *,
        indexers: Sequence[str],
        timeout: float,
    ) -> list[IndexerRelease]:
        """Search all enabled indexers for *request*.

        Results are concatenated in indexer order and renumbered so
        ``position`` reflects the merged response order.

        Raises:
            IndexerUnavailable: the indexer list cannot be fetched or every
                indexer query failed.
        """
        ids = await self._resolve_indexers(request, indexers)
        if not ids:
            log.info("indexer_none_enabled", media_type=request.media_type)
            return []

        sem = asyncio.Semaphore(self._max_concurrent)

        async def bounded(indexer_id: str) -> list[IndexerRelease]:
            async with sem:
                return await self._search_one(indexer_id, request, timeout)

        outcomes = await asyncio.gather(*(bounded(i) for i in ids), return_exceptions=True)

        merged: list[IndexerRelease] = []
        seen: set[str] = set()
        failed = 0
        for indexer_id, outcome in zip(ids, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, IndexerUnavailable):
                    raise outcome
                failed += 1
                log.warning("indexer_query_failed", indexer=indexer_id, error=str(outcome))
                continue
            for r in outcome:
                if r.torrent_id in seen:
                    continue
                seen.add(r.torrent_id)
                merged.append(r)

        if failed == len(ids):
            raise IndexerUnavailable(f"all {failed} indexer(s) failed")

        log.info(
            "indexer_search_done",
            media_id=request.media_id,
            indexers=len(ids),
            failed=failed,
            results=len(merged),
        )
        return [replace(r, position=i) for i, r in enumerate(merged)]
