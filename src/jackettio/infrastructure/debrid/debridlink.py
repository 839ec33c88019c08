"""Debrid-Link provider (debrid-link.com, API v2)."""

from __future__ import annotations

from typing import Any

from jackettio.domain.entities.errors import DebridError, DebridErrorKind
from jackettio.domain.entities.stremio import DebridFile, TorrentSource

from .base import HttpxDebridBase

_ERROR_KINDS: dict[str, DebridErrorKind] = {
    "badToken": DebridErrorKind.EXPIRED_API_KEY,
    "hidedToken": DebridErrorKind.EXPIRED_API_KEY,
    "notDebrid": DebridErrorKind.NOT_PREMIUM,
    "freeServerOverload": DebridErrorKind.NOT_PREMIUM,
    "accountLocked": DebridErrorKind.ACCESS_DENIED,
    "floodDetected": DebridErrorKind.ACCESS_DENIED,
    "serverNotAllowed": DebridErrorKind.ACCESS_DENIED,
    "unauthorized_client": DebridErrorKind.ACCESS_DENIED,
}


class DebridLink(HttpxDebridBase):
    id = "debridlink"
    name = "Debrid-Link"
    short_name = "DL"
    base_url = "https://debrid-link.com/api/v2"
    configure_url = "https://debrid-link.com/webapp/apikey"

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _classify(self, status: int, data: Any) -> DebridErrorKind | None:
        if isinstance(data, dict) and data.get("success") is False:
            return _ERROR_KINDS.get(str(data.get("error", "")), DebridErrorKind.UNCLASSIFIED)
        return None

    async def _check_cached(self, hashes: list[str]) -> set[str]:
        data = await self._call(
            "GET", "/seedbox/cached", params={"url": ",".join(hashes)}, context="cached"
        )
        value = (data or {}).get("value") or {}
        # "value" is {} (not a list) when nothing is cached
        return {h.lower() for h in value} if isinstance(value, dict) else set()

    async def _fetch_files(self, source: TorrentSource) -> list[DebridFile]:
        if source.is_magnet:
            data = await self._call(
                "POST",
                "/seedbox/add",
                data={"url": source.magnet_uri, "async": "true"},
                context="add",
            )
        elif source.torrent_file:
            data = await self._call(
                "POST",
                "/seedbox/add",
                data={"async": "true"},
                files={
                    "file": (
                        f"{source.torrent_id}.torrent",
                        source.torrent_file,
                        "application/x-bittorrent",
                    )
                },
                context="add_file",
            )
        else:
            raise DebridError(detail="source has neither magnet nor file", provider=self.id)

        torrent = data["value"]
        files = torrent.get("files", [])
        if not files or any(f.get("downloadPercent", 0) < 100 for f in files):
            raise DebridError(
                DebridErrorKind.NOT_READY,
                f"progress {torrent.get('downloadPercent', 0)}%",
                provider=self.id,
            )
        return [
            DebridFile(name=f.get("name", ""), size=f.get("size", 0), ref=f["downloadUrl"])
            for f in files
        ]
