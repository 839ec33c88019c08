"""Premiumize provider (www.premiumize.me/api)."""

from __future__ import annotations

import re
from typing import Any

from jackettio.domain.entities.errors import DebridError, DebridErrorKind
from jackettio.domain.entities.stremio import DebridFile, TorrentSource

from .base import HttpxDebridBase

_BTIH_RE = re.compile(r"urn:btih:([0-9a-zA-Z]+)")

# Premiumize only reports errors as free text; first match wins.
_MESSAGE_KINDS: tuple[tuple[str, DebridErrorKind], ...] = (
    ("not logged in", DebridErrorKind.EXPIRED_API_KEY),
    ("apikey", DebridErrorKind.EXPIRED_API_KEY),
    ("premium", DebridErrorKind.NOT_PREMIUM),
    ("banned", DebridErrorKind.ACCESS_DENIED),
    ("ip", DebridErrorKind.ACCESS_DENIED),
)


class Premiumize(HttpxDebridBase):
    id = "premiumize"
    name = "Premiumize"
    short_name = "PM"
    base_url = "https://www.premiumize.me/api"
    configure_url = "https://www.premiumize.me/account"

    def _auth_params(self) -> dict[str, str]:
        return {"apikey": self._api_key}

    def _classify(self, status: int, data: Any) -> DebridErrorKind | None:
        if isinstance(data, dict) and data.get("status") == "error":
            message = str(data.get("message", "")).lower()
            for needle, kind in _MESSAGE_KINDS:
                if re.search(rf"\b{needle}\b", message):
                    return kind
            return DebridErrorKind.UNCLASSIFIED
        if status == 401:
            return DebridErrorKind.EXPIRED_API_KEY
        return None

    async def _check_cached(self, hashes: list[str]) -> set[str]:
        data = await self._call(
            "GET",
            "/cache/check",
            params=[("items[]", h) for h in hashes],
            context="cache_check",
        )
        flags = (data or {}).get("response", [])
        return {h.lower() for h, cached in zip(hashes, flags) if cached}

    async def _fetch_files(self, source: TorrentSource) -> list[DebridFile]:
        if source.is_magnet:
            info_hash = source.info_hash
            if not info_hash:
                m = _BTIH_RE.search(source.magnet_uri)
                info_hash = m.group(1) if m else ""
            if info_hash and await self._check_cached([info_hash]):
                data = await self._call(
                    "POST",
                    "/transfer/directdl",
                    data={"src": source.magnet_uri},
                    context="directdl",
                )
                return [
                    DebridFile(name=c.get("path", ""), size=int(c.get("size", 0)), ref=c["link"])
                    for c in data.get("content", [])
                ]
            await self._call(
                "POST", "/transfer/create", data={"src": source.magnet_uri}, context="create"
            )
            raise DebridError(DebridErrorKind.NOT_READY, "transfer created", provider=self.id)

        if not source.torrent_file:
            raise DebridError(detail="source has neither magnet nor file", provider=self.id)

        created = await self._call(
            "POST",
            "/transfer/create",
            files={
                "file": (
                    f"{source.torrent_id}.torrent",
                    source.torrent_file,
                    "application/x-bittorrent",
                )
            },
            context="create_file",
        )
        return await self._transfer_files(str(created["id"]))

    async def _transfer_files(self, transfer_id: str) -> list[DebridFile]:
        listing = await self._call("GET", "/transfer/list", context="transfer_list")
        transfer = next(
            (t for t in listing.get("transfers", []) if str(t.get("id")) == transfer_id),
            None,
        )
        if transfer is None or transfer.get("status") != "finished":
            raise DebridError(
                DebridErrorKind.NOT_READY,
                f"transfer {(transfer or {}).get('status', 'missing')}",
                provider=self.id,
            )
        folder = await self._call(
            "GET", "/folder/list", params={"id": transfer["folder_id"]}, context="folder_list"
        )
        return [
            DebridFile(name=c.get("name", ""), size=int(c.get("size", 0)), ref=c["link"])
            for c in folder.get("content", [])
            if c.get("type") == "file"
        ]
