"""Real-Debrid provider (api.real-debrid.com, REST 1.0)."""

from __future__ import annotations

from typing import Any

from jackettio.domain.entities.errors import DebridError, DebridErrorKind
from jackettio.domain.entities.stremio import DebridFile, TorrentSource

from .base import HttpxDebridBase

_ERROR_KINDS: dict[int, DebridErrorKind] = {
    8: DebridErrorKind.EXPIRED_API_KEY,  # bad_token
    9: DebridErrorKind.ACCESS_DENIED,  # permission_denied
    10: DebridErrorKind.TWO_FACTOR_AUTH,  # two_factor_auth_needed
    11: DebridErrorKind.TWO_FACTOR_AUTH,  # two_factor_auth_pending
    14: DebridErrorKind.ACCESS_DENIED,  # account_locked
    20: DebridErrorKind.NOT_PREMIUM,  # premium_only
    22: DebridErrorKind.ACCESS_DENIED,  # ip_not_allowed
}

_STATUS_KINDS: dict[int, DebridErrorKind] = {
    401: DebridErrorKind.EXPIRED_API_KEY,
    403: DebridErrorKind.ACCESS_DENIED,
}


class RealDebrid(HttpxDebridBase):
    id = "realdebrid"
    name = "Real-Debrid"
    short_name = "RD"
    base_url = "https://api.real-debrid.com/rest/1.0"
    configure_url = "https://real-debrid.com/apitoken"

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _ip_data(self) -> dict[str, str]:
        return {"ip": self._ip} if self._ip else {}

    def _classify(self, status: int, data: Any) -> DebridErrorKind | None:
        if isinstance(data, dict) and "error_code" in data:
            return _ERROR_KINDS.get(data["error_code"], DebridErrorKind.UNCLASSIFIED)
        if status >= 400:
            return _STATUS_KINDS.get(status, DebridErrorKind.UNCLASSIFIED)
        return None

    async def _check_cached(self, hashes: list[str]) -> set[str]:
        data = await self._call(
            "GET",
            "/torrents/instantAvailability/" + "/".join(hashes),
            context="instant_availability",
        )
        available: set[str] = set()
        for h, hosts in (data or {}).items():
            # {"<hash>": {"rd": [{<file_id>: {...}}, ...]}} ; [] when not cached
            if isinstance(hosts, dict) and hosts.get("rd"):
                available.add(h.lower())
        return available

    async def _fetch_files(self, source: TorrentSource) -> list[DebridFile]:
        if source.is_magnet:
            added = await self._call(
                "POST",
                "/torrents/addMagnet",
                data={"magnet": source.magnet_uri, **self._ip_data()},
                context="add_magnet",
            )
        elif source.torrent_file:
            added = await self._call(
                "PUT",
                "/torrents/addTorrent",
                params=self._ip_data(),
                content=source.torrent_file,
                context="add_torrent",
            )
        else:
            raise DebridError(detail="source has neither magnet nor file", provider=self.id)

        torrent_id = added["id"]
        info = await self._call("GET", f"/torrents/info/{torrent_id}", context="info")

        if info.get("status") == "waiting_files_selection":
            await self._call(
                "POST",
                f"/torrents/selectFiles/{torrent_id}",
                data={"files": "all"},
                context="select_files",
            )
            info = await self._call("GET", f"/torrents/info/{torrent_id}", context="info")

        if info.get("status") != "downloaded":
            raise DebridError(
                DebridErrorKind.NOT_READY, f"status {info.get('status')}", provider=self.id
            )

        # Links are returned for selected files only, in file order.
        selected = [f for f in info.get("files", []) if f.get("selected")]
        links = info.get("links", [])
        return [
            DebridFile(name=f.get("path", "").lstrip("/"), size=f.get("bytes", 0), ref=link)
            for f, link in zip(selected, links)
        ]

    async def _unrestrict(self, file: DebridFile) -> str:
        data = await self._call(
            "POST",
            "/unrestrict/link",
            data={"link": file.ref, **self._ip_data()},
            context="unrestrict",
        )
        return data["download"]
