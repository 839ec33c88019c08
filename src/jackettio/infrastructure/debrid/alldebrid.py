"""AllDebrid provider (api.alldebrid.com, v4)."""

from __future__ import annotations

from typing import Any

from jackettio.domain.entities.errors import DebridError, DebridErrorKind
from jackettio.domain.entities.stremio import DebridFile, TorrentSource

from .base import DEFAULT_USER_AGENT, HttpxDebridBase

_STATUS_READY = 4

_ERROR_KINDS: dict[str, DebridErrorKind] = {
    "AUTH_MISSING_APIKEY": DebridErrorKind.EXPIRED_API_KEY,
    "AUTH_BAD_APIKEY": DebridErrorKind.EXPIRED_API_KEY,
    "AUTH_USER_BANNED": DebridErrorKind.ACCESS_DENIED,
    "NO_SERVER": DebridErrorKind.ACCESS_DENIED,
    "AUTH_BLOCKED": DebridErrorKind.TWO_FACTOR_AUTH,
    "MUST_BE_PREMIUM": DebridErrorKind.NOT_PREMIUM,
    "MAGNET_MUST_BE_PREMIUM": DebridErrorKind.NOT_PREMIUM,
    "FREE_TRIAL_LIMIT_REACHED": DebridErrorKind.NOT_PREMIUM,
}


class AllDebrid(HttpxDebridBase):
    id = "alldebrid"
    name = "AllDebrid"
    short_name = "AD"
    base_url = "https://api.alldebrid.com/v4"
    configure_url = "https://alldebrid.com/apikeys/"

    def _auth_params(self) -> dict[str, str]:
        return {"agent": DEFAULT_USER_AGENT, "apikey": self._api_key}

    def _classify(self, status: int, data: Any) -> DebridErrorKind | None:
        if isinstance(data, dict) and data.get("status") == "error":
            code = (data.get("error") or {}).get("code", "")
            return _ERROR_KINDS.get(code, DebridErrorKind.UNCLASSIFIED)
        return None

    async def _check_cached(self, hashes: list[str]) -> set[str]:
        data = await self._call(
            "GET",
            "/magnet/instant",
            params=[("magnets[]", h) for h in hashes],
            context="instant",
        )
        magnets = (data or {}).get("data", {}).get("magnets", [])
        return {
            str(m.get("hash", "")).lower()
            for m in magnets
            if isinstance(m, dict) and m.get("instant")
        }

    async def _fetch_files(self, source: TorrentSource) -> list[DebridFile]:
        if source.is_magnet:
            data = await self._call(
                "GET",
                "/magnet/upload",
                params=[("magnets[]", source.magnet_uri)],
                context="upload_magnet",
            )
            uploaded = data["data"]["magnets"][0]
        elif source.torrent_file:
            data = await self._call(
                "POST",
                "/magnet/upload/file",
                files={
                    "files[]": (
                        f"{source.torrent_id}.torrent",
                        source.torrent_file,
                        "application/x-bittorrent",
                    )
                },
                context="upload_file",
            )
            uploaded = data["data"]["files"][0]
        else:
            raise DebridError(detail="source has neither magnet nor file", provider=self.id)

        status = await self._call(
            "GET", "/magnet/status", params={"id": uploaded["id"]}, context="status"
        )
        magnet = status["data"]["magnets"]
        if magnet.get("statusCode") != _STATUS_READY:
            raise DebridError(
                DebridErrorKind.NOT_READY,
                f"status {magnet.get('status')}",
                provider=self.id,
            )
        return [
            DebridFile(name=link.get("filename", ""), size=link.get("size", 0), ref=link["link"])
            for link in magnet.get("links", [])
        ]

    async def _unrestrict(self, file: DebridFile) -> str:
        data = await self._call("GET", "/link/unlock", params={"link": file.ref}, context="unlock")
        return data["data"]["link"]
