"""Addon icon cache: downloaded once a day, served from the data directory."""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import structlog

log = structlog.get_logger(__name__)

_BUNDLED_ICON = Path(__file__).resolve().parent.parent / "interfaces" / "static" / "icon.svg"

_CONTENT_TYPE_SUFFIX: dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}


class IconCache:
    """Keeps a local copy of the configured icon URL.

    Until the first successful download (or when none is configured) the
    bundled icon is served.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        url: str,
        data_dir: Path,
        fallback: Path = _BUNDLED_ICON,
    ) -> None:
        self._http = http_client
        self._url = url
        self._data_dir = data_dir
        self._fallback = fallback
        self._path: Path | None = None

    @property
    def path(self) -> Path:
        if self._path is not None and self._path.exists():
            return self._path
        return self._fallback

    async def refresh(self) -> Path:
        """Download the icon. Raises ``httpx.HTTPError`` on failure."""
        if not self._url:
            return self.path

        resp = await self._http.get(self._url, follow_redirects=True)
        resp.raise_for_status()

        content_type = resp.headers.get("content-type", "").split(";")[0].strip()
        suffix = _CONTENT_TYPE_SUFFIX.get(content_type) or Path(self._url).suffix or ".png"
        target = self._data_dir / f"icon{suffix}"
        await asyncio.to_thread(self._write, target, resp.content)
        self._path = target
        log.info("icon_refreshed", path=str(target), size=len(resp.content))
        return target

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".tmp")
        tmp.write_bytes(data)
        tmp.replace(target)
