"""Per-request user configuration."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

# (field, descending) pairs, e.g. (("quality", True), ("seeders", True)).
SortSpec = tuple[tuple[str, bool], ...]


@dataclass(frozen=True)
class UserConfig:
    """Settings decoded from the URL blob, merged over server defaults.

    Rebuilt on every request; never persisted as a whole.
    """

    debrid_id: str = ""
    debrid_api_key: str = ""
    qualities: tuple[int, ...] = (0, 720, 1080)
    exclude_keywords: tuple[str, ...] = ()
    max_torrents: int = 8
    prioritize_languages: tuple[str, ...] = ()
    indexers: tuple[str, ...] = ("all",)
    indexer_timeout_sec: int = 60
    sort_cached: SortSpec = (("quality", True), ("size", True))
    sort_uncached: SortSpec = (("seeders", True),)
    hide_uncached: bool = False
    passkey: str = field(default="", repr=False)
    ip: str = field(default="", compare=False)

    def with_ip(self, ip: str) -> UserConfig:
        """Return a copy annotated with the requesting client's IP."""
        return replace(self, ip=ip)
