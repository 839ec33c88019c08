"""Domain entities for stream discovery.

Pure value objects without framework dependencies or I/O.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Literal

MediaType = Literal["movie", "series"]

_IMDB_ID_RE = re.compile(r"^tt\d{5,10}$")


class StreamQuality(IntEnum):
    """Vertical resolution buckets (0 = undetected)."""

    UNKNOWN = 0
    P360 = 360
    P480 = 480
    P720 = 720
    P1080 = 1080
    P2160 = 2160

    @property
    def label(self) -> str:
        if self is StreamQuality.UNKNOWN:
            return "Unknown"
        if self is StreamQuality.P2160:
            return "4K"
        return f"{self.value}p"


@dataclass(frozen=True)
class MediaRequest:
    """Parsed Stremio media id.

    ``tt0133093`` (movie) or ``tt0944947:1:5`` (series, season 1, episode 5).
    """

    media_type: MediaType
    imdb_id: str
    season: int | None = None
    episode: int | None = None

    @property
    def media_id(self) -> str:
        if self.season is not None and self.episode is not None:
            return f"{self.imdb_id}:{self.season}:{self.episode}"
        return self.imdb_id

    @classmethod
    def parse(cls, media_type: str, media_id: str) -> MediaRequest:
        """Parse a Stremio ``type`` + ``id`` pair.

        Raises:
            ValueError: unknown type, non-IMDb id, or a series id without
                season and episode.
        """
        if media_type not in ("movie", "series"):
            raise ValueError(f"unsupported media type: {media_type!r}")
        parts = media_id.split(":")
        if not _IMDB_ID_RE.match(parts[0]):
            raise ValueError(f"not an IMDb id: {media_id!r}")
        if media_type == "movie":
            if len(parts) != 1:
                raise ValueError(f"movie id must not carry an episode: {media_id!r}")
            return cls("movie", parts[0])
        if len(parts) != 3 or not (parts[1].isdigit() and parts[2].isdigit()):
            raise ValueError(f"series id must be imdb:season:episode: {media_id!r}")
        return cls("series", parts[0], int(parts[1]), int(parts[2]))


@dataclass(frozen=True)
class IndexerRelease:
    """A candidate torrent returned by the indexer."""

    torrent_id: str
    title: str
    indexer: str = ""
    link: str = ""
    magnet_uri: str = ""
    info_hash: str = ""
    size: int = 0
    seeders: int = 0
    peers: int = 0
    quality: StreamQuality = StreamQuality.UNKNOWN
    languages: tuple[str, ...] = ()
    position: int = 0


@dataclass(frozen=True)
class TorrentSource:
    """What a debrid provider needs to add a torrent: a magnet or a file."""

    torrent_id: str
    magnet_uri: str = ""
    torrent_file: bytes | None = None
    info_hash: str = ""

    @property
    def is_magnet(self) -> bool:
        return bool(self.magnet_uri)


@dataclass(frozen=True)
class DebridFile:
    """A file inside a torrent on the debrid side."""

    name: str
    size: int = 0
    ref: str = ""  # provider-side link or file id


@dataclass(frozen=True)
class StreamRecord:
    """A resolved, user-visible stream entry.

    ``url`` points at this service's download route; the actual debrid
    link is only resolved when the player follows it.
    """

    media_type: MediaType
    media_id: str
    torrent_id: str
    title: str
    provider: str
    url: str
    quality: StreamQuality = StreamQuality.UNKNOWN
    languages: tuple[str, ...] = ()
    size: int = 0
    seeders: int = 0
    indexer: str = ""
    cached: bool = False
    info_hash: str = ""
    magnet_uri: str = ""
    torrent_link: str = ""
    position: int = 0
    created_at: float = 0.0
    record_id: int | None = None


@dataclass(frozen=True)
class IndexerInfo:
    """A configured Jackett indexer, as listed on the configure page."""

    id: str
    title: str
    types: list[MediaType] = field(default_factory=list)
