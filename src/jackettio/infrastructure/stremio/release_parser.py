"""Release name parser using guessit for quality, language and episode tags."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any

from guessit import guessit

from jackettio.domain.entities.stremio import StreamQuality

_SCREEN_SIZE_TO_QUALITY: dict[str, StreamQuality] = {
    "4320p": StreamQuality.P2160,
    "2160p": StreamQuality.P2160,
    "1440p": StreamQuality.P1080,
    "1080p": StreamQuality.P1080,
    "1080i": StreamQuality.P1080,
    "720p": StreamQuality.P720,
    "576p": StreamQuality.P480,
    "480p": StreamQuality.P480,
    "360p": StreamQuality.P360,
}

_BADGE_TO_QUALITY: dict[str, StreamQuality] = {
    "4K": StreamQuality.P2160,
    "UHD": StreamQuality.P2160,
    "2160P": StreamQuality.P2160,
    "1080P": StreamQuality.P1080,
    "FHD": StreamQuality.P1080,
    "720P": StreamQuality.P720,
    "480P": StreamQuality.P480,
    "360P": StreamQuality.P360,
}

_BADGE_RE = re.compile(r"(?i)\b(4k|uhd|2160p|1080p|fhd|720p|480p|360p)\b")

# guessit alpha3 code -> language value used in user config
_ALPHA3_TO_LANGUAGE: dict[str, str] = {
    "ara": "arabic",
    "zho": "chinese",
    "deu": "german",
    "eng": "english",
    "spa": "spanish",
    "fra": "french",
    "hin": "hindi",
    "ita": "italian",
    "jpn": "japanese",
    "kor": "korean",
    "por": "portuguese",
    "rus": "russian",
}

_MULTI_RE = re.compile(r"(?i)\b(multi|dual[ .-]?audio)\b")

_VIDEO_EXTENSIONS = frozenset(
    {"mkv", "mp4", "avi", "m4v", "mov", "wmv", "ts", "m2ts", "webm", "mpg", "mpeg"}
)


@lru_cache(maxsize=2048)
def _guess(name: str) -> dict[str, Any]:
    return dict(guessit(name))


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def parse_quality(release_name: str) -> StreamQuality:
    """Map a release name to a quality bucket.

    guessit's ``screen_size`` first, then a badge scan of the raw title.
    """
    if not release_name:
        return StreamQuality.UNKNOWN

    screen_size = _guess(release_name).get("screen_size")
    if isinstance(screen_size, str) and screen_size in _SCREEN_SIZE_TO_QUALITY:
        return _SCREEN_SIZE_TO_QUALITY[screen_size]

    m = _BADGE_RE.search(release_name)
    if m:
        return _BADGE_TO_QUALITY.get(m.group(1).upper(), StreamQuality.UNKNOWN)
    return StreamQuality.UNKNOWN


def parse_languages(release_name: str) -> tuple[str, ...]:
    """Return audio languages found in *release_name* (``multi`` included)."""
    if not release_name:
        return ()

    found: list[str] = []
    if _MULTI_RE.search(release_name):
        found.append("multi")

    for lang in _as_list(_guess(release_name).get("language")):
        alpha3 = getattr(lang, "alpha3", None)
        value = _ALPHA3_TO_LANGUAGE.get(str(alpha3)) if alpha3 else None
        if value and value not in found:
            found.append(value)
    return tuple(found)


def parse_episode(file_name: str) -> tuple[int | None, int | None]:
    """Return ``(season, episode)`` guessed from a file name."""
    guess = _guess(file_name)
    seasons = _as_list(guess.get("season"))
    episodes = _as_list(guess.get("episode"))
    season = seasons[0] if seasons and isinstance(seasons[0], int) else None
    episode = episodes[0] if episodes and isinstance(episodes[0], int) else None
    return season, episode


def is_video_file(file_name: str) -> bool:
    if "." not in file_name:
        return False
    return file_name.rsplit(".", 1)[-1].lower() in _VIDEO_EXTENSIONS
