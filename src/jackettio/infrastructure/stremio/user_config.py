"""Decode and validate the per-user configuration blob.

The blob is base64-encoded JSON embedded as the first URL path segment.
Decoding is pure: no I/O, nothing cached between requests.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from jackettio.domain.entities.errors import MalformedConfig
from jackettio.domain.entities.stremio import StreamQuality
from jackettio.domain.entities.user_config import UserConfig

log = structlog.get_logger(__name__)

_SORT_FIELDS = frozenset({"quality", "seeders", "size", "language"})


class _UserConfigPayload(BaseModel):
    """Wire shape of the blob (camelCase keys, as the configure page writes them)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    debrid_id: str = Field(default="", alias="debridId")
    debrid_api_key: str = Field(default="", alias="debridApiKey")
    qualities: list[int] = Field(default_factory=lambda: [0, 720, 1080])
    exclude_keywords: list[str] = Field(default_factory=list, alias="excludeKeywords")
    max_torrents: int = Field(default=8, ge=1, le=100, alias="maxTorrents")
    prioritize_languages: list[str] = Field(
        default_factory=list, alias="prioritizeLanguages"
    )
    indexers: list[str] = Field(default_factory=lambda: ["all"])
    indexer_timeout_sec: int = Field(default=60, ge=1, alias="indexerTimeoutSec")
    sort_cached: list[tuple[str, bool]] = Field(
        default_factory=lambda: [("quality", True), ("size", True)], alias="sortCached"
    )
    sort_uncached: list[tuple[str, bool]] = Field(
        default_factory=lambda: [("seeders", True)], alias="sortUncached"
    )
    hide_uncached: bool = Field(default=False, alias="hideUncached")
    passkey: str = ""

    @field_validator("sort_cached", "sort_uncached")
    @classmethod
    def _validate_sort(cls, v: list[tuple[str, bool]]) -> list[tuple[str, bool]]:
        for field_name, _ in v:
            if field_name not in _SORT_FIELDS:
                raise ValueError(f"unsupported sort field: {field_name!r}")
        return v

    @field_validator("qualities")
    @classmethod
    def _validate_qualities(cls, v: list[int]) -> list[int]:
        allowed = {q.value for q in StreamQuality}
        unknown = [q for q in v if q not in allowed]
        if unknown:
            raise ValueError(f"unsupported qualities: {unknown}")
        return v

    @field_validator("indexers")
    @classmethod
    def _validate_indexers(cls, v: list[str]) -> list[str]:
        return v or ["all"]

    def to_entity(self) -> UserConfig:
        return UserConfig(
            debrid_id=self.debrid_id,
            debrid_api_key=self.debrid_api_key,
            qualities=tuple(self.qualities),
            exclude_keywords=tuple(k.lower() for k in self.exclude_keywords if k),
            max_torrents=self.max_torrents,
            prioritize_languages=tuple(self.prioritize_languages),
            indexers=tuple(self.indexers),
            indexer_timeout_sec=self.indexer_timeout_sec,
            sort_cached=tuple(self.sort_cached),
            sort_uncached=tuple(self.sort_uncached),
            hide_uncached=self.hide_uncached,
            passkey=self.passkey.strip(),
        )


def _b64decode(raw: str) -> bytes:
    """Decode standard or URL-safe base64, tolerating missing padding."""
    padded = raw + "=" * (-len(raw) % 4)
    if "-" in raw or "_" in raw:
        return base64.urlsafe_b64decode(padded)
    return base64.b64decode(padded, validate=True)


class UserConfigCodec:
    """Turns URL blobs into ``UserConfig`` values.

    Args:
        defaults: Server-side default settings (blob key names).
        immutable_keys: Keys clients may not override; their server default
            always wins.
        passkey_pattern: Regex a user passkey must fully match; ``None``
            when passkey replacement is disabled (the passkey is dropped).
    """

    def __init__(
        self,
        defaults: Mapping[str, Any],
        immutable_keys: Iterable[str] = (),
        passkey_pattern: str | None = None,
    ) -> None:
        self._defaults = dict(defaults)
        self._immutable = frozenset(immutable_keys)
        self._passkey_re = re.compile(passkey_pattern) if passkey_pattern else None
        # Fail at startup, not on the first request, if defaults are invalid.
        _UserConfigPayload.model_validate(self._defaults)

    @property
    def immutable_keys(self) -> frozenset[str]:
        return self._immutable

    def decode(self, raw: str | None) -> UserConfig | None:
        """Decode *raw* into a validated config.

        Returns ``None`` for an empty/missing blob (addon not configured).

        Raises:
            MalformedConfig: the blob is not base64 JSON object or fails
                validation. Nothing is partially applied.
        """
        if raw is None or not raw.strip():
            return None

        try:
            data = json.loads(_b64decode(raw.strip()).decode("utf-8"))
        except (binascii.Error, ValueError, UnicodeDecodeError) as e:
            raise MalformedConfig(f"config blob is not base64 JSON: {e}") from e

        if not isinstance(data, dict):
            raise MalformedConfig(
                f"config blob must be a JSON object, got {type(data).__name__}"
            )

        overridden = sorted(k for k in data if k in self._immutable)
        if overridden:
            log.debug("user_config_immutable_keys_ignored", keys=overridden)

        merged = dict(self._defaults)
        merged.update({k: v for k, v in data.items() if k not in self._immutable})

        try:
            payload = _UserConfigPayload.model_validate(merged)
        except ValidationError as e:
            raise MalformedConfig(
                f"invalid config: {e.error_count()} validation error(s)"
            ) from e

        config = payload.to_entity()
        if config.passkey:
            if self._passkey_re is None:
                return replace(config, passkey="")
            if not self._passkey_re.fullmatch(config.passkey):
                raise MalformedConfig("passkey does not match the expected format")
        return config

    def encode(self, settings: Mapping[str, Any]) -> str:
        """Encode settings the way the configure page does (standard base64)."""
        return base64.b64encode(json.dumps(dict(settings)).encode("utf-8")).decode("ascii")
