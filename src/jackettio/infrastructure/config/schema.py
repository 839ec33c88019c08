"""Pydantic configuration models with validation."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from .defaults import DEFAULT_USER_CONFIG

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]


def _normalize_path(value: Any) -> Path:
    """
    Normalize a path-like value without causing filesystem side-effects.

    This function MUST NOT create directories or files.
    """
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise TypeError(f"Expected path-like value, got: {type(value)!r}")


class ServerConfig(BaseModel):
    host: str = Field(default="0.0.0.0", description="Bind host.")
    port: int = Field(default=4000, description="Bind port.")


class AddonConfig(BaseModel):
    """Values published in the Stremio manifest."""

    id: str = Field(default="community.stremio.jackettio")
    name: str = Field(default="Jackettio")
    description: str = Field(
        default="Stremio addon that resolves streams using Jackett and Debrid.",
    )
    version: str = Field(default="1.4.0")
    welcome_message: str = Field(
        default="",
        description="Optional Markdown shown on the configure page.",
    )


class JackettConfig(BaseModel):
    """Jackett (Torznab) indexer access."""

    url: str = Field(default="http://localhost:9117")
    api_key: str = Field(default="")
    timeout_seconds: float = Field(
        default=60.0,
        description="Upper bound for a single indexer query (seconds).",
    )
    max_concurrent: int = Field(
        default=5,
        description="Max parallel per-indexer queries for one search.",
    )
    cache_ttl_seconds: int = Field(
        default=3600,
        description="TTL for cached search results (seconds). 0 = disabled.",
    )
    max_candidates: int = Field(
        default=100,
        description="Max releases handed to the debrid provider per request.",
    )

    @field_validator("timeout_seconds")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("jackett.timeout_seconds must be > 0")
        return v


class RateLimitConfig(BaseModel):
    """Per-client fixed-window admission control."""

    window_seconds: int = Field(default=60, description="Window length (seconds).")
    max_requests: int = Field(
        default=100,
        description="Max requests per client per window. 0 = unlimited.",
    )
    trust_proxy: bool = Field(
        default=False,
        description="Prefer CF-Connecting-IP / X-Forwarded-For over the peer IP.",
    )

    @field_validator("window_seconds")
    @classmethod
    def _validate_window(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("rate_limit.window_seconds must be > 0")
        return v


class StoreConfig(BaseModel):
    """Stream record store and background maintenance periods."""

    data_dir: Path = Field(default=Path("~/.jackettio"))
    store_dirname: str = Field(default="streams")
    autosave_interval_seconds: float = Field(default=4.0)
    retention_hours: float = Field(
        default=24.0 * 30,
        description="Records older than this are removed by the clean job.",
    )
    vacuum_interval_hours: float = Field(default=24.0 * 7)
    clean_interval_hours: float = Field(default=1.0)

    @field_validator("data_dir", mode="before")
    @classmethod
    def _validate_path(cls, v: Any) -> Path:
        return _normalize_path(v)

    @field_validator("autosave_interval_seconds", "vacuum_interval_hours", "clean_interval_hours")
    @classmethod
    def _validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("store intervals must be > 0")
        return v

    @property
    def path(self) -> Path:
        return self.data_dir / self.store_dirname


class TorrentsConfig(BaseModel):
    """Temp folder for downloaded .torrent files."""

    temp_dir: Path = Field(default=Path("/tmp/jackettio-torrents"))
    max_age_hours: float = Field(default=1.0)
    cleanup_interval_hours: float = Field(default=1.0)
    max_concurrent: int = Field(default=5)
    timeout_seconds: float = Field(default=10.0)

    @field_validator("temp_dir", mode="before")
    @classmethod
    def _validate_path(cls, v: Any) -> Path:
        return _normalize_path(v)


class DebridConfig(BaseModel):
    timeout_seconds: float = Field(default=30.0)
    fan_out: int = Field(
        default=3,
        description="Max concurrent availability checks per stream request.",
    )
    batch_size: int = Field(default=25, description="Info hashes per availability call.")

    @field_validator("fan_out", "batch_size")
    @classmethod
    def _validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("debrid.fan_out and debrid.batch_size must be > 0")
        return v


class IconConfig(BaseModel):
    url: str = Field(
        default="https://raw.githubusercontent.com/arvida42/jackettio/master/src/static/img/icon.png",
    )
    refresh_interval_hours: float = Field(default=24.0)


class PasskeyConfig(BaseModel):
    """Private-tracker passkey replacement.

    ``replace`` is the passkey the server's own Jackett account embeds in
    torrent links; when set, users may supply their own passkey and it is
    swapped in before the torrent is handed to the debrid service.
    """

    replace: str = Field(default="", description="Server passkey found in Jackett links.")
    info_url: str = Field(default="", description="Where users find their passkey.")
    pattern: str = Field(default="[a-zA-Z0-9]+", description="Regex a user passkey must match.")

    @field_validator("pattern")
    @classmethod
    def _validate_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"passkey.pattern is not a valid regex: {e}") from e
        return v

    @property
    def enabled(self) -> bool:
        return bool(self.replace)


class UserConfigSettings(BaseModel):
    """Server-side knobs for per-user configuration."""

    defaults: dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_USER_CONFIG))
    immutable_keys: list[str] = Field(
        default_factory=lambda: ["hideUncached", "indexerTimeoutSec"],
        description="Blob keys clients may not override.",
    )
    qualities: list[dict[str, Any]] = Field(
        default_factory=lambda: [
            {"value": 0, "label": "Unknown"},
            {"value": 360, "label": "360p"},
            {"value": 480, "label": "480p"},
            {"value": 720, "label": "720p"},
            {"value": 1080, "label": "1080p"},
            {"value": 2160, "label": "4K"},
        ]
    )
    languages: list[dict[str, str]] = Field(
        default_factory=lambda: [
            {"value": "multi", "label": "Multi", "emoji": "🌎"},
            {"value": "arabic", "label": "Arabic", "emoji": "🇸🇦"},
            {"value": "chinese", "label": "Chinese", "emoji": "🇨🇳"},
            {"value": "german", "label": "German", "emoji": "🇩🇪"},
            {"value": "english", "label": "English", "emoji": "🇬🇧"},
            {"value": "spanish", "label": "Spanish", "emoji": "🇪🇸"},
            {"value": "french", "label": "French", "emoji": "🇫🇷"},
            {"value": "hindi", "label": "Hindi", "emoji": "🇮🇳"},
            {"value": "italian", "label": "Italian", "emoji": "🇮🇹"},
            {"value": "japanese", "label": "Japanese", "emoji": "🇯🇵"},
            {"value": "korean", "label": "Korean", "emoji": "🇰🇷"},
            {"value": "portuguese", "label": "Portuguese", "emoji": "🇵🇹"},
            {"value": "russian", "label": "Russian", "emoji": "🇷🇺"},
        ]
    )
    sorts: list[dict[str, Any]] = Field(
        default_factory=lambda: [
            {"value": [["quality", True], ["seeders", True]], "label": "By quality then seeders"},
            {"value": [["quality", True], ["size", True]], "label": "By quality then size"},
            {"value": [["seeders", True]], "label": "By seeders"},
            {"value": [["size", True]], "label": "By size"},
            {
                "value": [["quality", True], ["language", True], ["seeders", True]],
                "label": "By quality then language then seeders",
            },
        ]
    )


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (server/addon/jackett/rate_limit/...).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="jackettio", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    addon: AddonConfig = Field(default_factory=AddonConfig)
    jackett: JackettConfig = Field(default_factory=JackettConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    torrents: TorrentsConfig = Field(default_factory=TorrentsConfig)
    debrid: DebridConfig = Field(default_factory=DebridConfig)
    icon: IconConfig = Field(default_factory=IconConfig)
    passkey: PasskeyConfig = Field(default_factory=PasskeyConfig)
    user_config: UserConfigSettings = Field(default_factory=UserConfigSettings)

    static_dir: Path = Field(
        default=Path("./static"),
        description="Directory holding videos/*.mp4 served for download errors.",
    )
    shutdown_timeout_seconds: float = Field(
        default=10.0,
        description="Max wait for in-flight requests during drain.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    @field_validator("static_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Path:
        return _normalize_path(v)

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.
        """
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "server": self.server.model_dump(),
            "addon": self.addon.model_dump(),
            "jackett": self.jackett.model_dump(exclude={"api_key"}),
            "rate_limit": self.rate_limit.model_dump(),
            "store": {**self.store.model_dump(), "data_dir": str(self.store.data_dir)},
            "torrents": {
                **self.torrents.model_dump(),
                "temp_dir": str(self.torrents.temp_dir),
            },
            "debrid": self.debrid.model_dump(),
            "icon": self.icon.model_dump(),
            "passkey": self.passkey.model_dump(exclude={"replace"}),
            "logging": {"level": self.log_level, "format": self.log_format},
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    load.py creates EnvOverrides() to read JACKETTIO_* variables, converts to
    a dict of set values, merges into YAML/defaults, then validates AppConfig.

    Supported env var examples (flat, explicit):
    - JACKETTIO_PORT
    - JACKETTIO_JACKETT_URL
    - JACKETTIO_JACKETT_API_KEY
    - JACKETTIO_RATE_LIMIT_MAX_REQUESTS
    - JACKETTIO_DATA_DIR
    - JACKETTIO_LOG_LEVEL
    """

    model_config = SettingsConfigDict(
        env_prefix="JACKETTIO_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    host: Optional[str] = None
    port: Optional[int] = None

    addon_id: Optional[str] = None
    addon_name: Optional[str] = None

    jackett_url: Optional[str] = None
    jackett_api_key: Optional[str] = None
    jackett_timeout_seconds: Optional[float] = None

    replace_passkey: Optional[str] = None
    replace_passkey_info_url: Optional[str] = None
    replace_passkey_pattern: Optional[str] = None

    rate_limit_window_seconds: Optional[int] = None
    rate_limit_max_requests: Optional[int] = None
    trust_proxy: Optional[bool] = None

    data_dir: Optional[Path] = None
    temp_dir: Optional[Path] = None
    static_dir: Optional[Path] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    @field_validator("data_dir", "temp_dir", "static_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Any:
        if v is None:
            return None
        return _normalize_path(v)

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
