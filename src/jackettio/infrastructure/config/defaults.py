"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_USER_CONFIG: dict[str, Any] = {
    "debridId": "",
    "debridApiKey": "",
    "qualities": [0, 720, 1080],
    "excludeKeywords": [],
    "maxTorrents": 8,
    "prioritizeLanguages": [],
    "indexers": ["all"],
    "indexerTimeoutSec": 60,
    "sortCached": [["quality", True], ["size", True]],
    "sortUncached": [["seeders", True]],
    "hideUncached": False,
    "passkey": "",
}

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "jackettio",
    "environment": "dev",
    "server": {
        "host": "0.0.0.0",
        "port": 4000,
    },
    "addon": {
        "id": "community.stremio.jackettio",
        "name": "Jackettio",
    },
    "jackett": {
        "url": "http://localhost:9117",
        "api_key": "",
        "timeout_seconds": 60.0,
    },
    "rate_limit": {
        "window_seconds": 60,
        "max_requests": 100,
        "trust_proxy": False,
    },
    "store": {
        "data_dir": "~/.jackettio",
        "autosave_interval_seconds": 4.0,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "user_config": {
        "defaults": DEFAULT_USER_CONFIG,
        "immutable_keys": ["hideUncached", "indexerTimeoutSec"],
    },
}
