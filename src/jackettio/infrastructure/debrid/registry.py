"""Dispatch table from provider id to debrid provider class."""

from __future__ import annotations

from collections.abc import Iterable

import httpx
import structlog

from jackettio.domain.entities.errors import UnknownProvider
from jackettio.domain.entities.user_config import UserConfig
from jackettio.infrastructure.config.schema import DebridConfig

from .alldebrid import AllDebrid
from .base import HttpxDebridBase
from .debridlink import DebridLink
from .premiumize import Premiumize
from .realdebrid import RealDebrid

log = structlog.get_logger(__name__)

DEFAULT_PROVIDERS: tuple[type[HttpxDebridBase], ...] = (
    AllDebrid,
    RealDebrid,
    DebridLink,
    Premiumize,
)


class DebridRegistry:
    """Builds one provider instance per request from the user's config.

    Instances hold only that request's credentials and client IP; the pooled
    ``httpx.AsyncClient`` is shared and carries none.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        config: DebridConfig,
        providers: Iterable[type[HttpxDebridBase]] = DEFAULT_PROVIDERS,
    ) -> None:
        self._http = http_client
        self._config = config
        self._providers: dict[str, type[HttpxDebridBase]] = {}
        for cls in providers:
            if not cls.id:
                raise ValueError(f"{cls.__name__} has no provider id")
            self._providers[cls.id] = cls

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def provider_class(self, provider_id: str) -> type[HttpxDebridBase]:
        try:
            return self._providers[provider_id]
        except KeyError:
            raise UnknownProvider(provider_id) from None

    def instantiate(self, user_config: UserConfig) -> HttpxDebridBase:
        """Raises ``UnknownProvider`` for an unsupported ``debrid_id``."""
        cls = self.provider_class(user_config.debrid_id)
        log.debug("debrid_provider_instantiated", provider=cls.id)
        return cls(
            self._http,
            api_key=user_config.debrid_api_key,
            ip=user_config.ip,
            timeout=self._config.timeout_seconds,
            fan_out=self._config.fan_out,
            batch_size=self._config.batch_size,
        )

    def list(self) -> list[dict[str, str]]:
        """Provider descriptors for the configure page."""
        return [
            {
                "id": cls.id,
                "name": cls.name,
                "shortName": cls.short_name,
                "configUrl": cls.configure_url,
            }
            for cls in self._providers.values()
        ]
