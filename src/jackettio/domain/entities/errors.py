"""Domain error taxonomy.

Every failure the request pipeline can observe is one of these types.
Route handlers switch on them; nothing above the infrastructure layer needs
to know a provider's native error vocabulary.
"""

from __future__ import annotations

from enum import Enum


class JackettioError(Exception):
    """Base error for all domain failures."""


class MalformedConfig(JackettioError):
    """The user configuration blob could not be decoded or validated."""


class UnknownProvider(JackettioError):
    """The user configuration names a debrid provider we do not support."""

    def __init__(self, provider_id: str) -> None:
        super().__init__(f"Unknown debrid provider: {provider_id!r}")
        self.provider_id = provider_id


class IndexerUnavailable(JackettioError):
    """The indexer could not be queried (network error, timeout, bad reply)."""


class TorrentNotFound(JackettioError):
    """A download was requested for a torrent we can no longer locate."""


class StorageUnavailable(JackettioError):
    """The stream store could not read or write its files."""


class RateLimited(JackettioError):
    """A client exceeded its request budget for the current window."""

    def __init__(self, retry_after: float) -> None:
        super().__init__(f"Rate limited, retry in {retry_after:.0f}s")
        self.retry_after = retry_after


class DebridErrorKind(Enum):
    """Closed set of provider failure classes surfaced to callers."""

    NOT_READY = "not_ready"
    EXPIRED_API_KEY = "expired_api_key"
    NOT_PREMIUM = "not_premium"
    ACCESS_DENIED = "access_denied"
    TWO_FACTOR_AUTH = "two_factor_auth"
    UNCLASSIFIED = "unclassified"


class DebridError(JackettioError):
    """A debrid provider call failed.

    ``kind`` is the classified failure; ``detail`` keeps the provider's own
    message for logs only.
    """

    def __init__(
        self,
        kind: DebridErrorKind = DebridErrorKind.UNCLASSIFIED,
        detail: str = "",
        *,
        provider: str = "",
    ) -> None:
        super().__init__(f"{kind.name}: {detail}" if detail else kind.name)
        self.kind = kind
        self.detail = detail
        self.provider = provider
