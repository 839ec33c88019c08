from .errors import (
    DebridError,
    DebridErrorKind,
    IndexerUnavailable,
    JackettioError,
    MalformedConfig,
    RateLimited,
    StorageUnavailable,
    TorrentNotFound,
    UnknownProvider,
)
from .stremio import (
    DebridFile,
    IndexerInfo,
    IndexerRelease,
    MediaRequest,
    MediaType,
    StreamQuality,
    StreamRecord,
    TorrentSource,
)
from .user_config import UserConfig

__all__ = [
    "DebridError",
    "DebridErrorKind",
    "DebridFile",
    "IndexerInfo",
    "IndexerRelease",
    "IndexerUnavailable",
    "JackettioError",
    "MalformedConfig",
    "MediaRequest",
    "MediaType",
    "RateLimited",
    "StorageUnavailable",
    "StreamQuality",
    "StreamRecord",
    "TorrentNotFound",
    "TorrentSource",
    "UnknownProvider",
    "UserConfig",
]
