from .cache import CachePort
from .debrid_provider import DebridProviderPort, LinkBuilder
from .indexer import IndexerPort
from .stream_store import StreamStorePort
from .torrent_fetcher import TorrentFetcherPort

__all__ = [
    "CachePort",
    "DebridProviderPort",
    "IndexerPort",
    "LinkBuilder",
    "StreamStorePort",
    "TorrentFetcherPort",
]
