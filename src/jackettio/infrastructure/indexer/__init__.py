from .jackett import JackettIndexer, parse_torznab_indexers, parse_torznab_results
from .torrent_fetcher import TorrentFetcher, info_hash_from_magnet, info_hash_from_torrent

__all__ = [
    "JackettIndexer",
    "TorrentFetcher",
    "info_hash_from_magnet",
    "info_hash_from_torrent",
    "parse_torznab_indexers",
    "parse_torznab_results",
]
