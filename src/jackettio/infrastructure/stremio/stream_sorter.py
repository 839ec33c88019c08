"""Stream ordering by the user's sort preference.

Cached streams come first, ordered by ``sort_cached``; uncached streams follow,
ordered by ``sort_uncached``. Ties keep indexer response order.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from jackettio.domain.entities.stremio import StreamRecord
from jackettio.domain.entities.user_config import SortSpec, UserConfig


class StreamSorter:
    """Orders stream records for one user.

    ``language`` sorting ranks a stream by the position of its best match in
    ``prioritize_languages`` (first entry ranks highest); streams matching none
    rank lowest.
    """

    def __init__(self, prioritize_languages: Sequence[str] = ()) -> None:
        self._language_rank = {
            lang: len(prioritize_languages) - i
            for i, lang in enumerate(prioritize_languages)
        }

    def _language_score(self, record: StreamRecord) -> int:
        return max((self._language_rank.get(lang, 0) for lang in record.languages), default=0)

    def _field(self, record: StreamRecord, name: str) -> int:
        if name == "quality":
            return int(record.quality)
        if name == "seeders":
            return record.seeders
        if name == "size":
            return record.size
        if name == "language":
            return self._language_score(record)
        raise ValueError(f"unsupported sort field: {name!r}")

    def sort(self, records: Iterable[StreamRecord], spec: SortSpec) -> list[StreamRecord]:
        """Sort by *spec*; ties are broken by ``position`` ascending."""

        def key(record: StreamRecord) -> tuple[int, ...]:
            parts = [
                -self._field(record, name) if descending else self._field(record, name)
                for name, descending in spec
            ]
            parts.append(record.position)
            return tuple(parts)

        return sorted(records, key=key)

    def arrange(
        self, records: Iterable[StreamRecord], config: UserConfig
    ) -> list[StreamRecord]:
        """Split, sort and cap: cached first, then uncached (unless hidden)."""
        cached: list[StreamRecord] = []
        uncached: list[StreamRecord] = []
        for r in records:
            (cached if r.cached else uncached).append(r)

        ordered = self.sort(cached, config.sort_cached)[: config.max_torrents]
        if not config.hide_uncached:
            ordered += self.sort(uncached, config.sort_uncached)[: config.max_torrents]
        return ordered
