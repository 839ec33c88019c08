"""Stream record store: in-memory collection persisted through diskcache.

Records live in memory for lookups and are written to a ``diskcache.Cache``
(one entry per record, keyed by record id) by the autosave flush. ``vacuum``
runs the cache's integrity check with ``fix=True``, which compacts the
SQLite file.

Single-writer discipline: ``append``, ``flush``, ``vacuum`` and ``clean``
hold one ``asyncio.Lock``. In-memory state is only mutated in synchronous
sections, so readers (``find``, ``records``) need no lock.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
import time
from collections.abc import Callable, Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any, TypeVar

import structlog
from diskcache import Cache as DiskCache

from jackettio.domain.entities.errors import StorageUnavailable
from jackettio.domain.entities.stremio import StreamQuality, StreamRecord

log = structlog.get_logger(__name__)

T = TypeVar("T")


def _serialize_record(record: StreamRecord) -> str:
    """Serialize StreamRecord to JSON string."""
    return json.dumps(
        {
            "record_id": record.record_id,
            "media_type": record.media_type,
            "media_id": record.media_id,
            "torrent_id": record.torrent_id,
            "title": record.title,
            "provider": record.provider,
            "url": record.url,
            "quality": int(record.quality),
            "languages": list(record.languages),
            "size": record.size,
            "seeders": record.seeders,
            "indexer": record.indexer,
            "cached": record.cached,
            "info_hash": record.info_hash,
            "magnet_uri": record.magnet_uri,
            "torrent_link": record.torrent_link,
            "position": record.position,
            "created_at": record.created_at,
        }
    )


def _deserialize_record(data: str) -> StreamRecord:
    """Deserialize StreamRecord from JSON string."""
    d = json.loads(data)
    return StreamRecord(
        media_type=d["media_type"],
        media_id=d["media_id"],
        torrent_id=d["torrent_id"],
        title=d.get("title", ""),
        provider=d.get("provider", ""),
        url=d.get("url", ""),
        quality=StreamQuality(d.get("quality", 0)),
        languages=tuple(d.get("languages", ())),
        size=d.get("size", 0),
        seeders=d.get("seeders", 0),
        indexer=d.get("indexer", ""),
        cached=d.get("cached", False),
        info_hash=d.get("info_hash", ""),
        magnet_uri=d.get("magnet_uri", ""),
        torrent_link=d.get("torrent_link", ""),
        position=d.get("position", 0),
        created_at=float(d.get("created_at", 0.0)),
        record_id=int(d["record_id"]),
    )


class DiskcacheStreamStore:
    """Append-only store of ``StreamRecord`` entries.

    Args:
        directory: diskcache directory holding the records.
        clock: Epoch-seconds clock (injectable for tests).
    """

    def __init__(self, directory: str | Path, *, clock: Callable[[], float] = time.time) -> None:
        self.directory = Path(directory)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._cache: DiskCache | None = None
        self._records: dict[int, StreamRecord] = {}
        self._pending: list[StreamRecord] = []
        self._next_id = 1
        self._last_created = 0.0

    # --- lifecycle ---

    async def open(self) -> None:
        """Open the cache directory and load every stored record."""
        async with self._lock:
            try:
                cache, records = await self._run_io(self._open_sync)
            except (OSError, sqlite3.Error) as e:
                raise StorageUnavailable(f"cannot open store at {self.directory}: {e}") from e

            self._cache = cache
            self._records = records
            self._next_id = max(records, default=0) + 1
            self._last_created = max(
                (r.created_at for r in records.values()), default=0.0
            )
        log.info("stream_store_opened", path=str(self.directory), records=len(self._records))

    async def close(self) -> None:
        """Flush pending records and close the cache; flush failures are logged."""
        try:
            await self.flush()
        except StorageUnavailable:
            log.error("stream_store_close_flush_failed", exc_info=True)

        async with self._lock:
            if self._cache is not None:
                await self._run_io(self._cache.close)
                self._cache = None

    def _require(self) -> DiskCache:
        if self._cache is None:
            raise StorageUnavailable("stream store is not open")
        return self._cache

    # --- writes ---

    async def append(self, records: Sequence[StreamRecord]) -> list[StreamRecord]:
        """Insert *records* in order; returns them with ids and timestamps set.

        ``created_at`` defaults to now and is clamped so it never goes
        backwards in insertion order.
        """
        async with self._lock:
            now = self._clock()
            stored: list[StreamRecord] = []
            for r in records:
                created = max(r.created_at or now, self._last_created)
                rec = replace(r, record_id=self._next_id, created_at=created)
                self._next_id += 1
                self._last_created = created
                self._records[rec.record_id] = rec
                self._pending.append(rec)
                stored.append(rec)
        log.debug("stream_store_appended", count=len(stored))
        return stored

    async def flush(self) -> int:
        """Write pending records to the cache (autosave). Returns records written.

        On failure the records stay pending and are retried by the next flush.
        """
        async with self._lock:
            if not self._pending:
                return 0
            cache = self._require()
            batch = list(self._pending)
            try:
                await self._run_io(self._write_sync, cache, batch)
            except (OSError, sqlite3.Error) as e:
                raise StorageUnavailable(f"autosave failed: {e}") from e
            del self._pending[: len(batch)]
        log.debug("stream_store_flushed", records=len(batch))
        return len(batch)

    async def vacuum(self) -> None:
        """Compact the on-disk cache."""
        async with self._lock:
            cache = self._require()
            try:
                warnings = await self._run_io(cache.check, True)
            except (OSError, sqlite3.Error) as e:
                raise StorageUnavailable(f"vacuum failed: {e}") from e
        for w in warnings:
            log.warning("stream_store_check_warning", message=str(w.message))
        log.info("stream_store_vacuumed", records=len(self._records))

    async def clean(self, retention_seconds: float) -> int:
        """Remove records created before ``now - retention_seconds``.

        Idempotent: a second run with the same horizon removes nothing.
        """
        async with self._lock:
            cutoff = self._clock() - retention_seconds
            stale = [rid for rid, r in self._records.items() if r.created_at < cutoff]
            if not stale:
                return 0

            cache = self._require()
            try:
                await self._run_io(self._delete_sync, cache, stale)
            except (OSError, sqlite3.Error) as e:
                raise StorageUnavailable(f"clean failed: {e}") from e

            gone = set(stale)
            for rid in stale:
                del self._records[rid]
            self._pending = [r for r in self._pending if r.record_id not in gone]
        log.info("stream_store_cleaned", removed=len(stale), remaining=len(self._records))
        return len(stale)

    # --- reads ---

    def find(self, media_type: str, media_id: str, torrent_id: str) -> StreamRecord | None:
        """Latest record for the given media + torrent, if any."""
        for rec in reversed(self._records.values()):
            if (
                rec.torrent_id == torrent_id
                and rec.media_id == media_id
                and rec.media_type == media_type
            ):
                return rec
        return None

    def records(self) -> list[StreamRecord]:
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    @property
    def pending(self) -> int:
        return len(self._pending)

    # --- I/O ---

    async def _run_io(self, fn: Callable[..., T], *args: Any) -> T:
        """Run blocking I/O in a thread; never abandon it half-way.

        If the caller is cancelled the thread is still awaited before the
        cancellation propagates, so the lock is not released mid-write.
        """
        task = asyncio.ensure_future(asyncio.to_thread(fn, *args))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            try:
                await task
            except Exception:
                log.warning("stream_store_io_failed_during_cancel", exc_info=True)
            raise

    def _open_sync(self) -> tuple[DiskCache, dict[int, StreamRecord]]:
        self.directory.mkdir(parents=True, exist_ok=True)
        cache = DiskCache(str(self.directory))
        loaded: list[StreamRecord] = []
        for key in cache.iterkeys():
            data = cache.get(key)
            if data is None:
                continue
            try:
                loaded.append(_deserialize_record(data))
            except (ValueError, KeyError, TypeError):
                log.warning("stream_store_bad_entry", key=key)
        loaded.sort(key=lambda r: r.record_id)
        return cache, {r.record_id: r for r in loaded}

    @staticmethod
    def _write_sync(cache: DiskCache, batch: list[StreamRecord]) -> None:
        with cache.transact():
            for rec in batch:
                cache.set(rec.record_id, _serialize_record(rec))

    @staticmethod
    def _delete_sync(cache: DiskCache, record_ids: list[int]) -> None:
        with cache.transact():
            for rid in record_ids:
                cache.delete(rid)
