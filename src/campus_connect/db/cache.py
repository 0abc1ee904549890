from __future__ import annotations

import itertools
import logging
import sqlite3
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable

from campus_connect.config import SETTINGS
from campus_connect.db.store import DocumentSnapshot, DocumentStore
from campus_connect.errors import TransientStoreError

logger = logging.getLogger(__name__)


@dataclass
class _CacheEntry:
    snapshots: list[DocumentSnapshot]
    fetched_at: float
    sequence: int


class ReadThroughCache:
    """Local snapshots of whole collections in front of the document store.

    The store is always the source of truth. A snapshot younger than the TTL
    is served as-is; an older one is refreshed from the store, and only if the
    store fails is the stale copy returned instead. Each cached collection is
    also subscribed, so committed writes reconcile the snapshot without
    waiting for the TTL. Writes are queued on a background pool and never
    block the caller.
    """

    def __init__(self, store: DocumentStore, ttl_seconds: float | None = None) -> None:
        self.store = store
        self.ttl_seconds = SETTINGS.cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries: dict[str, _CacheEntry] = {}
        self._unsubscribers: dict[str, Callable[[], None]] = {}
        self._lock = threading.Lock()
        self._sequence = itertools.count(1)
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="cache-write")

    def get_collection(self, collection: str) -> list[DocumentSnapshot]:
        with self._lock:
            entry = self._entries.get(collection)
        if entry is not None and time.monotonic() - entry.fetched_at < self.ttl_seconds:
            return list(entry.snapshots)

        try:
            if collection in self._unsubscribers:
                # A delivery that lands while the query runs is newer than its result.
                ticket = next(self._sequence)
                self._remember(collection, self.store.query(collection), sequence=ticket)
            else:
                self._unsubscribers[collection] = self.store.subscribe(
                    collection, partial(self._remember, collection)
                )
        except (sqlite3.Error, TransientStoreError) as exc:
            if entry is None:
                raise
            logger.warning("Serving stale %s snapshot, store unavailable: %s", collection, exc)
            return list(entry.snapshots)

        with self._lock:
            return list(self._entries[collection].snapshots)

    def write(self, collection: str, data: dict[str, Any]) -> Future:
        future = self._executor.submit(self.store.create, collection, data)
        future.add_done_callback(partial(_log_write_failure, collection))
        return future

    def invalidate(self, collection: str | None = None) -> None:
        with self._lock:
            if collection is None:
                self._entries.clear()
            else:
                self._entries.pop(collection, None)

    def close(self) -> None:
        for unsubscribe in self._unsubscribers.values():
            unsubscribe()
        self._unsubscribers.clear()
        self._executor.shutdown(wait=True)

    def _remember(
        self,
        collection: str,
        snapshots: list[DocumentSnapshot],
        sequence: int | None = None,
    ) -> None:
        with self._lock:
            if sequence is None:
                sequence = next(self._sequence)
            current = self._entries.get(collection)
            if current is not None and current.sequence > sequence:
                return
            self._entries[collection] = _CacheEntry(
                snapshots=list(snapshots),
                fetched_at=time.monotonic(),
                sequence=sequence,
            )


def _log_write_failure(collection: str, future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Background write to %s failed: %s", collection, exc)
