from __future__ import annotations

import itertools
import json
import logging
import sqlite3
import threading
import time
import uuid
from contextlib import closing
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence, TypeVar

from campus_connect.config import SETTINGS
from campus_connect.errors import NotFoundError, TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")
Filter = tuple[str, str, Any]
SnapshotCallback = Callable[[list["DocumentSnapshot"]], None]

SUPPORTED_OPERATORS = {"==", "array-contains"}


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_document_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class DocumentSnapshot:
    path: str
    id: str
    data: dict[str, Any]
    version: int
    created_at: str
    updated_at: str

    @property
    def collection(self) -> str:
        return self.path.rsplit("/", 1)[0]

    def get(self, field_path: str, default: Any = None) -> Any:
        return _lookup(self.data, field_path, default)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, **self.data}


@dataclass
class _WriteOp:
    kind: str
    path: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class _Subscription:
    collection: str
    callback: SnapshotCallback
    filters: tuple[Filter, ...]
    order_by: str | None
    descending: bool


class _Conflict(Exception):
    pass


class Transaction:
    """Buffers writes and records the version of every document it reads.

    All reads must happen before the first write. Nothing is visible to other
    readers until ``DocumentStore.run_transaction`` commits the whole batch.
    """

    def __init__(self, store: DocumentStore, conn: sqlite3.Connection) -> None:
        self._store = store
        self._conn = conn
        self.reads: dict[str, int] = {}
        self.writes: list[_WriteOp] = []

    def get(self, path: str) -> DocumentSnapshot | None:
        if self.writes:
            raise RuntimeError("Transaction reads must happen before writes")
        snapshot = self._store._read(self._conn, path)
        self.reads[path] = snapshot.version if snapshot else 0
        return snapshot

    def set(self, path: str, data: dict[str, Any]) -> None:
        _split_path(path)
        self.writes.append(_WriteOp(kind="set", path=path, data=dict(data)))

    def update(self, path: str, fields: dict[str, Any]) -> None:
        _split_path(path)
        self.writes.append(_WriteOp(kind="update", path=path, data=dict(fields)))

    def delete(self, path: str) -> None:
        _split_path(path)
        self.writes.append(_WriteOp(kind="delete", path=path))


class DocumentStore:
    """Slash-path document store on top of a single sqlite file.

    Documents live at paths such as ``profiles/u1`` or
    ``profiles/u1/ratings/u2``; a document's collection is its parent path.
    Every write bumps the document version, which is what optimistic
    transactions validate against.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path or SETTINGS.database_path)
        self._subscriptions: dict[int, _Subscription] = {}
        self._subscription_ids = itertools.count(1)
        self._subscription_lock = threading.Lock()
        self.init_schema()

    def init_schema(self) -> None:
        with closing(self._connect()) as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    path TEXT PRIMARY KEY,
                    collection TEXT NOT NULL,
                    doc_id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents (collection)"
            )

    def get(self, path: str) -> DocumentSnapshot | None:
        with closing(self._connect()) as conn:
            return self._read(conn, path)

    def create(self, collection: str, data: dict[str, Any], doc_id: str | None = None) -> DocumentSnapshot:
        path = f"{collection}/{doc_id or new_document_id()}"
        if self.get(path) is not None:
            raise ValueError(f"Document already exists: {path}")
        self._write([_WriteOp(kind="set", path=path, data=dict(data))])
        return self._require(path)

    def set(self, path: str, data: dict[str, Any]) -> DocumentSnapshot:
        self._write([_WriteOp(kind="set", path=path, data=dict(data))])
        return self._require(path)

    def update(self, path: str, fields: dict[str, Any]) -> DocumentSnapshot:
        """Merge ``fields`` into an existing document; dotted keys address nested maps."""
        self._write([_WriteOp(kind="update", path=path, data=dict(fields))])
        return self._require(path)

    def delete(self, path: str) -> None:
        self._write([_WriteOp(kind="delete", path=path)])

    def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[DocumentSnapshot]:
        filters = tuple(filters)
        for _, op, _ in filters:
            if op not in SUPPORTED_OPERATORS:
                raise ValueError(f"Unsupported query operator: {op}")

        with closing(self._connect()) as conn:
            rows = conn.execute(
                """
                SELECT path, doc_id, data, version, created_at, updated_at
                FROM documents
                WHERE collection = ?
                ORDER BY created_at ASC, path ASC
                """,
                (collection,),
            ).fetchall()

        snapshots = [_snapshot_from_row(row) for row in rows]
        matched = [snap for snap in snapshots if all(_matches(snap.data, f) for f in filters)]
        if order_by:
            matched.sort(key=lambda snap: _sort_key(snap.get(order_by)), reverse=descending)
        if limit is not None:
            matched = matched[:limit]
        return matched

    def subscribe(
        self,
        collection: str,
        callback: SnapshotCallback,
        filters: Iterable[Filter] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
    ) -> Callable[[], None]:
        """Deliver the current query result now and again after every write to ``collection``.

        Returns a function that cancels the subscription.
        """
        subscription = _Subscription(
            collection=collection,
            callback=callback,
            filters=tuple(filters),
            order_by=order_by,
            descending=descending,
        )
        with self._subscription_lock:
            sub_id = next(self._subscription_ids)
            self._subscriptions[sub_id] = subscription

        self._deliver(subscription)

        def unsubscribe() -> None:
            with self._subscription_lock:
                self._subscriptions.pop(sub_id, None)

        return unsubscribe

    def run_transaction(
        self,
        fn: Callable[[Transaction], T],
        max_attempts: int | None = None,
    ) -> T:
        """Run ``fn`` atomically, re-running it when a document it read changed underneath.

        Exceptions raised by ``fn`` itself propagate immediately and nothing is
        written. Store contention is retried; once ``max_attempts`` runs out a
        ``TransientStoreError`` is raised.
        """
        attempts = max_attempts or SETTINGS.transaction_max_attempts
        for attempt in range(1, attempts + 1):
            try:
                with closing(self._connect()) as conn:
                    transaction = Transaction(self, conn)
                    result = fn(transaction)
                    touched = self._commit(conn, transaction.writes, transaction.reads)
            except _Conflict as exc:
                logger.info("Transaction conflict on %s (attempt %d/%d)", exc, attempt, attempts)
            except sqlite3.OperationalError as exc:
                logger.warning("Transaction store error (attempt %d/%d): %s", attempt, attempts, exc)
            else:
                self._notify(touched)
                return result
            time.sleep(0.005 * attempt)

        raise TransientStoreError(f"Transaction did not commit after {attempts} attempts")

    def _write(self, ops: Sequence[_WriteOp]) -> None:
        try:
            with closing(self._connect()) as conn:
                touched = self._commit(conn, ops, {})
        except sqlite3.OperationalError as exc:
            raise TransientStoreError(f"Store write failed: {exc}") from exc
        self._notify(touched)

    def _commit(
        self,
        conn: sqlite3.Connection,
        ops: Sequence[_WriteOp],
        expected_versions: dict[str, int],
    ) -> set[str]:
        conn.execute("BEGIN IMMEDIATE")
        try:
            for path, expected in expected_versions.items():
                current = self._read(conn, path)
                if (current.version if current else 0) != expected:
                    raise _Conflict(path)

            touched: set[str] = set()
            for op in ops:
                self._apply(conn, op)
                touched.add(_split_path(op.path)[0])
            conn.execute("COMMIT")
            return touched
        except BaseException:
            conn.execute("ROLLBACK")
            raise

    def _apply(self, conn: sqlite3.Connection, op: _WriteOp) -> None:
        collection, doc_id = _split_path(op.path)
        now = utc_now()
        current = self._read(conn, op.path)

        if op.kind == "delete":
            conn.execute("DELETE FROM documents WHERE path = ?", (op.path,))
            return

        if op.kind == "update":
            if current is None:
                raise NotFoundError(f"Document not found: {op.path}")
            data = _merge_fields(current.data, op.data)
        else:
            data = op.data

        payload = json.dumps(data, ensure_ascii=False)
        if current is None:
            conn.execute(
                """
                INSERT INTO documents (path, collection, doc_id, data, version, created_at, updated_at)
                VALUES (?, ?, ?, ?, 1, ?, ?)
                """,
                (op.path, collection, doc_id, payload, now, now),
            )
        else:
            conn.execute(
                """
                UPDATE documents
                SET data = ?, version = version + 1, updated_at = ?
                WHERE path = ?
                """,
                (payload, now, op.path),
            )

    def _read(self, conn: sqlite3.Connection, path: str) -> DocumentSnapshot | None:
        _split_path(path)
        row = conn.execute(
            """
            SELECT path, doc_id, data, version, created_at, updated_at
            FROM documents
            WHERE path = ?
            """,
            (path,),
        ).fetchone()
        return _snapshot_from_row(row) if row else None

    def _require(self, path: str) -> DocumentSnapshot:
        snapshot = self.get(path)
        if snapshot is None:
            raise NotFoundError(f"Document not found: {path}")
        return snapshot

    def _notify(self, collections: set[str]) -> None:
        if not collections:
            return
        with self._subscription_lock:
            interested = [sub for sub in self._subscriptions.values() if sub.collection in collections]
        for subscription in interested:
            self._deliver(subscription)

    def _deliver(self, subscription: _Subscription) -> None:
        snapshots = self.query(
            subscription.collection,
            subscription.filters,
            order_by=subscription.order_by,
            descending=subscription.descending,
        )
        try:
            subscription.callback(snapshots)
        except Exception:
            logger.exception("Subscription callback for %s failed", subscription.collection)

    def _connect(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path, timeout=30, isolation_level=None, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn


def _split_path(path: str) -> tuple[str, str]:
    parts = [part for part in path.split("/") if part]
    if len(parts) < 2 or len(parts) % 2 != 0:
        raise ValueError(f"Not a document path: {path!r}")
    return "/".join(parts[:-1]), parts[-1]


def _snapshot_from_row(row: sqlite3.Row) -> DocumentSnapshot:
    return DocumentSnapshot(
        path=row["path"],
        id=row["doc_id"],
        data=json.loads(row["data"]),
        version=int(row["version"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _lookup(data: dict[str, Any], field_path: str, default: Any = None) -> Any:
    value: Any = data
    for part in field_path.split("."):
        if not isinstance(value, dict) or part not in value:
            return default
        value = value[part]
    return value


def _merge_fields(data: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
    merged = json.loads(json.dumps(data))
    for key, value in fields.items():
        target = merged
        parts = key.split(".")
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        target[parts[-1]] = value
    return merged


def _matches(data: dict[str, Any], flt: Filter) -> bool:
    field_path, op, expected = flt
    value = _lookup(data, field_path)
    if op == "array-contains":
        return isinstance(value, list) and expected in value
    return value == expected


def _sort_key(value: Any) -> tuple[bool, Any]:
    return (value is None, value if value is not None else "")
