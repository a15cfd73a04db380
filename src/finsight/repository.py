# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
Record store for FinSight.

The calculators never talk to storage. They receive snapshots of documents,
normalized by models.py. This module provides the store those snapshots
come from, behind a small ``Repository`` interface:

- ``list(collection, where=None)``    -> documents (equality filter)
- ``get(collection, id)``             -> document, or NotFoundError
- ``create(collection, document)``    -> id (generated when missing)
- ``create_many(collection, docs)``   -> ids, all created or none
- ``update(collection, id, patch)``   -> merged document
- ``delete(collection, id)``
- ``subscribe(collection, callback)`` -> unsubscribe function

Subscribers receive the full snapshot of the collection after every
successful write to it, which is what ``sync.SnapshotFanIn`` consumes.

------------------------------------------------------------------------------
Implementations
------------------------------------------------------------------------------

1) InMemoryRepository
   Dict-backed store, used by tests and as a scratch store by the CLI.

2) SqliteRepository
   Stores every collection in a single ``documents`` table of a SQLite file:

   - collection  TEXT NOT NULL
   - id          TEXT NOT NULL
   - body        TEXT NOT NULL  -- JSON document
   - created_at  TEXT NOT NULL  -- ISO datetime, UTC
   - updated_at  TEXT           -- ISO datetime, UTC
   PRIMARY KEY (collection, id)

   The schema is created on first use. Any ``sqlite3.Error`` is wrapped in
   ``ExternalServiceError`` so that callers deal with one failure type for
   every backend.

------------------------------------------------------------------------------
SQLite Notes
------------------------------------------------------------------------------

- All timestamps are stored as ISO-8601 text (UTC).
- Foreign key enforcement is explicitly enabled.
- Documents must be JSON-serializable; dates are stored as ISO strings.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from .errors import ExternalServiceError, NotFoundError

logger = logging.getLogger(__name__)

Document = dict[str, Any]
Listener = Callable[[list[Document]], None]
Unsubscribe = Callable[[], None]

# Collection names, shared with models.NORMALIZERS.
TRANSACTIONS = "transactions"
ASSIGNMENTS = "assignments"
TIMESHEETS = "timesheets"
SUBSCRIPTIONS = "subscriptions"
PARTNERS = "partners"
ORGANIZATIONS = "organizations"
DISTRIBUTIONS = "distributions"
PAYROLL = "payroll"
SUBMISSIONS = "submissions"
JOB_ROLES = "job_roles"
RECRUITERS = "recruiters"
RECRUITER_TASKS = "recruiter_tasks"
DEALS = "deals"
ACTIVITY_LOG = "activity_log"


class Repository(Protocol):
    """Interface every record store implements."""

    def list(
        self, collection: str, where: Optional[Mapping[str, Any]] = None
    ) -> list[Document]: ...

    def get(self, collection: str, record_id: str) -> Document: ...

    def create(self, collection: str, document: Mapping[str, Any]) -> str: ...

    def create_many(
        self, collection: str, documents: Iterable[Mapping[str, Any]]
    ) -> list[str]: ...

    def update(
        self, collection: str, record_id: str, patch: Mapping[str, Any]
    ) -> Document: ...

    def delete(self, collection: str, record_id: str) -> None: ...

    def subscribe(self, collection: str, callback: Listener) -> Unsubscribe: ...


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _now_utc_iso() -> str:
    """Return the current UTC datetime as ISO string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _new_id() -> str:
    return uuid.uuid4().hex


def _matches(document: Mapping[str, Any], where: Optional[Mapping[str, Any]]) -> bool:
    if not where:
        return True
    return all(document.get(k) == v for k, v in where.items())


def _prepare(document: Mapping[str, Any]) -> Document:
    prepared = dict(document)
    if not prepared.get("id"):
        prepared["id"] = _new_id()
    return prepared


class _Subscriptions:
    """Per-collection listener registry shared by the implementations."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._lock = threading.Lock()

    def subscribe(self, collection: str, callback: Listener) -> Unsubscribe:
        with self._lock:
            self._listeners.setdefault(collection, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(collection, [])
                if callback in listeners:
                    listeners.remove(callback)

        return unsubscribe

    def has_listeners(self, collection: str) -> bool:
        with self._lock:
            return bool(self._listeners.get(collection))

    def notify(self, collection: str, snapshot: list[Document]) -> None:
        with self._lock:
            listeners = list(self._listeners.get(collection, []))
        for callback in listeners:
            callback(snapshot)


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class InMemoryRepository:
    """Dict-backed repository; change notifications are synchronous."""

    def __init__(self, data: Optional[Mapping[str, Iterable[Mapping[str, Any]]]] = None):
        self._data: dict[str, dict[str, Document]] = {}
        self._subs = _Subscriptions()
        for collection, documents in (data or {}).items():
            store = self._data.setdefault(collection, {})
            for doc in documents:
                prepared = _prepare(doc)
                store[prepared["id"]] = prepared

    def _collection(self, collection: str) -> dict[str, Document]:
        return self._data.setdefault(collection, {})

    def _changed(self, collection: str) -> None:
        if self._subs.has_listeners(collection):
            self._subs.notify(collection, self.list(collection))

    def list(
        self, collection: str, where: Optional[Mapping[str, Any]] = None
    ) -> list[Document]:
        return [
            dict(doc)
            for doc in self._collection(collection).values()
            if _matches(doc, where)
        ]

    def get(self, collection: str, record_id: str) -> Document:
        try:
            return dict(self._collection(collection)[record_id])
        except KeyError:
            raise NotFoundError(collection, record_id) from None

    def create(self, collection: str, document: Mapping[str, Any]) -> str:
        return self.create_many(collection, [document])[0]

    def create_many(
        self, collection: str, documents: Iterable[Mapping[str, Any]]
    ) -> list[str]:
        prepared = [_prepare(d) for d in documents]
        store = self._collection(collection)
        for doc in prepared:
            store[doc["id"]] = doc
        if prepared:
            self._changed(collection)
        return [doc["id"] for doc in prepared]

    def update(
        self, collection: str, record_id: str, patch: Mapping[str, Any]
    ) -> Document:
        current = self.get(collection, record_id)
        current.update(patch)
        current["id"] = record_id
        self._collection(collection)[record_id] = current
        self._changed(collection)
        return dict(current)

    def delete(self, collection: str, record_id: str) -> None:
        store = self._collection(collection)
        if record_id not in store:
            raise NotFoundError(collection, record_id)
        del store[record_id]
        self._changed(collection)

    def subscribe(self, collection: str, callback: Listener) -> Unsubscribe:
        """Register ``callback``; it is called at once with the current snapshot."""
        unsubscribe = self._subs.subscribe(collection, callback)
        callback(self.list(collection))
        return unsubscribe


# ---------------------------------------------------------------------------
# SQLite store
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Database configuration for FinSight.

    Attributes
    ----------
    engine:
        Database engine identifier. Only "sqlite" is supported.
    path:
        Path to the SQLite database file.
    """

    engine: str
    path: Path


def _ensure_sqlite(cfg: DatabaseConfig) -> None:
    """Raise if the configuration does not refer to a supported engine."""
    if cfg.engine.lower() != "sqlite":
        msg = (
            f"Unsupported database engine: {cfg.engine!r}. "
            "Only 'sqlite' is supported for now."
        )
        raise ValueError(msg)


def _connect(cfg: DatabaseConfig) -> sqlite3.Connection:
    """
    Open a SQLite connection with foreign keys enabled.

    The caller is responsible for closing the connection.
    """
    _ensure_sqlite(cfg)
    conn = sqlite3.connect(cfg.path)
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _create_schema_if_needed(conn: sqlite3.Connection) -> None:
    """Create the documents table and its index. Idempotent."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS documents (
            collection  TEXT NOT NULL,
            id          TEXT NOT NULL,
            body        TEXT NOT NULL,  -- JSON document
            created_at  TEXT NOT NULL,
            updated_at  TEXT,

            PRIMARY KEY (collection, id)
        );
        """
    )
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_documents_collection
            ON documents(collection);
        """
    )
    conn.commit()


def init_database(cfg: DatabaseConfig) -> None:
    """
    Initialize the database schema if needed.

    - Creates the SQLite file (and its parent directory) if missing.
    - Creates the ``documents`` table if missing.
    - This function is idempotent: calling it multiple times is safe.

    Raises
    ------
    ValueError
        If cfg.engine is not supported.
    ExternalServiceError
        If schema creation fails.
    """
    _ensure_sqlite(cfg)
    cfg.path.parent.mkdir(parents=True, exist_ok=True)
    try:
        conn = _connect(cfg)
        try:
            _create_schema_if_needed(conn)
        finally:
            conn.close()
    except sqlite3.Error as exc:
        raise ExternalServiceError(
            f"Could not initialize database at {cfg.path}: {exc}"
        ) from exc


class SqliteRepository:
    """Repository storing JSON documents in a SQLite file."""

    def __init__(self, cfg: DatabaseConfig) -> None:
        self.cfg = cfg
        self._subs = _Subscriptions()
        init_database(cfg)

    def _run(self, action: str, fn: Callable[[sqlite3.Connection], Any]) -> Any:
        try:
            conn = _connect(self.cfg)
            try:
                result = fn(conn)
                conn.commit()
                return result
            except BaseException:
                conn.rollback()
                raise
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.error("SQLite %s failed on %s: %s", action, self.cfg.path, exc)
            raise ExternalServiceError(f"Database {action} failed: {exc}") from exc

    def _changed(self, collection: str) -> None:
        if self._subs.has_listeners(collection):
            self._subs.notify(collection, self.list(collection))

    def list(
        self, collection: str, where: Optional[Mapping[str, Any]] = None
    ) -> list[Document]:
        rows = self._run(
            "read",
            lambda conn: conn.execute(
                "SELECT body FROM documents WHERE collection = ? ORDER BY created_at, id;",
                (collection,),
            ).fetchall(),
        )
        documents = [json.loads(body) for (body,) in rows]
        return [d for d in documents if _matches(d, where)]

    def get(self, collection: str, record_id: str) -> Document:
        row = self._run(
            "read",
            lambda conn: conn.execute(
                "SELECT body FROM documents WHERE collection = ? AND id = ?;",
                (collection, record_id),
            ).fetchone(),
        )
        if row is None:
            raise NotFoundError(collection, record_id)
        return json.loads(row[0])

    def create(self, collection: str, document: Mapping[str, Any]) -> str:
        return self.create_many(collection, [document])[0]

    def create_many(
        self, collection: str, documents: Iterable[Mapping[str, Any]]
    ) -> list[str]:
        """Insert all documents in one transaction; a failure inserts none."""
        prepared = [_prepare(d) for d in documents]
        now = _now_utc_iso()

        def insert(conn: sqlite3.Connection) -> None:
            conn.executemany(
                """
                INSERT INTO documents (collection, id, body, created_at, updated_at)
                VALUES (?, ?, ?, ?, NULL);
                """,
                [
                    (collection, doc["id"], json.dumps(doc, default=str), now)
                    for doc in prepared
                ],
            )

        self._run("insert", insert)
        if prepared:
            self._changed(collection)
        return [doc["id"] for doc in prepared]

    def update(
        self, collection: str, record_id: str, patch: Mapping[str, Any]
    ) -> Document:
        current = self.get(collection, record_id)
        current.update(patch)
        current["id"] = record_id
        body = json.dumps(current, default=str)
        self._run(
            "update",
            lambda conn: conn.execute(
                """
                UPDATE documents SET body = ?, updated_at = ?
                WHERE collection = ? AND id = ?;
                """,
                (body, _now_utc_iso(), collection, record_id),
            ),
        )
        self._changed(collection)
        return current

    def delete(self, collection: str, record_id: str) -> None:
        cur = self._run(
            "delete",
            lambda conn: conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?;",
                (collection, record_id),
            ).rowcount,
        )
        if cur == 0:
            raise NotFoundError(collection, record_id)
        self._changed(collection)

    def subscribe(self, collection: str, callback: Listener) -> Unsubscribe:
        """Register ``callback``; it is called at once with the current snapshot."""
        unsubscribe = self._subs.subscribe(collection, callback)
        callback(self.list(collection))
        return unsubscribe


def open_repository(cfg: Optional[DatabaseConfig]) -> Repository:
    """SQLite repository for ``cfg``, or an empty in-memory one without config."""
    if cfg is None:
        return InMemoryRepository()
    return SqliteRepository(cfg)
