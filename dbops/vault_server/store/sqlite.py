"""
SQLite document store for the vault server.

This module manages a single SQLite database that stores:
- Live application collections as JSON documents
- Backup snapshot metadata rows
- Backup snapshot chunks (one JSON array per collection per snapshot)

Invariants:
    - Every write runs in a single transaction
    - Deleting a snapshot removes its metadata and chunks atomically
    - Document bodies are stored verbatim as JSON text

How to change safely:
    - Schema migrations must be backward compatible
    - Bump SCHEMA_VERSION and migrate in _create_schema()
    - Keep datetime columns as Unix milliseconds so ordering stays numeric

Table schema:
    documents:
        - collection TEXT
        - doc_id TEXT (the document's _id, or a generated UUID)
        - body_json TEXT
        - PRIMARY KEY (collection, doc_id)

    backup_metadata:
        - snapshot_id TEXT PRIMARY KEY
        - kind TEXT
        - status TEXT
        - collections_json TEXT (per-collection outcomes)
        - total_documents INTEGER
        - total_size_bytes INTEGER
        - started_at INTEGER (Unix ms)
        - finished_at INTEGER (Unix ms, NULL while in progress)
        - error TEXT

    backup_chunks:
        - snapshot_id TEXT
        - collection_name TEXT
        - documents_json TEXT
        - created_at INTEGER
        - PRIMARY KEY (snapshot_id, collection_name)
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..errors import ConnectivityError
from ..model import (
    CollectionOutcome,
    SnapshotChunk,
    SnapshotKind,
    SnapshotMetadata,
    SnapshotStatus,
)

logger = logging.getLogger(__name__)


def _to_ms(value: datetime | None) -> int | None:
    if value is None:
        return None
    return int(value.timestamp() * 1000)


def _from_ms(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


class SqliteCollection:
    """Collection accessor backed by the documents table."""

    def __init__(self, store: SqliteDocumentStore, name: str) -> None:
        self.store = store
        self.name = name

    async def find_all(self) -> list[dict[str, Any]]:
        with self.store._get_connection() as conn:
            cursor = conn.execute(
                "SELECT body_json FROM documents WHERE collection = ?",
                (self.name,),
            )
            return [json.loads(row["body_json"]) for row in cursor.fetchall()]

    async def count(self) -> int:
        with self.store._get_connection() as conn:
            cursor = conn.execute(
                "SELECT COUNT(*) FROM documents WHERE collection = ?",
                (self.name,),
            )
            return int(cursor.fetchone()[0])

    async def delete_all(self) -> int:
        with self.store._get_connection() as conn:
            cursor = conn.execute("DELETE FROM documents WHERE collection = ?", (self.name,))
            return cursor.rowcount

    async def insert_many(self, documents: list[dict[str, Any]]) -> int:
        if not documents:
            return 0

        rows = [
            (
                self.name,
                str(doc["_id"]) if doc.get("_id") is not None else str(uuid.uuid4()),
                json.dumps(doc, default=str),
            )
            for doc in documents
        ]

        with self.store._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                conn.executemany(
                    "INSERT INTO documents (collection, doc_id, body_json) VALUES (?, ?, ?)",
                    rows,
                )
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

        return len(rows)


class SqliteDocumentStore:
    """SQLite-backed DocumentStore.

    Thread safety:
        Each operation opens its own connection.
        SQLite handles concurrent access via WAL mode.

    Example:
        >>> store = SqliteDocumentStore("/var/lib/vault/timetrack.db")
        >>> await store.connect()
        >>> users = await store.collection("users").find_all()
    """

    # SQLite schema version for migrations
    SCHEMA_VERSION = 1

    def __init__(
        self,
        db_path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database file
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.db_path = Path(db_path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get a configured database connection.

        Yields:
            SQLite connection

        Raises:
            ConnectivityError: If the store is closed or the file cannot be opened
        """
        if not self._connected:
            raise ConnectivityError("Document store is not connected", target=str(self.db_path))

        try:
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit by default, explicit transactions
            )
        except sqlite3.Error as e:
            raise ConnectivityError(f"Cannot open {self.db_path}: {e}", target=str(self.db_path)) from e

        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")

            yield conn
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            -- Schema version tracking
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            -- Live application documents
            CREATE TABLE IF NOT EXISTS documents (
                collection TEXT NOT NULL,
                doc_id TEXT NOT NULL,
                body_json TEXT NOT NULL,
                PRIMARY KEY (collection, doc_id)
            );

            -- Snapshot metadata
            CREATE TABLE IF NOT EXISTS backup_metadata (
                snapshot_id TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'in_progress',
                collections_json TEXT NOT NULL DEFAULT '{}',
                total_documents INTEGER NOT NULL DEFAULT 0,
                total_size_bytes INTEGER NOT NULL DEFAULT 0,
                started_at INTEGER NOT NULL,
                finished_at INTEGER,
                error TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_backup_started ON backup_metadata(started_at DESC);
            CREATE INDEX IF NOT EXISTS idx_backup_kind_status ON backup_metadata(kind, status);

            -- Snapshot chunks, owned by their metadata row
            CREATE TABLE IF NOT EXISTS backup_chunks (
                snapshot_id TEXT NOT NULL,
                collection_name TEXT NOT NULL,
                documents_json TEXT NOT NULL,
                created_at INTEGER NOT NULL,
                PRIMARY KEY (snapshot_id, collection_name)
            );

            -- Record schema version
            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    async def connect(self) -> None:
        """Open the database, creating file and schema if needed."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConnectivityError(f"Cannot create {self.db_path.parent}: {e}", target=str(self.db_path)) from e

        self._connected = True
        try:
            with self._get_connection() as conn:
                self._create_schema(conn)
        except sqlite3.Error as e:
            self._connected = False
            raise ConnectivityError(f"Cannot initialize {self.db_path}: {e}", target=str(self.db_path)) from e

        logger.info(f"Opened document store: {self.db_path}")

    async def close(self) -> None:
        self._connected = False

    async def ping(self) -> None:
        try:
            with self._get_connection() as conn:
                conn.execute("SELECT 1").fetchone()
        except sqlite3.Error as e:
            raise ConnectivityError(f"Database connection failed: {e}", target=str(self.db_path)) from e

    def collection(self, name: str) -> SqliteCollection:
        return SqliteCollection(self, name)

    async def insert_snapshot(self, metadata: SnapshotMetadata) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO backup_metadata (snapshot_id, kind, status, collections_json,
                                             total_documents, total_size_bytes,
                                             started_at, finished_at, error)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                self._metadata_row(metadata),
            )

    async def update_snapshot(self, metadata: SnapshotMetadata) -> None:
        row = self._metadata_row(metadata)
        with self._get_connection() as conn:
            conn.execute(
                """
                UPDATE backup_metadata
                SET kind = ?, status = ?, collections_json = ?, total_documents = ?,
                    total_size_bytes = ?, started_at = ?, finished_at = ?, error = ?
                WHERE snapshot_id = ?
                """,
                (*row[1:], row[0]),
            )

    async def get_snapshot(self, snapshot_id: str) -> SnapshotMetadata | None:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM backup_metadata WHERE snapshot_id = ?",
                (snapshot_id,),
            )
            row = cursor.fetchone()
            return self._row_to_metadata(row) if row else None

    async def list_snapshots(
        self,
        status: SnapshotStatus | None = None,
        kind: SnapshotKind | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[SnapshotMetadata]:
        query = "SELECT * FROM backup_metadata WHERE 1=1"
        params: list[Any] = []

        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        if kind is not None:
            query += " AND kind = ?"
            params.append(kind.value)
        if since is not None:
            query += " AND started_at >= ?"
            params.append(_to_ms(since))

        query += " ORDER BY started_at DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self._get_connection() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_metadata(row) for row in cursor.fetchall()]

    async def delete_snapshot(self, snapshot_id: str) -> bool:
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                conn.execute("DELETE FROM backup_chunks WHERE snapshot_id = ?", (snapshot_id,))
                cursor = conn.execute(
                    "DELETE FROM backup_metadata WHERE snapshot_id = ?",
                    (snapshot_id,),
                )
                conn.execute("COMMIT")
                return cursor.rowcount > 0
            except Exception:
                conn.execute("ROLLBACK")
                raise

    async def insert_chunk(self, chunk: SnapshotChunk) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO backup_chunks
                (snapshot_id, collection_name, documents_json, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (
                    chunk.snapshot_id,
                    chunk.collection_name,
                    json.dumps(chunk.documents, default=str),
                    int(time.time() * 1000),
                ),
            )

    async def get_chunks(self, snapshot_id: str) -> list[SnapshotChunk]:
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT collection_name, documents_json FROM backup_chunks
                WHERE snapshot_id = ? ORDER BY collection_name
                """,
                (snapshot_id,),
            )
            return [
                SnapshotChunk(
                    snapshot_id=snapshot_id,
                    collection_name=row["collection_name"],
                    documents=json.loads(row["documents_json"]),
                )
                for row in cursor.fetchall()
            ]

    def _metadata_row(self, metadata: SnapshotMetadata) -> tuple[Any, ...]:
        return (
            metadata.snapshot_id,
            metadata.kind.value,
            metadata.status.value,
            json.dumps({k: v.to_dict() for k, v in metadata.per_collection.items()}),
            metadata.total_documents,
            metadata.total_size_bytes,
            _to_ms(metadata.started_at),
            _to_ms(metadata.finished_at),
            metadata.error,
        )

    def _row_to_metadata(self, row: sqlite3.Row) -> SnapshotMetadata:
        return SnapshotMetadata(
            snapshot_id=row["snapshot_id"],
            kind=SnapshotKind(row["kind"]),
            status=SnapshotStatus(row["status"]),
            per_collection={
                name: CollectionOutcome.from_dict(data)
                for name, data in json.loads(row["collections_json"]).items()
            },
            total_documents=row["total_documents"],
            total_size_bytes=row["total_size_bytes"],
            started_at=_from_ms(row["started_at"]),
            finished_at=_from_ms(row["finished_at"]),
            error=row["error"],
        )
