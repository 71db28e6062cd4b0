"""
In-memory document store implementation for testing.

This module provides a simple in-memory backend for:
- Unit tests
- Integration tests
- Local development without a database file

Invariants:
    - All data is lost on process exit
    - Documents are deep-copied on the way in and out, callers never share state
    - Snapshot deletion removes metadata and chunks together

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with the DocumentStore protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any

from ..errors import ConnectivityError
from ..model import SnapshotChunk, SnapshotKind, SnapshotMetadata, SnapshotStatus

logger = logging.getLogger(__name__)


class InMemoryCollection:
    """Collection accessor over an in-memory list of documents."""

    def __init__(self, store: InMemoryDocumentStore, name: str) -> None:
        self.store = store
        self.name = name

    async def find_all(self) -> list[dict[str, Any]]:
        self.store._check(self.name, "find_all")
        return copy.deepcopy(self.store._documents[self.name])

    async def count(self) -> int:
        self.store._check(self.name, "count")
        return len(self.store._documents[self.name])

    async def delete_all(self) -> int:
        self.store._check(self.name, "delete_all")
        removed = len(self.store._documents[self.name])
        self.store._documents[self.name] = []
        return removed

    async def insert_many(self, documents: list[dict[str, Any]]) -> int:
        self.store._check(self.name, "insert_many")
        self.store._documents[self.name].extend(copy.deepcopy(documents))
        return len(documents)


class InMemoryDocumentStore:
    """In-memory implementation of DocumentStore for testing.

    Thread safety:
        Uses an asyncio lock around snapshot history mutations. Safe to use
        from multiple coroutines.

    Example:
        >>> store = InMemoryDocumentStore()
        >>> await store.connect()
        >>> store.seed("users", [{"_id": "u1", "email": "a@example.com"}])
        >>> store.fail_collection("users", RuntimeError("boom"))
    """

    def __init__(self) -> None:
        self._documents: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self._snapshots: dict[str, SnapshotMetadata] = {}
        self._chunks: dict[str, dict[str, SnapshotChunk]] = defaultdict(dict)
        self._failures: dict[tuple[str, str], Exception] = {}
        self._unreachable: Exception | None = None
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryDocumentStore connected")

    async def close(self) -> None:
        self._connected = False
        logger.debug("InMemoryDocumentStore closed")

    async def ping(self) -> None:
        self._check_reachable()

    def collection(self, name: str) -> InMemoryCollection:
        return InMemoryCollection(self, name)

    async def insert_snapshot(self, metadata: SnapshotMetadata) -> None:
        self._check_reachable()
        async with self._lock:
            self._snapshots[metadata.snapshot_id] = copy.deepcopy(metadata)

    async def update_snapshot(self, metadata: SnapshotMetadata) -> None:
        self._check_reachable()
        async with self._lock:
            self._snapshots[metadata.snapshot_id] = copy.deepcopy(metadata)

    async def get_snapshot(self, snapshot_id: str) -> SnapshotMetadata | None:
        self._check_reachable()
        found = self._snapshots.get(snapshot_id)
        return copy.deepcopy(found) if found else None

    async def list_snapshots(
        self,
        status: SnapshotStatus | None = None,
        kind: SnapshotKind | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[SnapshotMetadata]:
        self._check_reachable()
        rows = [
            m
            for m in self._snapshots.values()
            if (status is None or m.status == status)
            and (kind is None or m.kind == kind)
            and (since is None or m.started_at >= since)
        ]
        rows.sort(key=lambda m: m.started_at, reverse=True)
        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    async def delete_snapshot(self, snapshot_id: str) -> bool:
        self._check_reachable()
        self._check("backup_chunks", "delete")
        async with self._lock:
            self._chunks.pop(snapshot_id, None)
            return self._snapshots.pop(snapshot_id, None) is not None

    async def insert_chunk(self, chunk: SnapshotChunk) -> None:
        self._check_reachable()
        self._check(chunk.collection_name, "insert_chunk")
        async with self._lock:
            self._chunks[chunk.snapshot_id][chunk.collection_name] = copy.deepcopy(chunk)

    async def get_chunks(self, snapshot_id: str) -> list[SnapshotChunk]:
        self._check_reachable()
        return copy.deepcopy(list(self._chunks.get(snapshot_id, {}).values()))

    def _check_reachable(self) -> None:
        if self._unreachable is not None:
            raise ConnectivityError(f"Store unreachable: {self._unreachable}", target="memory://")

    def _check(self, name: str, operation: str) -> None:
        self._check_reachable()
        exc = self._failures.get((name, operation))
        if exc is not None:
            raise exc

    # Testing helpers

    def seed(self, name: str, documents: list[dict[str, Any]]) -> None:
        """Replace a collection's contents (testing helper)."""
        self._documents[name] = copy.deepcopy(documents)

    def documents(self, name: str) -> list[dict[str, Any]]:
        """Get a copy of a collection's contents (testing helper)."""
        return copy.deepcopy(self._documents.get(name, []))

    def fail_collection(
        self,
        name: str,
        exception: Exception,
        operations: tuple[str, ...] = ("find_all",),
    ) -> None:
        """Make operations on a collection raise (testing helper).

        Operations are accessor method names plus "insert_chunk" for chunk
        writes; use name="backup_chunks" with "delete" to break pruning.
        """
        for operation in operations:
            self._failures[(name, operation)] = exception

    def set_unreachable(self, exception: Exception | None) -> None:
        """Make every operation fail as if the store were down (testing helper)."""
        self._unreachable = exception

    def chunk_count(self, snapshot_id: str | None = None) -> int:
        """Count stored chunks (testing helper)."""
        if snapshot_id is not None:
            return len(self._chunks.get(snapshot_id, {}))
        return sum(len(chunks) for chunks in self._chunks.values())
