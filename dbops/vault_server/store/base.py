"""
Base protocols for the document store abstraction.

This module defines the DocumentStore protocol that all backends must
implement, together with the CollectionAccessor handle used to read and
replace one logical dataset.

Invariants:
    - delete_snapshot() removes metadata and all chunks in one transaction
    - list_snapshots() returns newest first (by started_at)
    - Accessors never outlive the store they were created from

How to change safely:
    - Protocol changes require updating all implementations
    - Add new methods as optional with default implementations
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..config import StorageConfig
    from ..model import SnapshotChunk, SnapshotKind, SnapshotMetadata, SnapshotStatus


@runtime_checkable
class CollectionAccessor(Protocol):
    """Handle on one logical dataset in the live store.

    Example:
        >>> users = store.collection("users")
        >>> documents = await users.find_all()
        >>> await users.delete_all()
        >>> await users.insert_many(documents)
    """

    name: str

    @abstractmethod
    async def find_all(self) -> list[dict[str, Any]]:
        """Read every document in the collection."""
        ...

    @abstractmethod
    async def count(self) -> int:
        """Count documents in the collection."""
        ...

    @abstractmethod
    async def delete_all(self) -> int:
        """Delete every document. Returns the number removed."""
        ...

    @abstractmethod
    async def insert_many(self, documents: list[dict[str, Any]]) -> int:
        """Bulk-insert documents. Returns the number inserted."""
        ...


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for document store backends.

    The store holds both the live application collections and the backup
    history (snapshot metadata rows plus per-collection chunks).

    Example:
        >>> store = create_document_store(config.storage)
        >>> await store.connect()
        >>> await store.ping()
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the store.

        Raises:
            ConnectivityError: If the store cannot be opened
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release resources."""
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether connect() succeeded and close() has not been called."""
        ...

    @abstractmethod
    async def ping(self) -> None:
        """Trivial read against the store.

        Raises:
            ConnectivityError: If the store is unreachable
        """
        ...

    @abstractmethod
    def collection(self, name: str) -> CollectionAccessor:
        """Get an accessor for a live collection."""
        ...

    @abstractmethod
    async def insert_snapshot(self, metadata: SnapshotMetadata) -> None:
        ...

    @abstractmethod
    async def update_snapshot(self, metadata: SnapshotMetadata) -> None:
        ...

    @abstractmethod
    async def get_snapshot(self, snapshot_id: str) -> SnapshotMetadata | None:
        ...

    @abstractmethod
    async def list_snapshots(
        self,
        status: SnapshotStatus | None = None,
        kind: SnapshotKind | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[SnapshotMetadata]:
        """List snapshot metadata, newest first.

        Args:
            status: Only snapshots with this status
            kind: Only snapshots of this kind
            since: Only snapshots started at or after this instant
            limit: Maximum rows returned
        """
        ...

    @abstractmethod
    async def delete_snapshot(self, snapshot_id: str) -> bool:
        """Delete metadata and every chunk of a snapshot together.

        Returns:
            True if the snapshot existed
        """
        ...

    @abstractmethod
    async def insert_chunk(self, chunk: SnapshotChunk) -> None:
        ...

    @abstractmethod
    async def get_chunks(self, snapshot_id: str) -> list[SnapshotChunk]:
        ...


def create_document_store(config: StorageConfig) -> DocumentStore:
    """Factory function to create a document store from configuration.

    Args:
        config: Storage configuration

    Returns:
        Appropriate DocumentStore implementation

    Raises:
        ConfigurationError: If the connection string scheme is not supported
    """
    from ..errors import ConfigurationError
    from .memory import InMemoryDocumentStore
    from .sqlite import SqliteDocumentStore

    url = config.database_url
    if url.startswith("sqlite:///"):
        return SqliteDocumentStore(
            db_path=url[len("sqlite:///"):],
            wal_mode=config.wal_mode,
            busy_timeout_ms=config.busy_timeout_ms,
        )
    elif url.startswith("memory://"):
        return InMemoryDocumentStore()
    else:
        raise ConfigurationError(
            f"Unsupported DATABASE_URL scheme: {url.partition('://')[0] or url}",
            setting="DATABASE_URL",
        )
