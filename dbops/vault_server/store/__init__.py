"""
Document store abstraction for the vault server.

This module provides a pluggable store interface supporting:
- SQLite (single database file, production)
- In-memory (for testing)

The store holds the live application collections that get backed up and
restored, plus the durable backup history.

Invariants:
    - Snapshot metadata and chunks are deleted together
    - Accessors read and replace whole collections only

How to change safely:
    - New backends must implement the DocumentStore protocol
    - Register new connection string schemes in create_document_store()
"""

from .base import CollectionAccessor, DocumentStore, create_document_store
from .memory import InMemoryDocumentStore
from .sqlite import SqliteDocumentStore

__all__ = [
    # Protocols
    "CollectionAccessor",
    "DocumentStore",
    # Factory
    "create_document_store",
    # Implementations
    "InMemoryDocumentStore",
    "SqliteDocumentStore",
]
