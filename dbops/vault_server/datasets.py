"""
Registry of the logical datasets covered by backups.

The list is fixed and explicit: adding a dataset means appending its name
here (or overriding BACKUP_COLLECTIONS). Accessors are bound to a store at
construction time and injected into the Snapshotter and Restorer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .store.base import CollectionAccessor, DocumentStore

# accounts, tracked time entries, goals, feedback, feedback votes, daily reflections
DEFAULT_COLLECTION_NAMES: tuple[str, ...] = (
    "users",
    "timeEntries",
    "userGoals",
    "feedback",
    "feedbackVotes",
    "dayReflections",
)


@dataclass(frozen=True)
class CollectionDescriptor:
    """One logical dataset and the accessor used to read or replace it."""

    name: str
    accessor: CollectionAccessor


def build_descriptors(
    store: DocumentStore,
    names: tuple[str, ...] | list[str] = DEFAULT_COLLECTION_NAMES,
) -> list[CollectionDescriptor]:
    """Bind accessors for the named collections, preserving order."""
    seen: set[str] = set()
    descriptors = []
    for name in names:
        if name in seen:
            continue
        seen.add(name)
        descriptors.append(CollectionDescriptor(name=name, accessor=store.collection(name)))
    return descriptors
