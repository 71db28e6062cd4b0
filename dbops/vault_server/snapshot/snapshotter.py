"""
Full-collection snapshotter for the vault server.

The Snapshotter reads the complete contents of each configured collection
and returns per-collection results plus aggregate totals. It is the first
step of every backup run:

    capture -> persist -> prune -> notify

Invariants:
    - One failing collection never aborts the whole capture
    - Aggregates are computed only after every collection task has settled
    - total_documents is the sum of successful collection counts

How to change safely:
    - Keep per-collection failure isolation, BackupStore relies on it
    - Concurrency is bounded by max_concurrent, raise it carefully
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..datasets import CollectionDescriptor
from ..errors import PerCollectionError
from ..model import CollectionOutcome, CollectionStatus, utcnow

logger = logging.getLogger(__name__)


@dataclass
class CollectionCapture:
    """Result of reading one collection.

    Attributes:
        name: Collection name
        status: success or failed
        documents: Captured documents (empty when failed)
        size_bytes: Length of the JSON serialization of the documents
        error: Error message when failed
    """

    name: str
    status: CollectionStatus
    documents: list[dict[str, Any]] = field(default_factory=list)
    size_bytes: int = 0
    error: str | None = None

    @property
    def count(self) -> int:
        return len(self.documents)

    @property
    def succeeded(self) -> bool:
        return self.status == CollectionStatus.SUCCESS

    def outcome(self) -> CollectionOutcome:
        return CollectionOutcome(status=self.status, count=self.count, error=self.error)


@dataclass
class CaptureResult:
    """Result of one capture run.

    Attributes:
        per_collection: Capture per collection, in descriptor order
        started_at: When capture started
        finished_at: When the last collection settled
    """

    per_collection: dict[str, CollectionCapture]
    started_at: datetime
    finished_at: datetime

    @property
    def total_documents(self) -> int:
        return sum(c.count for c in self.per_collection.values() if c.succeeded)

    @property
    def total_size_bytes(self) -> int:
        return sum(c.size_bytes for c in self.per_collection.values() if c.succeeded)

    @property
    def failed_collections(self) -> list[str]:
        return [name for name, c in self.per_collection.items() if not c.succeeded]


class Snapshotter:
    """Captures full snapshots of a fixed set of collections.

    Attributes:
        collections: Descriptors of the datasets to capture
        max_concurrent: Maximum collections read in parallel
        read_timeout_seconds: Per-collection read timeout (None = unbounded)

    Example:
        >>> snapshotter = Snapshotter(build_descriptors(store))
        >>> result = await snapshotter.capture_all()
        >>> print(result.total_documents, result.failed_collections)
    """

    def __init__(
        self,
        collections: list[CollectionDescriptor],
        max_concurrent: int = 4,
        read_timeout_seconds: float | None = None,
    ) -> None:
        """Initialize the snapshotter.

        Args:
            collections: Descriptors of the datasets to capture
            max_concurrent: Maximum concurrent collection reads
            read_timeout_seconds: Abort a single collection read after this long
        """
        self.collections = list(collections)
        self.max_concurrent = max_concurrent
        self.read_timeout_seconds = read_timeout_seconds or None
        self._semaphore = asyncio.Semaphore(max_concurrent)

    def select(self, names: list[str] | None = None) -> list[CollectionDescriptor]:
        """Narrow the configured descriptors to the given names.

        Unknown names are ignored with a warning.
        """
        if names is None:
            return self.collections

        known = {d.name: d for d in self.collections}
        for name in names:
            if name not in known:
                logger.warning(f"Ignoring unknown collection: {name}")
        wanted = set(names)
        return [d for d in self.collections if d.name in wanted]

    async def capture_all(self, collections: list[str] | None = None) -> CaptureResult:
        """Read every selected collection in full.

        Args:
            collections: Optional subset of collection names

        Returns:
            CaptureResult with one entry per selected collection
        """
        targets = self.select(collections)
        started_at = utcnow()
        start = time.monotonic()

        logger.info(
            f"Starting capture of {len(targets)} collections",
            extra={"collections": [d.name for d in targets]},
        )

        tasks = [self._capture_one(descriptor) for descriptor in targets]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        per_collection: dict[str, CollectionCapture] = {}
        for descriptor, result in zip(targets, results):
            if isinstance(result, BaseException):
                # _capture_one records its own failures, this is cancellation or worse
                result = CollectionCapture(
                    name=descriptor.name,
                    status=CollectionStatus.FAILED,
                    error=str(result) or type(result).__name__,
                )
            per_collection[descriptor.name] = result

        capture = CaptureResult(
            per_collection=per_collection,
            started_at=started_at,
            finished_at=utcnow(),
        )

        logger.info(
            "Capture finished",
            extra={
                "total_documents": capture.total_documents,
                "failed_collections": capture.failed_collections,
                "duration_ms": int((time.monotonic() - start) * 1000),
            },
        )
        return capture

    async def _capture_one(self, descriptor: CollectionDescriptor) -> CollectionCapture:
        """Read one collection, recording any failure instead of raising."""
        async with self._semaphore:
            try:
                read = descriptor.accessor.find_all()
                if self.read_timeout_seconds:
                    documents = await asyncio.wait_for(read, timeout=self.read_timeout_seconds)
                else:
                    documents = await read
                size_bytes = len(json.dumps(documents, default=str))

            except asyncio.TimeoutError:
                error = PerCollectionError(
                    f"Read timed out after {self.read_timeout_seconds}s",
                    collection=descriptor.name,
                )
                logger.error(f"Failed to back up {descriptor.name}: {error.message}")
                return CollectionCapture(
                    name=descriptor.name,
                    status=CollectionStatus.FAILED,
                    error=error.message,
                )

            except Exception as e:
                logger.error(f"Failed to back up {descriptor.name}: {e}", exc_info=True)
                return CollectionCapture(
                    name=descriptor.name,
                    status=CollectionStatus.FAILED,
                    error=str(e) or type(e).__name__,
                )

        logger.debug(f"Captured {len(documents)} documents from {descriptor.name}")
        return CollectionCapture(
            name=descriptor.name,
            status=CollectionStatus.SUCCESS,
            documents=documents,
            size_bytes=size_bytes,
        )
