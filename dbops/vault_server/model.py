"""
Shared data model for snapshots and health reporting.

Invariants:
    - A snapshot's status moves in_progress -> completed|failed exactly once
    - finished_at is set if and only if status != in_progress
    - total_documents equals the sum of successful per-collection counts

How to change safely:
    - Add new fields with defaults, stored rows must keep loading
    - Keep to_dict()/from_dict() symmetric
    - The SQLite store maps its own row layout, update _metadata_row() and
      _row_to_metadata() there when fields change
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .errors import SnapshotStateError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_snapshot_id() -> str:
    """Generate a unique snapshot id (backup-<unix_ms>-<suffix>)."""
    return f"backup-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class SnapshotKind(str, Enum):
    MANUAL = "manual"
    AUTOMATED = "automated"


class SnapshotStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class CollectionStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class HealthStatus(str, Enum):
    """Health check outcome, ordered by severity."""

    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @classmethod
    def worst(cls, statuses: list[HealthStatus]) -> HealthStatus:
        if not statuses:
            return cls.HEALTHY
        return max(statuses, key=lambda s: s.severity)


_SEVERITY = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.WARNING: 1,
    HealthStatus.CRITICAL: 2,
}


@dataclass
class CollectionOutcome:
    """Per-collection result recorded on a snapshot.

    Attributes:
        status: success or failed
        count: Documents captured (0 when failed)
        error: Error message when failed
    """

    status: CollectionStatus
    count: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status.value, "count": self.count}
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CollectionOutcome:
        return cls(
            status=CollectionStatus(data["status"]),
            count=int(data.get("count", 0)),
            error=data.get("error"),
        )


@dataclass
class SnapshotMetadata:
    """Metadata record for one backup run.

    Created in_progress at backup start, transitioned exactly once via
    complete() or fail(), deleted only by retention together with its chunks.

    Attributes:
        snapshot_id: Unique snapshot identifier
        kind: manual or automated
        status: in_progress, completed or failed
        per_collection: Outcome for each captured collection
        total_documents: Sum of successful collection counts
        total_size_bytes: Serialized size of captured documents
        started_at: When the run started (UTC)
        finished_at: When the run reached a terminal status
        error: Failure reason for failed snapshots
    """

    snapshot_id: str
    kind: SnapshotKind
    started_at: datetime
    status: SnapshotStatus = SnapshotStatus.IN_PROGRESS
    per_collection: dict[str, CollectionOutcome] = field(default_factory=dict)
    total_documents: int = 0
    total_size_bytes: int = 0
    finished_at: datetime | None = None
    error: str | None = None

    @classmethod
    def begin(cls, kind: SnapshotKind, started_at: datetime | None = None) -> SnapshotMetadata:
        return cls(snapshot_id=new_snapshot_id(), kind=kind, started_at=started_at or utcnow())

    @property
    def is_terminal(self) -> bool:
        return self.status != SnapshotStatus.IN_PROGRESS

    @property
    def duration_ms(self) -> int | None:
        if self.finished_at is None:
            return None
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    @property
    def failed_collections(self) -> list[str]:
        return [
            name
            for name, outcome in self.per_collection.items()
            if outcome.status == CollectionStatus.FAILED
        ]

    def _transition(self, status: SnapshotStatus, finished_at: datetime | None) -> None:
        if self.is_terminal:
            raise SnapshotStateError(self.snapshot_id, self.status.value, status.value)
        self.status = status
        self.finished_at = finished_at or utcnow()

    def complete(
        self,
        per_collection: dict[str, CollectionOutcome],
        total_size_bytes: int,
        finished_at: datetime | None = None,
    ) -> None:
        """Mark the snapshot completed with its final totals.

        Raises:
            SnapshotStateError: If the snapshot already left in_progress
        """
        self._transition(SnapshotStatus.COMPLETED, finished_at)
        self.per_collection = dict(per_collection)
        self.total_documents = sum(
            o.count for o in per_collection.values() if o.status == CollectionStatus.SUCCESS
        )
        self.total_size_bytes = total_size_bytes

    def fail(self, error: str, finished_at: datetime | None = None) -> None:
        """Mark the snapshot failed.

        Raises:
            SnapshotStateError: If the snapshot already left in_progress
        """
        self._transition(SnapshotStatus.FAILED, finished_at)
        self.error = error

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshot_id": self.snapshot_id,
            "kind": self.kind.value,
            "status": self.status.value,
            "per_collection": {k: v.to_dict() for k, v in self.per_collection.items()},
            "total_documents": self.total_documents,
            "total_size_bytes": self.total_size_bytes,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_ms": self.duration_ms,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SnapshotMetadata:
        finished = data.get("finished_at")
        return cls(
            snapshot_id=data["snapshot_id"],
            kind=SnapshotKind(data["kind"]),
            status=SnapshotStatus(data["status"]),
            per_collection={
                k: CollectionOutcome.from_dict(v)
                for k, v in (data.get("per_collection") or {}).items()
            },
            total_documents=int(data.get("total_documents", 0)),
            total_size_bytes=int(data.get("total_size_bytes", 0)),
            started_at=datetime.fromisoformat(data["started_at"]),
            finished_at=datetime.fromisoformat(finished) if finished else None,
            error=data.get("error"),
        )


@dataclass
class SnapshotChunk:
    """Serialized documents of one collection within one snapshot."""

    snapshot_id: str
    collection_name: str
    documents: list[dict[str, Any]]


@dataclass
class HealthCheck:
    name: str
    status: HealthStatus
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "status": self.status.value, "message": self.message}


@dataclass
class ReliabilityMetrics:
    """Backup reliability over the reporting window.

    Attributes:
        success_rate: completed / total * 100 (0 when no snapshots)
        average_frequency_hours: Mean gap between consecutive snapshot starts
        total_snapshots: Snapshots in the window
        successful_snapshots: Completed snapshots in the window
        failed_snapshots: Failed snapshots in the window
    """

    success_rate: float = 0.0
    average_frequency_hours: float = 0.0
    total_snapshots: int = 0
    successful_snapshots: int = 0
    failed_snapshots: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success_rate": self.success_rate,
            "average_frequency_hours": self.average_frequency_hours,
            "total_snapshots": self.total_snapshots,
            "successful_snapshots": self.successful_snapshots,
            "failed_snapshots": self.failed_snapshots,
        }


@dataclass
class HealthReport:
    """Point-in-time health of the backup subsystem.

    Attributes:
        checks: The five named checks, keyed by name
        reliability: Window reliability metrics
        generated_at: When the report was computed
        latest_snapshot: Summary of the newest snapshot in the window
        recent_snapshots: Newest snapshots in the window (up to 10)
        database: Live per-collection document counts
        storage: Backup storage statistics
    """

    checks: dict[str, HealthCheck]
    reliability: ReliabilityMetrics
    generated_at: datetime
    latest_snapshot: dict[str, Any] | None = None
    recent_snapshots: list[dict[str, Any]] = field(default_factory=list)
    database: dict[str, Any] = field(default_factory=dict)
    storage: dict[str, Any] = field(default_factory=dict)

    @property
    def overall(self) -> HealthStatus:
        return HealthStatus.worst([c.status for c in self.checks.values()])

    def to_dict(self) -> dict[str, Any]:
        return {
            "health": {
                "status": self.overall.value,
                "checks": {name: c.to_dict() for name, c in self.checks.items()},
                "generated_at": self.generated_at.isoformat(),
            },
            "latest_snapshot": self.latest_snapshot,
            "reliability": self.reliability.to_dict(),
            "database": self.database,
            "storage": self.storage,
            "recent_snapshots": self.recent_snapshots,
        }
