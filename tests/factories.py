"""
Test data builders shared by unit and integration tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from dbops.vault_server.model import (
    CollectionOutcome,
    CollectionStatus,
    SnapshotKind,
    SnapshotMetadata,
    SnapshotStatus,
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

SAMPLE_DATA = {
    "users": [
        {"_id": "u1", "email": "ada@example.com", "name": "Ada"},
        {"_id": "u2", "email": "grace@example.com", "name": "Grace"},
    ],
    "timeEntries": [
        {"_id": "t1", "userId": "u1", "minutes": 45, "category": "deep work"},
        {"_id": "t2", "userId": "u1", "minutes": 30, "category": "meetings"},
        {"_id": "t3", "userId": "u2", "minutes": 90, "category": "deep work"},
    ],
    "userGoals": [{"_id": "g1", "userId": "u1", "title": "Ship v2"}],
    "feedback": [{"_id": "f1", "title": "Dark mode", "votes": 2}],
    "feedbackVotes": [
        {"_id": "v1", "feedbackId": "f1", "userId": "u1"},
        {"_id": "v2", "feedbackId": "f1", "userId": "u2"},
    ],
    "dayReflections": [],
}


def make_snapshot(
    started_at: datetime,
    status: SnapshotStatus = SnapshotStatus.COMPLETED,
    kind: SnapshotKind = SnapshotKind.AUTOMATED,
    failed: tuple[str, ...] = (),
    count: int = 5,
) -> SnapshotMetadata:
    """Build a finished snapshot record started at the given instant."""
    metadata = SnapshotMetadata.begin(kind, started_at=started_at)
    finished_at = started_at + timedelta(seconds=2)
    if status == SnapshotStatus.COMPLETED:
        outcomes = {"users": CollectionOutcome(CollectionStatus.SUCCESS, count=count)}
        for name in failed:
            outcomes[name] = CollectionOutcome(CollectionStatus.FAILED, error="boom")
        metadata.complete(outcomes, total_size_bytes=count * 100, finished_at=finished_at)
    elif status == SnapshotStatus.FAILED:
        metadata.fail("capture could not run", finished_at=finished_at)
    return metadata


def snapshot_document(collections: dict) -> dict:
    """Raw exported-backup payload for the given collection entries."""
    return {
        "metadata": {
            "timestamp": NOW.isoformat(),
            "type": "manual",
            "version": "1.0.0",
            "source": "time-track-app",
            "totalDocuments": sum(e.get("count", 0) for e in collections.values()),
        },
        "collections": collections,
    }


def success_entry(documents: list[dict]) -> dict:
    return {"status": "success", "count": len(documents), "documents": documents}
