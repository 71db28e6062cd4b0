"""
Retention enforcement for stored backups.

The ruleset is constant: keep the 7 newest completed snapshots ("daily")
plus at most one older snapshot aged 30 days or more ("monthly"). Everything
else that is completed gets deleted together with its chunks.

The monthly pick scans the non-daily snapshots newest first and takes the
first one that is old enough, which is the one closest to 30 days old.

Invariants:
    - Only completed snapshots are ever considered or deleted
    - At most daily_count + 1 completed snapshots survive a run
    - enforce() never raises, failures are logged and returned

How to change safely:
    - plan() is pure, test rule changes there first
    - Keep enforce() exception-safe, it runs inside every automated backup
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ..errors import PolicyError
from ..model import SnapshotMetadata, SnapshotStatus, utcnow
from ..snapshot.backup_store import BackupStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetentionPolicy:
    """Retention ruleset.

    Attributes:
        daily_count: Newest completed snapshots always kept
        monthly_age_days: Minimum age of the extra monthly snapshot
    """

    daily_count: int = 7
    monthly_age_days: int = 30


@dataclass
class RetentionPlan:
    keep: list[SnapshotMetadata]
    delete: list[SnapshotMetadata]
    monthly: SnapshotMetadata | None = None


@dataclass
class RetentionResult:
    """Outcome of one retention run.

    Attributes:
        kept: Ids of retained completed snapshots
        deleted: Ids actually deleted
        monthly_id: Id of the retained monthly snapshot, if any
        error: Failure message when pruning stopped early
    """

    kept: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    monthly_id: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


def plan(
    completed: list[SnapshotMetadata],
    now: datetime,
    policy: RetentionPolicy = RetentionPolicy(),
) -> RetentionPlan:
    """Decide which completed snapshots to keep and which to delete.

    Args:
        completed: Completed snapshots (any order, others are ignored)
        now: Reference instant for the monthly age check
        policy: Ruleset to apply

    Returns:
        RetentionPlan with keep and delete lists, newest first
    """
    ordered = sorted(
        (m for m in completed if m.status == SnapshotStatus.COMPLETED),
        key=lambda m: m.started_at,
        reverse=True,
    )
    daily = ordered[: policy.daily_count]
    rest = ordered[policy.daily_count:]

    cutoff = now - timedelta(days=policy.monthly_age_days)
    monthly = next((m for m in rest if m.started_at <= cutoff), None)

    keep = daily + ([monthly] if monthly else [])
    delete = [m for m in rest if m is not monthly]
    return RetentionPlan(keep=keep, delete=delete, monthly=monthly)


class RetentionEnforcer:
    """Prunes the backup history after each automated backup.

    Example:
        >>> enforcer = RetentionEnforcer(backup_store)
        >>> result = await enforcer.enforce()
        >>> print(result.deleted)
    """

    def __init__(
        self,
        backup_store: BackupStore,
        policy: RetentionPolicy | None = None,
    ) -> None:
        self.backup_store = backup_store
        self.policy = policy or RetentionPolicy()

    async def enforce(self, now: datetime | None = None) -> RetentionResult:
        """Apply the retention ruleset.

        Args:
            now: Reference instant (defaults to the current time)

        Returns:
            RetentionResult, with error set if pruning failed part way
        """
        result = RetentionResult()
        current: str | None = None

        try:
            completed = await self.backup_store.list_completed()
            decision = plan(completed, now or utcnow(), self.policy)
            result.kept = [m.snapshot_id for m in decision.keep]
            result.monthly_id = decision.monthly.snapshot_id if decision.monthly else None

            for metadata in decision.delete:
                current = metadata.snapshot_id
                if await self.backup_store.delete(metadata.snapshot_id):
                    result.deleted.append(metadata.snapshot_id)
            current = None

        except Exception as e:
            error = PolicyError(f"Retention cleanup failed: {e}", snapshot_id=current)
            logger.error(error.message, extra={"snapshot_id": current}, exc_info=True)
            result.error = error.message
            return result

        logger.info(
            f"Retention kept {len(result.kept)} backups, deleted {len(result.deleted)}",
            extra={
                "deleted": result.deleted,
                "monthly_id": result.monthly_id,
            },
        )
        return result
