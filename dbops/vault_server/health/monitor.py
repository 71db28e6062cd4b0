"""
Backup health monitor.

Computes an on-demand, read-only health report from the backup history of
the last window_days plus a live probe of the document store:

    connectivity          trivial read against the store
    recency               latest snapshot age and status
    integrity             per-collection outcomes of the latest completed snapshot
    retention_compliance  enough completed snapshots among the newest daily set
    schedule_adherence    an automated snapshot started recently

Invariants:
    - The monitor never writes to the store
    - Overall status is the worst individual status
    - Failures of secondary queries degrade a check to warning, never raise
    - Only a failure to load the history itself raises (ConnectivityError)

How to change safely:
    - Thresholds live in HealthConfig, not here
    - New checks must be added to CHECK_NAMES so reports keep a stable shape
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from ..config import HealthConfig
from ..datasets import CollectionDescriptor
from ..errors import ConnectivityError
from ..model import (
    HealthCheck,
    HealthReport,
    HealthStatus,
    ReliabilityMetrics,
    SnapshotKind,
    SnapshotMetadata,
    SnapshotStatus,
    utcnow,
)
from ..snapshot.backup_store import BackupStore
from ..store.base import DocumentStore

logger = logging.getLogger(__name__)

CHECK_NAMES = (
    "connectivity",
    "recency",
    "integrity",
    "retention_compliance",
    "schedule_adherence",
)

RECENT_HISTORY_SIZE = 10
DAILY_SET_SIZE = 7

_BYTE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_bytes(size: int) -> str:
    """Human-readable byte size with up to two decimals (1536 -> '1.5 KB')."""
    if size <= 0:
        return "0 B"
    value = float(size)
    exponent = 0
    while value >= 1024 and exponent < len(_BYTE_UNITS) - 1:
        value /= 1024
        exponent += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_BYTE_UNITS[exponent]}"


def summarize(metadata: SnapshotMetadata) -> dict[str, Any]:
    summary = metadata.to_dict()
    summary["size"] = format_bytes(metadata.total_size_bytes)
    return summary


class HealthMonitor:
    """Builds HealthReports for the backup subsystem.

    Attributes:
        store: Live document store (probed, never written)
        backup_store: Backup history
        descriptors: Datasets counted in database statistics
        config: Health thresholds

    Example:
        >>> monitor = HealthMonitor(store, backups, descriptors, config.health)
        >>> report = await monitor.report()
        >>> print(report.overall.value)
    """

    def __init__(
        self,
        store: DocumentStore,
        backup_store: BackupStore,
        descriptors: list[CollectionDescriptor],
        config: HealthConfig | None = None,
    ) -> None:
        self.store = store
        self.backup_store = backup_store
        self.descriptors = list(descriptors)
        self.config = config or HealthConfig()

    async def report(self, now: datetime | None = None) -> HealthReport:
        """Compute the current health report.

        Args:
            now: Reference instant (defaults to the current time)

        Returns:
            HealthReport with five checks, reliability and statistics

        Raises:
            ConnectivityError: If the backup history cannot be loaded
        """
        now = now or utcnow()
        connectivity = await self._check_connectivity()

        since = now - timedelta(days=self.config.window_days)
        try:
            history = await self.backup_store.list_snapshots(since=since)
        except Exception as e:
            raise ConnectivityError(f"Failed to load backup history: {e}") from e

        try:
            completed = await self.backup_store.list_snapshots(
                status=SnapshotStatus.COMPLETED, limit=DAILY_SET_SIZE
            )
        except Exception as e:
            logger.warning(f"Failed to load completed backups: {e}")
            completed = None

        checks = {
            "connectivity": connectivity,
            "recency": self._check_recency(history, completed, now),
            "integrity": self._check_integrity(completed),
            "retention_compliance": self._check_retention(completed),
            "schedule_adherence": await self._check_schedule(now),
        }

        report = HealthReport(
            checks=checks,
            reliability=reliability(history),
            generated_at=now,
            latest_snapshot=summarize(history[0]) if history else None,
            recent_snapshots=[summarize(m) for m in history[:RECENT_HISTORY_SIZE]],
            database=await self._database_stats(),
            storage=await self._storage_stats(),
        )

        logger.info(
            f"Backup health is {report.overall.value}",
            extra={name: check.status.value for name, check in checks.items()},
        )
        return report

    async def _check_connectivity(self) -> HealthCheck:
        try:
            await self.store.ping()
        except Exception as e:
            return HealthCheck(
                "connectivity", HealthStatus.CRITICAL, f"Database connection failed: {e}"
            )
        return HealthCheck("connectivity", HealthStatus.HEALTHY, "Database connection successful")

    def _check_recency(
        self,
        history: list[SnapshotMetadata],
        completed: list[SnapshotMetadata] | None,
        now: datetime,
    ) -> HealthCheck:
        any_completed = bool(completed) if completed is not None else any(
            m.status == SnapshotStatus.COMPLETED for m in history
        )
        if not any_completed:
            return HealthCheck("recency", HealthStatus.CRITICAL, "No completed backups found")

        if not history:
            return HealthCheck(
                "recency",
                HealthStatus.WARNING,
                f"No backups in the last {self.config.window_days} days",
            )

        latest = history[0]
        if latest.started_at < now - timedelta(hours=self.config.stale_after_hours):
            return HealthCheck(
                "recency",
                HealthStatus.WARNING,
                f"Latest backup is older than {self.config.stale_after_hours} hours",
            )
        if latest.status == SnapshotStatus.FAILED:
            return HealthCheck("recency", HealthStatus.WARNING, "Latest backup failed")

        return HealthCheck("recency", HealthStatus.HEALTHY, "Recent backup is up to date")

    def _check_integrity(self, completed: list[SnapshotMetadata] | None) -> HealthCheck:
        if not completed:
            return HealthCheck("integrity", HealthStatus.WARNING, "Cannot verify backup integrity")

        failed = completed[0].failed_collections
        if failed:
            return HealthCheck(
                "integrity",
                HealthStatus.WARNING,
                f"{len(failed)} collection(s) failed in latest backup: {', '.join(failed)}",
            )
        return HealthCheck(
            "integrity", HealthStatus.HEALTHY, "All collections backed up successfully"
        )

    def _check_retention(self, completed: list[SnapshotMetadata] | None) -> HealthCheck:
        if completed is None:
            return HealthCheck(
                "retention_compliance", HealthStatus.WARNING, "Cannot verify retention compliance"
            )

        available = len(completed[:DAILY_SET_SIZE])
        if available >= self.config.min_recent_snapshots:
            return HealthCheck(
                "retention_compliance",
                HealthStatus.HEALTHY,
                f"{available} recent backups available",
            )
        return HealthCheck(
            "retention_compliance",
            HealthStatus.WARNING,
            f"Only {available} recent backups available",
        )

    async def _check_schedule(self, now: datetime) -> HealthCheck:
        hours = self.config.schedule_window_hours
        try:
            automated = await self.backup_store.list_snapshots(
                kind=SnapshotKind.AUTOMATED,
                since=now - timedelta(hours=hours),
                limit=1,
            )
        except Exception as e:
            logger.warning(f"Failed to check backup schedule: {e}")
            return HealthCheck(
                "schedule_adherence", HealthStatus.WARNING, "Cannot verify backup schedule"
            )

        if automated:
            return HealthCheck(
                "schedule_adherence",
                HealthStatus.HEALTHY,
                "Automated backups running on schedule",
            )
        return HealthCheck(
            "schedule_adherence",
            HealthStatus.WARNING,
            f"No automated backups in the last {hours} hours",
        )

    async def _database_stats(self) -> dict[str, Any]:
        counts: dict[str, int] = {}
        try:
            for descriptor in self.descriptors:
                counts[descriptor.name] = await descriptor.accessor.count()
        except Exception as e:
            return {"collections": {}, "total_documents": 0, "error": str(e)}
        return {"collections": counts, "total_documents": sum(counts.values())}

    async def _storage_stats(self) -> dict[str, Any]:
        try:
            snapshots = await self.backup_store.list_snapshots()
        except Exception as e:
            return {
                "total_snapshots": 0,
                "completed_snapshots": 0,
                "failed_snapshots": 0,
                "total_storage_bytes": 0,
                "total_storage_used": format_bytes(0),
                "error": str(e),
            }

        completed = [m for m in snapshots if m.status == SnapshotStatus.COMPLETED]
        total_bytes = sum(m.total_size_bytes for m in completed)
        return {
            "total_snapshots": len(snapshots),
            "completed_snapshots": len(completed),
            "failed_snapshots": sum(1 for m in snapshots if m.status == SnapshotStatus.FAILED),
            "total_storage_bytes": total_bytes,
            "total_storage_used": format_bytes(total_bytes),
        }


def reliability(history: list[SnapshotMetadata]) -> ReliabilityMetrics:
    """Reliability metrics over a newest-first list of snapshots."""
    if not history:
        return ReliabilityMetrics()

    successful = sum(1 for m in history if m.status == SnapshotStatus.COMPLETED)
    failed = sum(1 for m in history if m.status == SnapshotStatus.FAILED)

    average = 0.0
    if len(history) > 1:
        gaps = [
            (newer.started_at - older.started_at).total_seconds() / 3600
            for newer, older in zip(history, history[1:])
        ]
        average = sum(gaps) / len(gaps)

    return ReliabilityMetrics(
        success_rate=round(successful / len(history) * 100, 2),
        average_frequency_hours=round(average, 2),
        total_snapshots=len(history),
        successful_snapshots=successful,
        failed_snapshots=failed,
    )
