"""
Vault service entrypoints.

VaultService wires the document store, snapshotter, backup store,
retention enforcer, health monitor, restorer and notification gateway
together and exposes the four operations used by the CLI and by any host
(cron job, HTTP handler):

    create_manual_backup     capture -> export artifact
    create_automated_backup  authorize -> capture -> persist -> prune -> notify
    get_health_report        history + live probe -> HealthReport
    restore_from_source      validate -> (pause) -> replace collections

Invariants:
    - The store is probed before any operation starts
    - Retention and notification failures never change a backup's outcome
    - Only the configured admin identity may trigger automated backups

How to change safely:
    - Keep entrypoints returning structured results, the CLI maps them to exit codes
    - New operations should go through _ensure_reachable() first
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .config import VaultConfig
from .datasets import build_descriptors
from .errors import ConfigurationError, ConnectivityError, PermissionDeniedError
from .health import HealthMonitor
from .model import HealthReport, SnapshotMetadata, SnapshotStatus
from .notify import NotificationGateway, NotificationKind, create_notifier, safe_notify
from .restore import RestoreReport, Restorer, SnapshotSource
from .retention import RetentionEnforcer, RetentionResult
from .snapshot import BackupStore, ExportedArtifact, Snapshotter
from .store import DocumentStore, create_document_store

logger = logging.getLogger(__name__)


@dataclass
class BackupOutcome:
    """Result of an automated backup.

    Attributes:
        snapshot: Final snapshot metadata
        retention: Retention run result (None if retention did not run)
        notified: Whether the notification gateway accepted the outcome
    """

    snapshot: SnapshotMetadata
    retention: RetentionResult | None = None
    notified: bool = False

    @property
    def success(self) -> bool:
        return self.snapshot.status == SnapshotStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        data = {"success": self.success, "notified": self.notified, **self.snapshot.to_dict()}
        if self.retention is not None:
            data["retention"] = {
                "kept": self.retention.kept,
                "deleted": self.retention.deleted,
                "monthly_id": self.retention.monthly_id,
                "error": self.retention.error,
            }
        return data


class VaultService:
    """Backup, restore and health entrypoints over one document store.

    Example:
        >>> async with VaultService.from_config() as vault:
        ...     outcome = await vault.create_automated_backup(actor="admin@example.com")
        ...     report = await vault.get_health_report()
    """

    def __init__(
        self,
        config: VaultConfig,
        store: DocumentStore,
        notifier: NotificationGateway | None = None,
        pause: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the service.

        Args:
            config: Vault configuration
            store: Document store holding collections and backup history
            notifier: Notification gateway (built from config if omitted)
            pause: Blocking sleep used for the restore confirmation pause
        """
        self.config = config
        self.store = store
        self.descriptors = build_descriptors(store, config.backup.collections)
        self.snapshotter = Snapshotter(
            self.descriptors,
            max_concurrent=config.backup.max_concurrent,
            read_timeout_seconds=config.backup.read_timeout_seconds,
        )
        self.backup_store = BackupStore(store)
        self.retention = RetentionEnforcer(self.backup_store)
        self.health = HealthMonitor(store, self.backup_store, self.descriptors, config.health)
        self.restorer = Restorer(
            self.descriptors,
            confirm_delay_seconds=config.restore.confirm_delay_seconds,
            backup_store=self.backup_store,
            pause=pause,
        )
        self.notifier = notifier or create_notifier(config.notifications)

    @classmethod
    def from_config(cls, config: VaultConfig | None = None, **kwargs: Any) -> VaultService:
        """Build a service and its store from configuration.

        Raises:
            ConfigurationError: If configuration is missing or invalid
        """
        config = config or VaultConfig.from_env()
        return cls(config, create_document_store(config.storage), **kwargs)

    async def start(self) -> None:
        """Open the document store.

        Raises:
            ConnectivityError: If the store cannot be opened
        """
        await self.store.connect()

    async def stop(self) -> None:
        await self.store.close()

    async def __aenter__(self) -> VaultService:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def _ensure_reachable(self) -> None:
        try:
            await self.store.ping()
        except ConnectivityError:
            raise
        except Exception as e:
            raise ConnectivityError(f"Database unreachable: {e}") from e

    def _authorize(self, actor: str | None) -> None:
        admin = self.config.access.admin_identity
        if admin is None:
            raise ConfigurationError(
                "ADMIN_IDENTITY must be set to run automated backups", setting="ADMIN_IDENTITY"
            )
        if actor != admin:
            logger.warning("Refused automated backup", extra={"actor": actor})
            raise PermissionDeniedError(actor)

    async def create_manual_backup(self, collections: list[str] | None = None) -> ExportedArtifact:
        """Capture every collection into one downloadable artifact.

        Args:
            collections: Optional subset of collection names

        Raises:
            ConnectivityError: If the store is unreachable
        """
        await self._ensure_reachable()
        result = await self.snapshotter.capture_all(collections)
        return self.backup_store.persist_manual(result)

    async def create_automated_backup(self, actor: str | None) -> BackupOutcome:
        """Run a durable backup, prune old ones and notify.

        Args:
            actor: Identity requesting the backup

        Returns:
            BackupOutcome with final metadata and retention result

        Raises:
            ConfigurationError: If no admin identity is configured
            PermissionDeniedError: If actor is not the admin identity
            ConnectivityError: If the store is unreachable
        """
        self._authorize(actor)
        await self._ensure_reachable()

        try:
            metadata = await self.backup_store.persist_automated(self.snapshotter.capture_all)
        except Exception as e:
            logger.error(f"Automated backup failed: {e}", exc_info=True)
            await safe_notify(self.notifier, NotificationKind.FAILURE, {"error": str(e)})
            raise

        outcome = BackupOutcome(snapshot=metadata)
        if outcome.success:
            outcome.retention = await self.retention.enforce()
            outcome.notified = await safe_notify(
                self.notifier,
                NotificationKind.SUCCESS,
                {
                    "snapshot_id": metadata.snapshot_id,
                    "total_documents": metadata.total_documents,
                    "total_size_bytes": metadata.total_size_bytes,
                    "duration_ms": metadata.duration_ms,
                    "failed_collections": metadata.failed_collections,
                },
            )
        else:
            outcome.notified = await safe_notify(
                self.notifier,
                NotificationKind.FAILURE,
                {"snapshot_id": metadata.snapshot_id, "error": metadata.error},
            )
        return outcome

    async def get_health_report(self) -> HealthReport:
        """Compute the backup health report.

        Raises:
            ConnectivityError: If the backup history cannot be loaded
        """
        return await self.health.report()

    async def restore_from_source(
        self,
        source: SnapshotSource,
        collection_filter: list[str] | None = None,
        dry_run: bool = False,
    ) -> RestoreReport:
        """Restore collections from a file, raw content or stored snapshot.

        Raises:
            ConnectivityError: If the store is unreachable
            ValidationError: If the source is unreadable or malformed
            SnapshotNotFoundError: If a stored snapshot does not exist
        """
        await self._ensure_reachable()
        return await self.restorer.restore(source, collection_filter, dry_run=dry_run)

    async def list_snapshots(self, limit: int | None = None) -> list[SnapshotMetadata]:
        return await self.backup_store.list_snapshots(limit=limit)
