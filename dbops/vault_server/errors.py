"""
Error types for the vault server.

This module defines every exception raised by the backup subsystem:
- VaultError: Base exception
- ConfigurationError: Required setting missing or invalid
- ConnectivityError: Document store unreachable
- ValidationError: Malformed snapshot source
- PerCollectionError: One dataset failed during capture or restore
- PolicyError: Retention pruning failed
- SnapshotNotFoundError: Unknown snapshot id
- SnapshotStateError: Illegal snapshot status transition
- PermissionDeniedError: Caller may not trigger a privileged operation

Invariants:
    - All errors inherit from VaultError
    - ConfigurationError, ConnectivityError and ValidationError abort an operation
    - PerCollectionError and PolicyError never escape their own boundary

How to change safely:
    - Add new error types as subclasses of VaultError
    - Keep error codes stable, CLI output and logs depend on them
"""

from __future__ import annotations

from typing import Any


class VaultError(Exception):
    """Base exception for all vault server errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "VAULT_ERROR"
        self.details = details or {}


class ConfigurationError(VaultError):
    """A required setting is missing or invalid.

    Raised before any work starts.
    """

    def __init__(self, message: str, setting: str | None = None) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR", details={"setting": setting})
        self.setting = setting


class ConnectivityError(VaultError):
    """The document store cannot be reached.

    Raised when:
    - The connection string points nowhere usable
    - A probe read against the store fails
    - The store was closed mid-operation
    """

    def __init__(self, message: str, target: str | None = None) -> None:
        super().__init__(message, code="CONNECTIVITY_ERROR", details={"target": target})
        self.target = target


class ValidationError(VaultError):
    """A snapshot source is malformed.

    Raised when:
    - The source cannot be read or is not JSON
    - The collections map is missing or has the wrong shape
    """

    def __init__(
        self,
        message: str,
        source: str | None = None,
        errors: list[str] | None = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"source": source, "errors": errors or []},
        )
        self.source = source
        self.errors = errors or []


class PerCollectionError(VaultError):
    """A single collection failed during capture or restore."""

    def __init__(self, message: str, collection: str) -> None:
        super().__init__(message, code="COLLECTION_ERROR", details={"collection": collection})
        self.collection = collection


class PolicyError(VaultError):
    """Retention pruning failed."""

    def __init__(self, message: str, snapshot_id: str | None = None) -> None:
        super().__init__(message, code="POLICY_ERROR", details={"snapshot_id": snapshot_id})
        self.snapshot_id = snapshot_id


class SnapshotNotFoundError(VaultError):
    """No snapshot with the given id exists."""

    def __init__(self, snapshot_id: str) -> None:
        super().__init__(
            f"Snapshot not found: {snapshot_id}",
            code="SNAPSHOT_NOT_FOUND",
            details={"snapshot_id": snapshot_id},
        )
        self.snapshot_id = snapshot_id


class SnapshotStateError(VaultError):
    """A snapshot was asked to leave a terminal status."""

    def __init__(self, snapshot_id: str, current: str, requested: str) -> None:
        super().__init__(
            f"Snapshot {snapshot_id} is already {current}, cannot move to {requested}",
            code="SNAPSHOT_STATE_ERROR",
            details={"snapshot_id": snapshot_id, "current": current, "requested": requested},
        )


class PermissionDeniedError(VaultError):
    """Caller is not the privileged identity."""

    def __init__(self, actor: str | None) -> None:
        super().__init__(
            "Admin access required",
            code="PERMISSION_DENIED",
            details={"actor": actor},
        )
        self.actor = actor
