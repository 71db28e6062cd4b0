"""
Snapshot sources accepted by the restorer.

A source is one of:
- A path to an exported JSON artifact (str or Path)
- Raw JSON content (bytes, or a str starting with "{")
- An already-decoded dict
- A stored snapshot (StoredSnapshot), rebuilt from metadata and chunks

Every source is parsed into a SnapshotDocument before anything is touched.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

import pydantic

from ..errors import ValidationError
from ..snapshot.artifact import SnapshotDocument

if TYPE_CHECKING:
    from ..snapshot.backup_store import BackupStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredSnapshot:
    """Reference to a snapshot held in the backup store."""

    snapshot_id: str


SnapshotSource = Union[str, Path, bytes, dict, StoredSnapshot]


def describe(source: SnapshotSource) -> str:
    if isinstance(source, StoredSnapshot):
        return f"snapshot:{source.snapshot_id}"
    if isinstance(source, Path):
        return str(source)
    if isinstance(source, str) and not _looks_like_json(source):
        return source
    return "<inline>"


def parse_document(raw: bytes | str | dict[str, Any], source: str = "<inline>") -> SnapshotDocument:
    """Validate raw snapshot content.

    Raises:
        ValidationError: If the content is not JSON or has the wrong shape
    """
    if isinstance(raw, (bytes, str)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationError(f"Backup is not valid JSON: {e}", source=source) from e

    if not isinstance(raw, dict) or not isinstance(raw.get("collections"), dict):
        raise ValidationError(
            "Invalid backup format: missing collections data", source=source
        )

    try:
        return SnapshotDocument.model_validate(raw)
    except pydantic.ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise ValidationError(
            f"Invalid backup format: {len(errors)} error(s)", source=source, errors=errors
        ) from e


def load_file(path: str | Path) -> SnapshotDocument:
    """Read and validate an exported artifact.

    Raises:
        ValidationError: If the file cannot be read or is malformed
    """
    path = Path(path)
    try:
        content = path.read_bytes()
    except OSError as e:
        raise ValidationError(f"Cannot read backup file: {e}", source=str(path)) from e

    document = parse_document(content, source=str(path))
    logger.info(f"Loaded backup file {path}", extra={"size_bytes": len(content)})
    return document


async def resolve(
    source: SnapshotSource,
    backup_store: BackupStore | None = None,
) -> SnapshotDocument:
    """Turn any supported source into a validated SnapshotDocument.

    Raises:
        ValidationError: If the source is unreadable or malformed
        SnapshotNotFoundError: If a stored snapshot does not exist
    """
    if isinstance(source, StoredSnapshot):
        if backup_store is None:
            raise ValidationError(
                "Restoring a stored snapshot requires a backup store",
                source=describe(source),
            )
        return await backup_store.load_document(source.snapshot_id)

    if isinstance(source, Path):
        return load_file(source)

    if isinstance(source, str):
        if _looks_like_json(source):
            return parse_document(source)
        return load_file(source)

    if isinstance(source, (bytes, dict)):
        return parse_document(source)

    raise ValidationError(f"Unsupported backup source type: {type(source).__name__}")


def _looks_like_json(text: str) -> bool:
    return text.lstrip().startswith("{")
