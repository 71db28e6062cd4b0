"""
Exportable snapshot document format.

A snapshot document is the single JSON blob produced by a manual backup and
accepted by the restorer:

    {
      "metadata": {"timestamp", "type", "version", "source", "totalDocuments"},
      "collections": {
        "<name>": {"status": "success", "count": N, "documents": [...]}
              or {"status": "failed", "count": 0, "error": "...", "documents": []}
      }
    }

Collection entries are a tagged variant on "status" and are validated
structurally before use.

How to change safely:
    - Bump FORMAT_VERSION for incompatible changes
    - Unknown metadata keys are preserved, keep it that way for old exports
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

FORMAT_VERSION = "1.0.0"
SOURCE_NAME = "time-track-app"


class ArtifactMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    timestamp: str
    type: str = "manual"
    version: str = FORMAT_VERSION
    source: str = SOURCE_NAME
    total_documents: int = Field(default=0, alias="totalDocuments")


class SuccessfulCollection(BaseModel):
    status: Literal["success"]
    count: int = 0
    documents: list[dict[str, Any]] = Field(default_factory=list)


class FailedCollection(BaseModel):
    status: Literal["failed"]
    count: int = 0
    error: str | None = None
    documents: list[dict[str, Any]] = Field(default_factory=list)


CollectionEntry = Annotated[
    Union[SuccessfulCollection, FailedCollection],
    Field(discriminator="status"),
]


class SnapshotDocument(BaseModel):
    """A complete, restorable snapshot.

    Metadata is optional on input so that hand-assembled sources restore;
    the collections map is mandatory.
    """

    metadata: ArtifactMetadata | None = None
    collections: dict[str, CollectionEntry]

    def to_json(self, indent: int | None = 2) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)


@dataclass
class ExportedArtifact:
    """A serialized manual backup ready for download.

    Attributes:
        filename: Suggested download name
        document: The validated snapshot document
        content: UTF-8 JSON bytes
    """

    filename: str
    document: SnapshotDocument
    content: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.content)

    @property
    def total_documents(self) -> int:
        return self.document.metadata.total_documents if self.document.metadata else 0


def artifact_filename(at: datetime) -> str:
    return f"time-track-backup-{at.strftime('%Y-%m-%d-%H-%M-%S')}.json"


def to_json_safe(documents: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Coerce non-JSON values (datetimes, ids) to strings."""
    return json.loads(json.dumps(documents, default=str))
