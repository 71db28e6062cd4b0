"""
Destinations for exported manual backups.

A manual backup produces one JSON artifact that is handed to a sink:
- LocalFileSink: writes the artifact into a directory
- S3ArtifactSink: uploads the artifact to an S3 bucket (or MinIO)

Invariants:
    - Artifacts are written whole, never appended to
    - Sinks never modify the artifact content

How to change safely:
    - Keep the artifact filename as the final path component or key suffix
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from aiobotocore.session import get_session

from ..config import S3Config
from ..errors import ConfigurationError
from ..snapshot.artifact import ExportedArtifact

logger = logging.getLogger(__name__)


@runtime_checkable
class ArtifactSink(Protocol):
    @abstractmethod
    async def write(self, artifact: ExportedArtifact) -> str:
        """Store the artifact and return where it went."""
        ...


class LocalFileSink:
    """Writes artifacts into a local directory.

    Example:
        >>> sink = LocalFileSink("./backups")
        >>> path = await sink.write(artifact)
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    async def write(self, artifact: ExportedArtifact) -> str:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / artifact.filename
        path.write_bytes(artifact.content)
        logger.info(f"Wrote backup artifact to {path}", extra={"size_bytes": artifact.size_bytes})
        return str(path)


class S3ArtifactSink:
    """Uploads artifacts to S3.

    Attributes:
        config: Bucket, region, endpoint and credentials

    Example:
        >>> sink = S3ArtifactSink(config.s3)
        >>> uri = await sink.write(artifact)
    """

    def __init__(self, config: S3Config, session: Any | None = None) -> None:
        if not config.bucket:
            raise ConfigurationError("S3_BUCKET is required for S3 export", setting="S3_BUCKET")
        self.config = config
        self._session = session

    def _client_kwargs(self) -> dict[str, Any]:
        client_kwargs: dict[str, Any] = {"region_name": self.config.region}

        if self.config.endpoint_url:
            client_kwargs["endpoint_url"] = self.config.endpoint_url

        if self.config.access_key_id:
            client_kwargs["aws_access_key_id"] = self.config.access_key_id
            client_kwargs["aws_secret_access_key"] = self.config.secret_access_key

        return client_kwargs

    def key_for(self, artifact: ExportedArtifact) -> str:
        prefix = self.config.backup_prefix.strip("/")
        return f"{prefix}/{artifact.filename}" if prefix else artifact.filename

    async def write(self, artifact: ExportedArtifact) -> str:
        session = self._session or get_session()
        key = self.key_for(artifact)

        async with session.create_client("s3", **self._client_kwargs()) as s3:
            await s3.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=artifact.content,
                ContentType="application/json",
                Metadata={"total-documents": str(artifact.total_documents)},
            )

        uri = f"s3://{self.config.bucket}/{key}"
        logger.info(f"Uploaded backup artifact to {uri}", extra={"size_bytes": artifact.size_bytes})
        return uri
