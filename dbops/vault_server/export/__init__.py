"""Destinations for exported manual backups."""

from .sinks import ArtifactSink, LocalFileSink, S3ArtifactSink

__all__ = ["ArtifactSink", "LocalFileSink", "S3ArtifactSink"]
