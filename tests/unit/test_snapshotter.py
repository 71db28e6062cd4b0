"""
Unit tests for the snapshotter.

Tests cover:
- Full capture of every collection
- Per-collection failure isolation
- Read timeouts
- Bounded concurrency
- Collection subsets
"""

import asyncio
import json

import pytest

from dbops.vault_server.datasets import CollectionDescriptor, build_descriptors
from dbops.vault_server.model import CollectionStatus
from dbops.vault_server.snapshot import Snapshotter
from tests.factories import SAMPLE_DATA


class SlowCollection:
    """Accessor that tracks concurrent readers."""

    active = 0
    peak = 0

    def __init__(self, name, delay=0.01):
        self.name = name
        self.delay = delay

    async def find_all(self):
        SlowCollection.active += 1
        SlowCollection.peak = max(SlowCollection.peak, SlowCollection.active)
        try:
            await asyncio.sleep(self.delay)
            return [{"_id": f"{self.name}-1"}]
        finally:
            SlowCollection.active -= 1

    async def count(self):
        return 1

    async def delete_all(self):
        return 0

    async def insert_many(self, documents):
        return len(documents)


class TestSnapshotter:
    """Tests for Snapshotter.capture_all()."""

    @pytest.mark.asyncio
    async def test_captures_every_collection(self, seeded_store):
        snapshotter = Snapshotter(build_descriptors(seeded_store))

        result = await snapshotter.capture_all()

        assert list(result.per_collection) == list(SAMPLE_DATA)
        assert result.failed_collections == []
        assert result.total_documents == sum(len(docs) for docs in SAMPLE_DATA.values())
        assert result.per_collection["dayReflections"].count == 0
        assert result.finished_at >= result.started_at

    @pytest.mark.asyncio
    async def test_size_is_json_length(self, seeded_store):
        snapshotter = Snapshotter(build_descriptors(seeded_store, ["users"]))

        result = await snapshotter.capture_all()

        users = result.per_collection["users"]
        assert users.size_bytes == len(json.dumps(SAMPLE_DATA["users"]))
        assert result.total_size_bytes == users.size_bytes

    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort(self, seeded_store):
        """A failing collection is recorded and the others still succeed."""
        seeded_store.fail_collection("timeEntries", RuntimeError("cursor killed"))
        snapshotter = Snapshotter(build_descriptors(seeded_store))

        result = await snapshotter.capture_all()

        entries = result.per_collection["timeEntries"]
        assert entries.status == CollectionStatus.FAILED
        assert entries.error == "cursor killed"
        assert entries.documents == []
        assert result.failed_collections == ["timeEntries"]
        assert result.total_documents == sum(
            len(docs) for name, docs in SAMPLE_DATA.items() if name != "timeEntries"
        )

    @pytest.mark.asyncio
    async def test_read_timeout_recorded(self):
        snapshotter = Snapshotter(
            [
                CollectionDescriptor("slow", SlowCollection("slow", delay=1.0)),
                CollectionDescriptor("fast", SlowCollection("fast", delay=0)),
            ],
            read_timeout_seconds=0.05,
        )

        result = await snapshotter.capture_all()

        assert result.per_collection["slow"].status == CollectionStatus.FAILED
        assert "timed out" in result.per_collection["slow"].error
        assert result.per_collection["fast"].succeeded

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        SlowCollection.active = 0
        SlowCollection.peak = 0
        descriptors = [
            CollectionDescriptor(f"c{i}", SlowCollection(f"c{i}")) for i in range(8)
        ]
        snapshotter = Snapshotter(descriptors, max_concurrent=2)

        result = await snapshotter.capture_all()

        assert result.total_documents == 8
        assert SlowCollection.peak <= 2

    @pytest.mark.asyncio
    async def test_subset_ignores_unknown_names(self, seeded_store):
        snapshotter = Snapshotter(build_descriptors(seeded_store))

        result = await snapshotter.capture_all(["feedback", "users", "invoices"])

        # Descriptor order is kept regardless of request order
        assert list(result.per_collection) == ["users", "feedback"]
