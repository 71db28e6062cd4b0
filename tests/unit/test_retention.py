"""
Unit tests for retention enforcement.

Tests cover:
- Daily set of 7 newest completed snapshots
- Monthly pick (first eligible scanning newest to oldest)
- Failed and in-progress snapshots are never touched
- Errors are contained
"""

from datetime import timedelta

import pytest

from dbops.vault_server.model import SnapshotStatus
from dbops.vault_server.retention import RetentionEnforcer, RetentionPolicy, plan
from dbops.vault_server.snapshot import BackupStore
from tests.factories import NOW, make_snapshot


def daily_history(days):
    """One completed snapshot per day, newest first."""
    return [make_snapshot(NOW - timedelta(days=d)) for d in days]


class TestPlan:
    """Tests for the pure retention plan."""

    def test_fewer_than_daily_count_keeps_all(self):
        history = daily_history(range(5))

        decision = plan(history, NOW)

        assert len(decision.keep) == 5
        assert decision.delete == []
        assert decision.monthly is None

    def test_keeps_seven_newest(self):
        history = daily_history(range(10))

        decision = plan(history, NOW)

        assert decision.keep == history[:7]
        assert decision.delete == history[7:]
        assert decision.monthly is None

    def test_monthly_is_first_eligible(self):
        """The monthly pick is the non-daily snapshot closest to 30 days old."""
        history = daily_history(list(range(7)) + [20, 31, 45, 60])

        decision = plan(history, NOW)

        assert decision.monthly is history[8]
        assert decision.keep == history[:7] + [history[8]]
        assert decision.delete == [history[7], history[9], history[10]]

    def test_input_order_does_not_matter(self):
        history = daily_history(list(range(7)) + [31, 45])

        decision = plan(list(reversed(history)), NOW)

        assert decision.monthly is history[7]

    def test_never_more_than_daily_plus_one(self):
        history = daily_history(range(0, 120, 3))

        decision = plan(history, NOW)

        assert len(decision.keep) <= 8
        for metadata in decision.keep:
            assert metadata in history[:7] or metadata is decision.monthly

    def test_ignores_non_completed(self):
        history = daily_history(range(8)) + [
            make_snapshot(NOW - timedelta(days=40), status=SnapshotStatus.FAILED)
        ]

        decision = plan(history, NOW)

        assert all(m.status == SnapshotStatus.COMPLETED for m in decision.keep + decision.delete)

    def test_custom_policy(self):
        history = daily_history(range(5))

        decision = plan(history, NOW, RetentionPolicy(daily_count=2, monthly_age_days=3))

        assert decision.keep == history[:2] + [history[3]]
        assert decision.delete == [history[2], history[4]]


class TestRetentionEnforcer:
    """Tests for RetentionEnforcer.enforce()."""

    @pytest.mark.asyncio
    async def test_deletes_pruned_snapshots(self, store):
        history = daily_history(list(range(9)) + [35])
        failed = make_snapshot(NOW - timedelta(days=50), status=SnapshotStatus.FAILED)
        in_progress = make_snapshot(NOW - timedelta(days=50), status=SnapshotStatus.IN_PROGRESS)
        for metadata in history + [failed, in_progress]:
            await store.insert_snapshot(metadata)

        result = await RetentionEnforcer(BackupStore(store)).enforce(now=NOW)

        assert result.success
        assert result.deleted == [history[7].snapshot_id, history[8].snapshot_id]
        assert result.monthly_id == history[9].snapshot_id
        remaining = {m.snapshot_id for m in await store.list_snapshots()}
        assert failed.snapshot_id in remaining
        assert in_progress.snapshot_id in remaining
        completed = await store.list_snapshots(status=SnapshotStatus.COMPLETED)
        assert len(completed) == 8

    @pytest.mark.asyncio
    async def test_errors_are_contained(self, store):
        for metadata in daily_history(range(9)):
            await store.insert_snapshot(metadata)
        store.fail_collection("backup_chunks", RuntimeError("write conflict"), ("delete",))

        result = await RetentionEnforcer(BackupStore(store)).enforce(now=NOW)

        assert not result.success
        assert "write conflict" in result.error
        assert result.deleted == []
        assert len(await store.list_snapshots()) == 9

    @pytest.mark.asyncio
    async def test_unreachable_store_is_contained(self, store):
        store.set_unreachable(OSError("connection refused"))

        result = await RetentionEnforcer(BackupStore(store)).enforce(now=NOW)

        assert result.error is not None
