"""Tests for the id reconciler, the operation log and the notification center."""

import asyncio

import pytest

from fluxcash.ledger import IdReconciler, OperationLog
from fluxcash.models.ledger import EntityKind, OperationAction, OperationStatus
from fluxcash.models.notification import NotificationCategory, NotificationSeverity
from fluxcash.notifications import NotificationCenter


class TestIdReconciler:
    """Tests for IdReconciler."""

    @pytest.mark.asyncio
    async def test_waiter_receives_server_id(self):
        """Test that a reference issued before confirmation resolves later."""
        reconciler = IdReconciler()
        temp_id = reconciler.new_temp_id()
        reconciler.register(temp_id)

        waiter = asyncio.create_task(reconciler.server_id(temp_id))
        await asyncio.sleep(0)
        assert not waiter.done()

        reconciler.resolve(temp_id, "srv-1")
        assert await waiter == "srv-1"
        assert reconciler.lookup(temp_id) == "srv-1"

    @pytest.mark.asyncio
    async def test_failed_insert(self):
        """Test that waiters of a rejected insert get None."""
        reconciler = IdReconciler()
        temp_id = reconciler.new_temp_id()
        reconciler.register(temp_id)

        reconciler.fail(temp_id)
        assert await reconciler.server_id(temp_id) is None
        assert reconciler.never_reached_remote(temp_id) is True

    @pytest.mark.asyncio
    async def test_server_ids_pass_through(self):
        """Test that ids that were never temporary are returned unchanged."""
        reconciler = IdReconciler()
        assert await reconciler.server_id("srv-9") == "srv-9"
        assert reconciler.never_reached_remote("srv-9") is False

    @pytest.mark.asyncio
    async def test_unknown_temp_id_never_reached_remote(self):
        """Test a temporary id from an earlier session."""
        reconciler = IdReconciler()
        assert reconciler.never_reached_remote("temp-old") is True
        assert await reconciler.server_id("temp-old") is None

    @pytest.mark.asyncio
    async def test_clear_releases_waiters(self):
        """Test that clearing does not leave waiters hanging."""
        reconciler = IdReconciler()
        reconciler.register("temp-1")
        waiter = asyncio.create_task(reconciler.server_id("temp-1"))
        await asyncio.sleep(0)

        reconciler.clear()
        assert await waiter is None


class TestOperationLog:
    """Tests for OperationLog."""

    def test_lifecycle(self, clock):
        """Test open, retarget and confirm."""
        log = OperationLog(clock)
        op = log.open(EntityKind.TRANSACTIONS, OperationAction.INSERT, "temp-1")
        assert log.open_operations == [op]

        log.retarget("temp-1", "srv-1")
        log.confirm(op)

        assert op.entity_id == "srv-1"
        assert op.status == OperationStatus.CONFIRMED
        assert op.resolved_at == clock.now()
        assert log.open_operations == []

    def test_failure_is_recorded(self, clock):
        """Test that a failed operation keeps its error."""
        log = OperationLog(clock)
        op = log.open(EntityKind.CARDS, OperationAction.UPDATE, "c-1")
        log.fail(op, "quota exceeded")

        assert log.failed_operations == [op]
        assert op.error == "quota exceeded"
        assert log.for_entity(EntityKind.CARDS, "c-1") == [op]
        assert log.for_entity(EntityKind.GOALS, "c-1") == []

    def test_confirmed_operations_pruned_once_settled(self, clock):
        """Test that only failures outlive an entity's last open operation."""
        log = OperationLog(clock)
        first = log.open(EntityKind.TRANSACTIONS, OperationAction.UPDATE, "t-1")
        second = log.open(EntityKind.TRANSACTIONS, OperationAction.UPDATE, "t-1")

        log.confirm(first)
        assert log.operations == [first, second]

        log.fail(second, "timeout")
        assert log.operations == [second]
        assert log.for_entity(EntityKind.TRANSACTIONS, "t-1") == [second]

    def test_log_bounded_after_many_confirmations(self, clock):
        """Test that confirmed writes do not accumulate."""
        log = OperationLog(clock)
        for _ in range(200):
            op = log.open(EntityKind.PROFILES, OperationAction.UPDATE, "user-1")
            log.confirm(op)
        assert log.operations == []
        assert log.for_entity(EntityKind.PROFILES, "user-1") == []


class TestNotificationCenter:
    """Tests for NotificationCenter."""

    def test_history_newest_first(self):
        """Test ordering and unread counts."""
        center = NotificationCenter()
        center.notify("First", "a")
        center.notify("Second", "b", NotificationSeverity.ERROR)

        assert [n.title for n in center.notifications] == ["Second", "First"]
        assert center.unread_count == 2
        center.mark_as_read(center.notifications[0].id)
        assert center.unread_count == 1
        center.mark_all_as_read()
        assert center.unread_count == 0

    def test_bounded_history(self):
        """Test that old notifications fall off."""
        center = NotificationCenter(max_history=2)
        for i in range(3):
            center.notify(f"N{i}", "x")
        assert [n.title for n in center.notifications] == ["N2", "N1"]

    def test_subscribers(self):
        """Test fan-out, isolation of failing subscribers and unsubscribe."""
        center = NotificationCenter()
        received = []

        def broken(notification):
            raise RuntimeError("boom")

        center.subscribe(broken)
        unsubscribe = center.subscribe(received.append)
        center.notify("Level Up!", "2", category=NotificationCategory.GAMIFICATION)
        unsubscribe()
        center.notify("Ignored", "x")

        assert [n.title for n in received] == ["Level Up!"]
        assert len(center.find(category=NotificationCategory.GAMIFICATION)) == 1
