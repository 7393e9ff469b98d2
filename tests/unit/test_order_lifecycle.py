"""Unit tests for OrderLifecycleManager against in-memory repositories."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from src.im_common.datetime_utils import utc_now
from src.im_common.enums import OrderStatus
from src.im_common.errors import (
    InvalidStatusError,
    InvalidTransitionError,
    OrderNotFoundError,
    OrderVersionConflictError,
    PartialFailureError,
    PersistenceError,
)
from src.im_ledger.application.service import LedgerWriter
from src.im_order.application.lifecycle import OrderLifecycleManager, resolve_actor
from src.im_order.domain.models import StatusHistoryEntry


@pytest.fixture
def manager(order_repo, ledger_repo) -> OrderLifecycleManager:
    return OrderLifecycleManager(repo=order_repo, ledger=LedgerWriter(repo=ledger_repo))


class TestTransitionStatus:
    async def test_pending_to_accepted(self, manager, order_repo, ledger_repo, db) -> None:
        order = order_repo.seed(status="pending")

        result = await manager.transition_status(db, order.id, "accepted", "ok", "tech1")

        assert result.order.status == "accepted"
        assert result.previous_status == "pending"
        assert len(result.order.status_history) == 1
        assert result.order.accepted_at is not None
        assert ledger_repo.types() == ["order_accepted"]
        record = ledger_repo.records[0]
        assert record.metadata["previousStatus"] == "pending"
        assert record.metadata["newStatus"] == "accepted"
        assert record.metadata["note"] == "ok"
        assert record.performed_by == "tech1"
        assert result.ledger_transaction_id == record.id

    async def test_change_is_persisted(self, manager, order_repo, db) -> None:
        order = order_repo.seed(status="pending")

        await manager.transition_status(db, order.id, OrderStatus.IN_PROGRESS, actor_id="tech1")

        stored = await manager.get_order(db, order.id)
        assert stored.status == "in_progress"
        assert stored.started_at is not None
        assert stored.version == 1
        db.commit.assert_awaited()

    @pytest.mark.parametrize("status", [s.value for s in OrderStatus])
    async def test_each_status_appends_exactly_one_entry(
        self, manager, order_repo, db, status
    ) -> None:
        order = order_repo.seed(
            status="accepted",
            status_history=[StatusHistoryEntry("accepted", utc_now() - timedelta(minutes=5))],
        )

        result = await manager.transition_status(db, order.id, status, "n", "admin-1")

        history = result.order.status_history
        assert len(history) == 2
        assert history[-1].status == status
        assert history[-1].note == "n"
        assert history[-1].changed_by == "admin-1"
        assert result.order.status == status

    async def test_history_timestamps_never_go_backwards(self, manager, order_repo, db) -> None:
        future = utc_now() + timedelta(hours=1)
        order = order_repo.seed(
            status="accepted", status_history=[StatusHistoryEntry("accepted", future)]
        )

        result = await manager.transition_status(db, order.id, "in_progress")

        first, second = result.order.status_history
        assert second.timestamp >= first.timestamp

    async def test_repeated_accept_keeps_original_accepted_at(
        self, manager, order_repo, db
    ) -> None:
        order = order_repo.seed(status="pending")
        first = await manager.transition_status(db, order.id, "accepted")
        second = await manager.transition_status(db, order.id, "accepted")

        assert second.order.accepted_at == first.order.accepted_at
        assert len(second.order.status_history) == 2

    async def test_n_transitions_write_n_ledger_records(
        self, manager, order_repo, ledger_repo, db
    ) -> None:
        order = order_repo.seed(status="pending")
        for status in ("accepted", "in_progress", "completed", "refunded"):
            await manager.transition_status(db, order.id, status)

        assert ledger_repo.types() == [
            "order_accepted",
            "order_in_progress",
            "order_completed",
            "order_refunded",
        ]

    async def test_no_actor_is_attributed_to_system(
        self, manager, order_repo, ledger_repo, db
    ) -> None:
        order = order_repo.seed(status="pending")

        result = await manager.transition_status(db, order.id, "accepted")

        assert result.order.status_history[-1].changed_by == "system"
        assert result.order.status_history[-1].note == ""
        assert ledger_repo.records[0].performed_by == "system"
        assert ledger_repo.records[0].performed_by_role == "system"

    async def test_explicit_role_is_recorded(self, manager, order_repo, ledger_repo, db) -> None:
        order = order_repo.seed(status="pending")

        await manager.transition_status(db, order.id, "accepted", None, "tech1", "installer")

        assert ledger_repo.records[0].performed_by_role == "installer"


class TestTransitionRejections:
    async def test_unknown_status_writes_nothing(
        self, manager, order_repo, ledger_repo, db
    ) -> None:
        order = order_repo.seed(status="pending")

        with pytest.raises(InvalidStatusError):
            await manager.transition_status(db, order.id, "shipped")

        assert order_repo.update_calls == 0
        assert ledger_repo.records == []

    async def test_missing_order(self, manager, ledger_repo, db) -> None:
        with pytest.raises(OrderNotFoundError):
            await manager.transition_status(db, "no-such-order", "accepted")
        assert ledger_repo.records == []

    @pytest.mark.parametrize(
        "current,requested",
        [
            ("completed", "in_progress"),
            ("cancelled", "accepted"),
            ("refunded", "pending"),
            ("refunded", "refunded"),
        ],
    )
    async def test_moves_out_of_terminal_status_are_rejected(
        self, manager, order_repo, ledger_repo, db, current, requested
    ) -> None:
        order = order_repo.seed(status=current)

        with pytest.raises(InvalidTransitionError):
            await manager.transition_status(db, order.id, requested)

        assert order_repo.update_calls == 0
        assert ledger_repo.records == []

    async def test_store_failure_raises_persistence_error(
        self, manager, order_repo, ledger_repo, db
    ) -> None:
        order = order_repo.seed(status="pending")
        order_repo.update_error = SQLAlchemyError("connection reset")

        with pytest.raises(PersistenceError):
            await manager.transition_status(db, order.id, "accepted")

        db.rollback.assert_awaited()
        assert ledger_repo.records == []


class TestVersionConflicts:
    async def test_conflict_is_retried(self, manager, order_repo, ledger_repo, db) -> None:
        order = order_repo.seed(status="pending")
        order_repo.conflicts_remaining = 1

        result = await manager.transition_status(db, order.id, "accepted")

        assert result.order.status == "accepted"
        assert order_repo.update_calls == 2
        assert ledger_repo.types() == ["order_accepted"]
        db.rollback.assert_awaited_once()

    async def test_gives_up_after_max_attempts(self, order_repo, ledger_repo, db) -> None:
        manager = OrderLifecycleManager(
            repo=order_repo, ledger=LedgerWriter(repo=ledger_repo), max_attempts=2
        )
        order = order_repo.seed(status="pending")
        order_repo.conflicts_remaining = 5

        with pytest.raises(OrderVersionConflictError):
            await manager.transition_status(db, order.id, "accepted")

        assert order_repo.update_calls == 2
        assert ledger_repo.records == []

    async def test_concurrent_writer_change_is_not_lost(self, manager, order_repo, db) -> None:
        order = order_repo.seed(status="pending")
        await manager.transition_status(db, order.id, "accepted", "first")
        # A stale writer holding version 0 must be refused by the store
        with pytest.raises(OrderVersionConflictError):
            await order_repo.update_fields(db, order.id, {"status": "pending"}, expected_version=0)

        stored = await manager.get_order(db, order.id)
        assert stored.status == "accepted"


class TestPartialFailure:
    async def test_ledger_failure_keeps_order_change(
        self, manager, order_repo, ledger_repo, db
    ) -> None:
        order = order_repo.seed(status="pending")
        ledger_repo.fail = True

        with pytest.raises(PartialFailureError) as exc_info:
            await manager.transition_status(db, order.id, "accepted", actor_id="tech1")

        assert exc_info.value.context == {
            "order_id": order.id,
            "missing": [{"stage": "ledger", "attempted": "order_accepted"}],
        }
        assert exc_info.value.http_status == 207
        stored = await manager.get_order(db, order.id)
        assert stored.status == "accepted"
        assert ledger_repo.records == []

    async def test_hook_receives_transition(self, manager, order_repo, db) -> None:
        hook = AsyncMock()
        manager.add_hook(hook)
        order = order_repo.seed(status="pending")

        await manager.transition_status(db, order.id, "accepted", "go", "tech1", "installer")

        hook.assert_awaited_once()
        event = hook.await_args.args[1]
        assert event.previous_status == "pending"
        assert event.new_status == "accepted"
        assert event.actor_id == "tech1"
        assert event.actor_role == "installer"
        assert event.ledger_transaction_id == 1

    async def test_hook_failure_is_partial(self, order_repo, ledger_repo, db) -> None:
        async def notify_customer(session, event) -> None:
            raise SQLAlchemyError("history table locked")

        manager = OrderLifecycleManager(
            repo=order_repo, ledger=LedgerWriter(repo=ledger_repo), hooks=[notify_customer]
        )
        order = order_repo.seed(status="pending")

        with pytest.raises(PartialFailureError) as exc_info:
            await manager.transition_status(db, order.id, "accepted")

        assert exc_info.value.stage == "hook"
        assert exc_info.value.attempted == "notify_customer"
        assert ledger_repo.types() == ["order_accepted"]
        assert (await manager.get_order(db, order.id)).status == "accepted"

    async def test_hooks_still_run_after_ledger_failure(
        self, manager, order_repo, ledger_repo, db
    ) -> None:
        hook = AsyncMock()
        manager.add_hook(hook)
        order = order_repo.seed(status="pending")
        ledger_repo.fail = True

        with pytest.raises(PartialFailureError) as exc_info:
            await manager.transition_status(db, order.id, "accepted", actor_id="tech1")

        hook.assert_awaited_once()
        assert hook.await_args.args[1].ledger_transaction_id is None
        assert exc_info.value.context["missing"] == [
            {"stage": "ledger", "attempted": "order_accepted"}
        ]

    async def test_every_missed_write_is_reported(self, order_repo, ledger_repo, db) -> None:
        async def notify_customer(session, event) -> None:
            raise SQLAlchemyError("history table locked")

        audit = AsyncMock()
        manager = OrderLifecycleManager(
            repo=order_repo,
            ledger=LedgerWriter(repo=ledger_repo),
            hooks=[notify_customer, audit],
        )
        order = order_repo.seed(status="pending")
        ledger_repo.fail = True

        with pytest.raises(PartialFailureError) as exc_info:
            await manager.transition_status(db, order.id, "accepted")

        audit.assert_awaited_once()
        assert exc_info.value.context["missing"] == [
            {"stage": "ledger", "attempted": "order_accepted"},
            {"stage": "hook", "attempted": "notify_customer"},
        ]

    async def test_apply_transition_reports_instead_of_raising(
        self, manager, order_repo, ledger_repo, db
    ) -> None:
        order = order_repo.seed(status="pending")
        ledger_repo.fail = True

        result = await manager.apply_transition(db, order.id, "accepted")

        assert result.order.status == "accepted"
        assert result.ledger_transaction_id is None
        assert [(m.stage, m.attempted) for m in result.missed] == [("ledger", "order_accepted")]


class TestResolveActor:
    def test_no_actor(self) -> None:
        assert resolve_actor(None, None) == ("system", "system")

    def test_actor_without_role_uses_default(self) -> None:
        assert resolve_actor("ops-7", None) == ("ops-7", "admin")

    def test_actor_with_role(self) -> None:
        assert resolve_actor("cust-1", "customer") == ("cust-1", "customer")


async def test_get_order_wraps_store_errors(db) -> None:
    repo = AsyncMock()
    repo.get_by_id.side_effect = SQLAlchemyError("down")
    manager = OrderLifecycleManager(repo=repo, ledger=LedgerWriter(repo=AsyncMock()))

    with pytest.raises(PersistenceError):
        await manager.get_order(db, "o-1")
