"""Unit tests for JobAssignment: installers claiming pending orders."""

import pytest

from src.im_common.errors import (
    InvalidTransitionError,
    JobAlreadyClaimedError,
    PartialFailureError,
)
from src.im_ledger.application.service import LedgerWriter
from src.im_order.application.jobs import JobAssignment
from src.im_order.application.lifecycle import OrderLifecycleManager


@pytest.fixture
def jobs(order_repo, ledger_repo) -> JobAssignment:
    return JobAssignment(
        OrderLifecycleManager(repo=order_repo, ledger=LedgerWriter(repo=ledger_repo))
    )


class TestAcceptJob:
    async def test_claims_pending_order(self, jobs, order_repo, ledger_repo, db) -> None:
        order = order_repo.seed(status="pending")

        result = await jobs.accept_job(db, order.id, "tech-1", "Sam Fitter")

        accepted = result.order
        assert accepted.status == "accepted"
        assert accepted.technician_id == "tech-1"
        assert accepted.accepted_at is not None
        assert accepted.status_history[-1].note == "Job accepted by Sam Fitter"
        assert accepted.status_history[-1].changed_by == "tech-1"
        assert order_repo.update_calls == 1
        assert ledger_repo.types() == ["order_accepted", "installer_assigned"]
        assigned = ledger_repo.records[-1]
        assert assigned.technician_id == "tech-1"
        assert assigned.performed_by_role == "installer"

    async def test_note_falls_back_to_installer_id(self, jobs, order_repo, db) -> None:
        order = order_repo.seed(status="pending")

        result = await jobs.accept_job(db, order.id, "tech-1")

        assert result.order.status_history[-1].note == "Job accepted by tech-1"

    async def test_preassigned_installer_can_accept(self, jobs, order_repo, db) -> None:
        order = order_repo.seed(status="pending", technician_id="tech-1")

        result = await jobs.accept_job(db, order.id, "tech-1")

        assert result.order.status == "accepted"

    async def test_job_assigned_to_someone_else(self, jobs, order_repo, ledger_repo, db) -> None:
        order = order_repo.seed(status="pending", technician_id="tech-2")

        with pytest.raises(JobAlreadyClaimedError):
            await jobs.accept_job(db, order.id, "tech-1")

        assert order_repo.update_calls == 0
        assert ledger_repo.records == []

    async def test_already_accepted_job(self, jobs, order_repo, db) -> None:
        order = order_repo.seed(status="accepted", technician_id="tech-2")

        with pytest.raises(JobAlreadyClaimedError):
            await jobs.accept_job(db, order.id, "tech-1")

    async def test_own_accepted_job_cannot_be_accepted_again(
        self, jobs, order_repo, db
    ) -> None:
        order = order_repo.seed(status="accepted", technician_id="tech-1")

        with pytest.raises(InvalidTransitionError):
            await jobs.accept_job(db, order.id, "tech-1")

    async def test_losing_a_race_reports_claimed(self, jobs, order_repo, db) -> None:
        order = order_repo.seed(status="pending")
        await jobs.accept_job(db, order.id, "tech-2")

        with pytest.raises(JobAlreadyClaimedError):
            await jobs.accept_job(db, order.id, "tech-1")

        assert order_repo.orders[order.id].technician_id == "tech-2"

    async def test_assignment_ledger_failure_is_partial(
        self, jobs, order_repo, ledger_repo, db
    ) -> None:
        order = order_repo.seed(status="pending")
        ledger_repo.fail_types = {"installer_assigned"}

        with pytest.raises(PartialFailureError) as exc_info:
            await jobs.accept_job(db, order.id, "tech-1")

        assert exc_info.value.attempted == "installer_assigned"
        assert ledger_repo.types() == ["order_accepted"]
        assert order_repo.orders[order.id].technician_id == "tech-1"
