"""JobAssignment — an installer claiming a pending order.

Accepting a job is a status transition (pending -> accepted) that also sets
`technician_id` in the same versioned write. Two installers racing for the
same job both read `pending`, but only one UPDATE matches the version; the
loser re-reads, sees the job taken and gets JobAlreadyClaimedError.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.im_common.enums import ActorRole, OrderStatus, TransactionType
from src.im_common.errors import (
    InvalidTransitionError,
    JobAlreadyClaimedError,
    PartialFailureError,
)
from src.im_ledger.domain.models import NewTransaction
from src.im_order.application.lifecycle import OrderLifecycleManager, TransitionResult
from src.im_order.domain.models import Order

logger = logging.getLogger(__name__)


def _ensure_claimable(order: Order, installer_id: str) -> None:
    if order.status == OrderStatus.PENDING.value:
        if order.technician_id not in (None, installer_id):
            raise JobAlreadyClaimedError(order.id)
        return
    if order.technician_id is not None and order.technician_id != installer_id:
        raise JobAlreadyClaimedError(order.id)
    raise InvalidTransitionError(order.id, order.status, OrderStatus.ACCEPTED.value)


class JobAssignment:
    def __init__(self, lifecycle: OrderLifecycleManager | None = None) -> None:
        self._lifecycle = lifecycle or OrderLifecycleManager()

    async def accept_job(
        self,
        db: AsyncSession,
        order_id: str,
        installer_id: str,
        installer_name: str | None = None,
    ) -> TransitionResult:
        def assignment_fields(order: Order, now: datetime) -> dict[str, Any]:
            # Evaluated against every re-read, so a lost race surfaces here
            _ensure_claimable(order, installer_id)
            return {"technician_id": installer_id}

        result = await self._lifecycle.apply_transition(
            db,
            order_id,
            OrderStatus.ACCEPTED,
            note=f"Job accepted by {installer_name or installer_id}",
            actor_id=installer_id,
            actor_role=ActorRole.INSTALLER.value,
            extra_fields=assignment_fields,
        )

        order = result.order
        record = NewTransaction(
            type=TransactionType.INSTALLER_ASSIGNED.value,
            order_id=order.id,
            order_number=order.order_number,
            customer_id=order.customer_id,
            technician_id=installer_id,
            sub_contractor_id=order.sub_contractor_id,
            metadata={"installer_name": installer_name},
            performed_by=installer_id,
            performed_by_role=ActorRole.INSTALLER.value,
        )
        _, failure = await self._lifecycle.append_ledger(db, record)
        missed = [*result.missed, failure] if failure is not None else list(result.missed)
        if missed:
            raise PartialFailureError(order_id, missed)
        logger.info("Order %s accepted by installer %s", order_id, installer_id)
        return result
