"""CancellationCoordinator — the cancel path and its refund bookkeeping.

Cancelling records a refund *request* (`refund_issued=True`) in the same
versioned write that flips the status, so no reader ever sees a cancelled
order without its cancellation block. Settlement is a separate step:
`confirm_refund` runs only once the payment provider has confirmed the
refund, and moves the order to `refunded`.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.im_common.enums import CancelledBy, OrderStatus, PaymentStatus, TransactionType
from src.im_common.errors import (
    InvalidCancellationError,
    PartialFailureError,
    PaymentFailedError,
    RefundAlreadyConfirmedError,
    RefundNotRequestedError,
)
from src.im_ledger.domain.models import NewTransaction
from src.im_order.application.lifecycle import (
    OrderLifecycleManager,
    TransitionResult,
    resolve_actor,
)
from src.im_order.domain.models import Cancellation, Order
from src.im_payment.domain.gateway import PaymentGatewayProtocol

logger = logging.getLogger(__name__)


def _ensure_refund_pending(order: Order) -> Cancellation:
    cancellation = order.cancellation
    if cancellation is None:
        raise RefundNotRequestedError(order.id, "order is not cancelled")
    if cancellation.refund_confirmed:
        raise RefundAlreadyConfirmedError(order.id)
    if not cancellation.refund_issued:
        raise RefundNotRequestedError(order.id, "no refund was requested")
    return cancellation


class CancellationCoordinator:
    def __init__(
        self,
        lifecycle: OrderLifecycleManager | None = None,
        gateway: PaymentGatewayProtocol | None = None,
    ) -> None:
        self._lifecycle = lifecycle or OrderLifecycleManager()
        self._gateway = gateway

    async def cancel_order(
        self,
        db: AsyncSession,
        order_id: str,
        reason: str,
        cancelled_by: CancelledBy | str,
        actor_id: str,
        actor_role: str | None = None,
    ) -> TransitionResult:
        try:
            party = CancelledBy(cancelled_by)
        except ValueError:
            raise InvalidCancellationError(cancelled_by) from None

        def cancellation_fields(order: Order, now: datetime) -> dict[str, Any]:
            return {
                "cancellation": Cancellation(
                    reason=reason,
                    cancelled_by=party.value,
                    timestamp=now,
                    refund_issued=True,
                )
            }

        result = await self._lifecycle.transition_status(
            db,
            order_id,
            OrderStatus.CANCELLED,
            note=reason,
            actor_id=actor_id,
            actor_role=actor_role or party.value,
            extra_fields=cancellation_fields,
        )
        logger.info("Order %s cancelled by %s, refund requested", order_id, party.value)
        return result

    async def confirm_refund(
        self,
        db: AsyncSession,
        order_id: str,
        refund_transaction_id: str,
        actor_id: str,
        actor_role: str | None = None,
    ) -> TransitionResult:
        """Record a provider-confirmed refund and move the order to `refunded`."""
        _ensure_refund_pending(await self._lifecycle.get_order(db, order_id))

        def refund_fields(order: Order, now: datetime) -> dict[str, Any]:
            # Re-checked against the order read inside the versioned write
            cancellation = _ensure_refund_pending(order)
            fields: dict[str, Any] = {
                "cancellation": replace(
                    cancellation,
                    refund_confirmed=True,
                    refund_transaction_id=refund_transaction_id,
                    refund_confirmed_at=now,
                )
            }
            if order.payment is not None:
                fields["payment"] = replace(
                    order.payment,
                    status=PaymentStatus.REFUNDED.value,
                    refunded_at=now,
                    refund_reason=cancellation.reason,
                )
            return fields

        result = await self._lifecycle.apply_transition(
            db,
            order_id,
            OrderStatus.REFUNDED,
            note=f"Refund {refund_transaction_id} confirmed",
            actor_id=actor_id,
            actor_role=actor_role,
            extra_fields=refund_fields,
        )

        order = result.order
        performed_by, role = resolve_actor(actor_id, actor_role)
        payment = order.payment
        record = NewTransaction(
            type=TransactionType.REFUND_ISSUED.value,
            order_id=order.id,
            order_number=order.order_number,
            customer_id=order.customer_id,
            technician_id=order.technician_id,
            sub_contractor_id=order.sub_contractor_id,
            amount=payment.amount if payment else None,
            currency=payment.currency if payment else None,
            metadata={
                "refund_transaction_id": refund_transaction_id,
                "payment_transaction_id": payment.transaction_id if payment else None,
                "reason": order.cancellation.reason if order.cancellation else None,
            },
            performed_by=performed_by,
            performed_by_role=role,
        )
        _, failure = await self._lifecycle.append_ledger(db, record)
        missed = [*result.missed, failure] if failure is not None else list(result.missed)
        if missed:
            raise PartialFailureError(order_id, missed)
        return result

    async def settle_refund(
        self,
        db: AsyncSession,
        order_id: str,
        actor_id: str,
        actor_role: str | None = None,
    ) -> TransitionResult:
        """Ask the payment provider to refund, then confirm on success."""
        if self._gateway is None:
            raise PaymentFailedError("no payment gateway configured")
        order = await self._lifecycle.get_order(db, order_id)
        _ensure_refund_pending(order)
        payment = order.payment
        if payment is None or not payment.transaction_id:
            raise RefundNotRequestedError(order_id, "order has no settled payment")

        outcome = await self._gateway.refund_payment(payment.transaction_id, payment.amount)
        if not outcome.success:
            raise PaymentFailedError(outcome.message or "refund declined")
        logger.info("Refund %s settled for order %s", outcome.transaction_id, order_id)
        return await self.confirm_refund(
            db, order_id, outcome.transaction_id, actor_id, actor_role
        )
