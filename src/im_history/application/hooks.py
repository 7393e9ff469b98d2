"""Customer-history transition hook.

Maps an order status change to a customer-facing activity record:

    completed -> service_completed
    cancelled -> order_cancelled
    anything else -> order_updated
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.im_common.enums import HistoryRecordType, OrderStatus
from src.im_common.money import cents_to_display
from src.im_history.application.service import HistoryWriter
from src.im_history.domain.models import NewHistoryRecord
from src.im_order.domain.events import StatusTransition

_TITLES: dict[str, str] = {
    OrderStatus.PENDING.value: "Order Pending",
    OrderStatus.ACCEPTED.value: "Order Accepted",
    OrderStatus.IN_PROGRESS.value: "Installation Started",
    OrderStatus.COMPLETED.value: "Service Completed",
    OrderStatus.CANCELLED.value: "Order Cancelled",
    OrderStatus.REFUNDED.value: "Refund Processed",
}


def _record_type(status: str) -> HistoryRecordType:
    if status == OrderStatus.COMPLETED.value:
        return HistoryRecordType.SERVICE_COMPLETED
    if status == OrderStatus.CANCELLED.value:
        return HistoryRecordType.ORDER_CANCELLED
    return HistoryRecordType.ORDER_UPDATED


def build_history_record(event: StatusTransition) -> NewHistoryRecord:
    order = event.order
    description = f"Order {order.order_number} is now {event.new_status.replace('_', ' ')}"
    if event.note:
        description += f": {event.note}"

    amount = currency = None
    if event.new_status == OrderStatus.REFUNDED.value and order.payment is not None:
        amount, currency = order.payment.amount, order.payment.currency
        description = (
            f"Refund of {cents_to_display(amount, currency)} for Order {order.order_number}"
        )

    return NewHistoryRecord(
        customer_id=order.customer_id,
        type=_record_type(event.new_status).value,
        title=_TITLES.get(event.new_status, "Order Updated"),
        description=description,
        amount=amount,
        currency=currency,
        order_id=order.id,
        metadata={
            "previous_status": event.previous_status,
            "new_status": event.new_status,
            "ledger_transaction_id": event.ledger_transaction_id,
        },
    )


class CustomerHistoryHook:
    """Transition hook writing one customer_history record per status change."""

    def __init__(self, writer: HistoryWriter | None = None) -> None:
        self._writer = writer or HistoryWriter()

    async def __call__(self, db: AsyncSession, event: StatusTransition) -> None:
        await self._writer.append(db, build_history_record(event))
