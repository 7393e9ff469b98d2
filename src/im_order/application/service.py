# src/im_order/application/service.py
"""OrderApplicationService — order creation and read paths.

Status changes never go through this service; they belong to
OrderLifecycleManager and CancellationCoordinator.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.im_common.datetime_utils import utc_now
from src.im_common.enums import (
    ActorRole,
    HistoryRecordType,
    OrderStatus,
    PaymentStatus,
    TransactionType,
)
from src.im_common.errors import (
    MissedWrite,
    OrderNotFoundError,
    PartialFailureError,
    PersistenceError,
)
from src.im_common.money import cents_to_display
from src.im_common.order_number import generate_order_number
from src.im_history.application.service import HistoryWriter
from src.im_history.domain.models import NewHistoryRecord
from src.im_ledger.application.service import LedgerWriter
from src.im_ledger.domain.models import NewTransaction
from src.im_order.application.schemas import (
    CreateOrderRequest,
    OrderListResponse,
    OrderResponse,
    cursor_decode,
    cursor_encode,
)
from src.im_order.domain.models import Order, PaymentInfo, StatusHistoryEntry
from src.im_order.domain.repository import OrderRepositoryProtocol
from src.im_order.infrastructure.persistence import OrderRepository

logger = logging.getLogger(__name__)


class OrderApplicationService:
    def __init__(
        self,
        repo: OrderRepositoryProtocol | None = None,
        ledger: LedgerWriter | None = None,
        history: HistoryWriter | None = None,
    ) -> None:
        self._repo: OrderRepositoryProtocol = repo or OrderRepository()
        self._ledger = ledger or LedgerWriter()
        self._history = history or HistoryWriter()

    async def create_order(
        self,
        db: AsyncSession,
        req: CreateOrderRequest,
        customer_id: str,
        actor_role: str = ActorRole.CUSTOMER.value,
    ) -> OrderResponse:
        now = utc_now()
        payment = None
        if req.payment is not None:
            payment = PaymentInfo(
                amount=req.payment.amount_cents,
                currency=req.payment.currency,
                status=PaymentStatus.COMPLETED.value,
                method=req.payment.method,
                transaction_id=req.payment.transaction_id,
                paid_at=now,
            )
        draft = Order(
            id="",  # assigned by the store
            order_number=generate_order_number(now),
            customer_id=customer_id,
            status=OrderStatus.PENDING.value,
            status_history=[
                StatusHistoryEntry(
                    status=OrderStatus.PENDING.value,
                    timestamp=now,
                    note="Order created",
                    changed_by=customer_id,
                )
            ],
            technician_id=req.technician_id,
            sub_contractor_id=req.sub_contractor_id,
            product_id=req.product_id,
            service_id=req.service_id,
            details=req.details,
            payment=payment,
        )
        try:
            order = await self._repo.insert(db, draft)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise PersistenceError("Order creation failed") from exc
        logger.info("Order %s (%s) created for %s", order.id, order.order_number, customer_id)

        await self._record_creation(db, order, actor_role)
        return OrderResponse.from_domain(order)

    async def _record_creation(self, db: AsyncSession, order: Order, actor_role: str) -> None:
        """Ledger + customer-history records for a new order (after its commit)."""
        payment = order.payment
        ledger_records = [
            NewTransaction(
                type=TransactionType.ORDER_CREATED.value,
                order_id=order.id,
                order_number=order.order_number,
                customer_id=order.customer_id,
                amount=payment.amount if payment else None,
                currency=payment.currency if payment else None,
                metadata={"product_id": order.product_id, "service_id": order.service_id},
                performed_by=order.customer_id,
                performed_by_role=actor_role,
            )
        ]
        history_records = [
            NewHistoryRecord(
                customer_id=order.customer_id,
                type=HistoryRecordType.ORDER_PLACED.value,
                title="Order Placed",
                description=f"Order {order.order_number} was placed",
                order_id=order.id,
                metadata={"product_id": order.product_id, "service_id": order.service_id},
            )
        ]
        if payment is not None:
            ledger_records.append(
                NewTransaction(
                    type=TransactionType.PAYMENT_RECEIVED.value,
                    order_id=order.id,
                    order_number=order.order_number,
                    customer_id=order.customer_id,
                    amount=payment.amount,
                    currency=payment.currency,
                    metadata={"transaction_id": payment.transaction_id, "method": payment.method},
                    performed_by=order.customer_id,
                    performed_by_role=actor_role,
                )
            )
            history_records.append(
                NewHistoryRecord(
                    customer_id=order.customer_id,
                    type=HistoryRecordType.PAYMENT_MADE.value,
                    title="Payment Successful",
                    description=(
                        f"Payment of {cents_to_display(payment.amount, payment.currency)} "
                        f"for Order {order.order_number}"
                    ),
                    amount=payment.amount,
                    currency=payment.currency,
                    order_id=order.id,
                    transaction_id=payment.transaction_id,
                    metadata={"payment_method": payment.method},
                )
            )

        # Every record is attempted; failures are reported together
        missed: list[MissedWrite] = []
        for txn in ledger_records:
            try:
                await self._ledger.append(db, txn)
            except PersistenceError as exc:
                logger.warning("Partial failure: order %s created but %s not logged", order.id, txn.type)
                missed.append(MissedWrite("ledger", txn.type, exc.message))
        for record in history_records:
            try:
                await self._history.append(db, record)
            except PersistenceError as exc:
                logger.warning(
                    "Partial failure: order %s created but history %s not written",
                    order.id,
                    record.type,
                )
                missed.append(MissedWrite("history", record.type, exc.message))
        if missed:
            raise PartialFailureError(order.id, missed)

    async def get_order(self, db: AsyncSession, order_id: str) -> OrderResponse:
        try:
            order = await self._repo.get_by_id(db, order_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read order {order_id}") from exc
        if order is None:
            raise OrderNotFoundError(order_id)
        return OrderResponse.from_domain(order)

    async def list_orders(
        self, db: AsyncSession, cursor: str | None, limit: int
    ) -> OrderListResponse:
        """All orders, newest first. An unreadable cursor restarts from the first page."""
        cursor_dt, cursor_id = cursor_decode(cursor)

        # Fetch limit+1 to detect has_more without COUNT(*)
        orders = await self._repo.list_all(db, cursor_dt, cursor_id, limit + 1)
        has_more = len(orders) > limit
        page = orders[:limit]
        next_cursor = cursor_encode(page[-1]) if has_more and page else None
        return OrderListResponse(
            items=[OrderResponse.from_domain(o) for o in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def list_customer_orders(
        self, db: AsyncSession, customer_id: str, limit: int = 100
    ) -> list[OrderResponse]:
        orders = await self._repo.list_by_customer(db, customer_id, limit)
        return [OrderResponse.from_domain(o) for o in orders]

    async def list_available_jobs(
        self, db: AsyncSession, technician_id: str, limit: int = 50
    ) -> list[OrderResponse]:
        """Pending orders an installer may accept, oldest first."""
        orders = await self._repo.list_available(db, technician_id, limit)
        return [OrderResponse.from_domain(o) for o in orders]

    async def list_installer_jobs(
        self,
        db: AsyncSession,
        technician_id: str,
        statuses: list[OrderStatus] | None = None,
        limit: int = 100,
    ) -> list[OrderResponse]:
        orders = await self._repo.list_by_technician(
            db, technician_id, [s.value for s in statuses] if statuses else None, limit
        )
        return [OrderResponse.from_domain(o) for o in orders]
