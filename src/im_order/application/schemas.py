# src/im_order/application/schemas.py
"""Pydantic schemas and cursor utilities for the order API.

Cursor format for orders (UUID PK, not sequential):
  {"ts": "<created_at ISO>", "id": "<order_id>"}
  Encoded as Base64 JSON string.
"""
import base64
import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from config.settings import settings
from src.im_common.datetime_utils import to_iso
from src.im_common.money import cents_to_display
from src.im_order.application.lifecycle import TransitionResult
from src.im_order.domain.models import Cancellation, Order, PaymentInfo, StatusHistoryEntry

# ---------------------------------------------------------------------------
# Cursor utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_order: Order) -> str:
    payload = {"ts": to_iso(last_order.created_at), "id": last_order.id}
    return base64.b64encode(json.dumps(payload).encode()).decode()


def cursor_decode(cursor: str | None) -> tuple[datetime | None, str | None]:
    """Decode composite cursor -> (created_at, order_id), or (None, None) on error.

    asyncpg needs a real datetime for TIMESTAMPTZ parameters, so the
    timestamp is parsed here and a malformed one counts as no cursor.
    """
    if cursor is None:
        return None, None
    try:
        data = json.loads(base64.b64decode(cursor.encode()).decode())
        return datetime.fromisoformat(data["ts"]), str(data["id"])
    except Exception:
        return None, None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PaymentIn(BaseModel):
    """Settled payment as reported by the payment provider."""

    amount_cents: int = Field(..., gt=0)
    currency: str = Field(default_factory=lambda: settings.DEFAULT_CURRENCY)
    method: str
    transaction_id: str

    @field_validator("currency")
    @classmethod
    def iso_currency(cls, v: str) -> str:
        if len(v) != 3 or not v.isalpha():
            raise ValueError("currency must be a 3-letter ISO code")
        return v.upper()


class CreateOrderRequest(BaseModel):
    product_id: str | None = None
    service_id: str | None = None
    technician_id: str | None = None
    sub_contractor_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    payment: PaymentIn | None = None


class TransitionRequest(BaseModel):
    status: str
    note: str | None = Field(None, max_length=500)


class CancelOrderRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
    # Defaults to the caller's role when omitted
    cancelled_by: Literal["customer", "installer", "admin"] | None = None


class AcceptJobRequest(BaseModel):
    installer_name: str | None = Field(None, max_length=200)


class ConfirmRefundRequest(BaseModel):
    refund_transaction_id: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class StatusHistoryItem(BaseModel):
    status: str
    timestamp: str
    note: str
    changed_by: str

    @classmethod
    def from_domain(cls, entry: StatusHistoryEntry) -> "StatusHistoryItem":
        return cls(
            status=entry.status,
            timestamp=entry.timestamp.isoformat(),
            note=entry.note,
            changed_by=entry.changed_by,
        )


class CancellationOut(BaseModel):
    reason: str
    cancelled_by: str
    timestamp: str
    refund_issued: bool
    refund_confirmed: bool
    refund_transaction_id: str | None
    refund_confirmed_at: str | None

    @classmethod
    def from_domain(cls, c: Cancellation) -> "CancellationOut":
        return cls(
            reason=c.reason,
            cancelled_by=c.cancelled_by,
            timestamp=c.timestamp.isoformat(),
            refund_issued=c.refund_issued,
            refund_confirmed=c.refund_confirmed,
            refund_transaction_id=c.refund_transaction_id,
            refund_confirmed_at=to_iso(c.refund_confirmed_at),
        )


class PaymentOut(BaseModel):
    amount_cents: int
    amount_display: str
    currency: str
    status: str
    method: str
    transaction_id: str | None
    paid_at: str | None
    refunded_at: str | None

    @classmethod
    def from_domain(cls, p: PaymentInfo) -> "PaymentOut":
        return cls(
            amount_cents=p.amount,
            amount_display=cents_to_display(p.amount, p.currency),
            currency=p.currency,
            status=p.status,
            method=p.method,
            transaction_id=p.transaction_id,
            paid_at=to_iso(p.paid_at),
            refunded_at=to_iso(p.refunded_at),
        )


class OrderResponse(BaseModel):
    id: str
    order_number: str
    customer_id: str
    technician_id: str | None
    sub_contractor_id: str | None
    product_id: str | None
    service_id: str | None
    status: str
    status_history: list[StatusHistoryItem]
    details: dict[str, Any]
    payment: PaymentOut | None
    cancellation: CancellationOut | None
    accepted_at: str | None
    started_at: str | None
    completed_at: str | None
    cancelled_at: str | None
    version: int
    created_at: str | None
    updated_at: str | None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            order_number=order.order_number,
            customer_id=order.customer_id,
            technician_id=order.technician_id,
            sub_contractor_id=order.sub_contractor_id,
            product_id=order.product_id,
            service_id=order.service_id,
            status=order.status,
            status_history=[StatusHistoryItem.from_domain(h) for h in order.status_history],
            details=order.details,
            payment=PaymentOut.from_domain(order.payment) if order.payment else None,
            cancellation=(
                CancellationOut.from_domain(order.cancellation) if order.cancellation else None
            ),
            accepted_at=to_iso(order.accepted_at),
            started_at=to_iso(order.started_at),
            completed_at=to_iso(order.completed_at),
            cancelled_at=to_iso(order.cancelled_at),
            version=order.version,
            created_at=to_iso(order.created_at),
            updated_at=to_iso(order.updated_at),
        )


class TransitionResponse(BaseModel):
    order: OrderResponse
    previous_status: str
    ledger_transaction_id: int | None

    @classmethod
    def from_result(cls, result: TransitionResult) -> "TransitionResponse":
        return cls(
            order=OrderResponse.from_domain(result.order),
            previous_status=result.previous_status,
            ledger_transaction_id=result.ledger_transaction_id,
        )


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    next_cursor: str | None
    has_more: bool
