"""Pydantic schemas for the ledger API."""

from typing import Any

from pydantic import BaseModel

from src.im_common.money import cents_to_display
from src.im_ledger.domain.models import TransactionRecord


class TransactionItem(BaseModel):
    id: int
    type: str
    order_id: str | None
    order_number: str | None
    customer_id: str | None
    technician_id: str | None
    sub_contractor_id: str | None
    amount_cents: int | None
    amount_display: str | None
    currency: str | None
    metadata: dict[str, Any]
    performed_by: str
    performed_by_role: str
    timestamp: str  # ISO8601 string

    @classmethod
    def from_domain(cls, record: TransactionRecord) -> "TransactionItem":
        display = None
        if record.amount is not None:
            display = cents_to_display(record.amount, record.currency or "USD")
        return cls(
            id=record.id,
            type=record.type,
            order_id=record.order_id,
            order_number=record.order_number,
            customer_id=record.customer_id,
            technician_id=record.technician_id,
            sub_contractor_id=record.sub_contractor_id,
            amount_cents=record.amount,
            amount_display=display,
            currency=record.currency,
            metadata=record.metadata,
            performed_by=record.performed_by,
            performed_by_role=record.performed_by_role,
            timestamp=record.timestamp.isoformat(),
        )


class TransactionListResponse(BaseModel):
    items: list[TransactionItem]
