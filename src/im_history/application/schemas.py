"""Pydantic schemas for the customer history API."""

from typing import Any

from pydantic import BaseModel

from src.im_common.money import cents_to_display
from src.im_history.domain.models import HistoryRecord


class HistoryItem(BaseModel):
    id: int
    type: str
    title: str
    description: str
    amount_cents: int | None
    amount_display: str | None
    currency: str | None
    order_id: str | None
    transaction_id: str | None
    metadata: dict[str, Any]
    timestamp: str

    @classmethod
    def from_domain(cls, record: HistoryRecord) -> "HistoryItem":
        display = None
        if record.amount is not None:
            display = cents_to_display(record.amount, record.currency or "USD")
        return cls(
            id=record.id,
            type=record.type,
            title=record.title,
            description=record.description,
            amount_cents=record.amount,
            amount_display=display,
            currency=record.currency,
            order_id=record.order_id,
            transaction_id=record.transaction_id,
            metadata=record.metadata,
            timestamp=record.timestamp.isoformat(),
        )


class HistoryListResponse(BaseModel):
    customer_id: str
    items: list[HistoryItem]
