"""Customer history domain models — the customer-facing activity feed."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class NewHistoryRecord:
    customer_id: str
    type: str  # HistoryRecordType value
    title: str
    description: str
    amount: int | None = None  # cents
    currency: str | None = None
    order_id: str | None = None
    transaction_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class HistoryRecord:
    id: int
    customer_id: str
    type: str
    title: str
    description: str
    timestamp: datetime
    amount: int | None = None
    currency: str | None = None
    order_id: str | None = None
    transaction_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
