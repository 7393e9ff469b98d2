"""Ledger domain models — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class NewTransaction:
    """A ledger record as submitted by a writer (no id, no timestamp)."""

    type: str                        # order_<status> or TransactionType value
    performed_by: str
    performed_by_role: str
    order_id: str | None = None
    order_number: str | None = None
    customer_id: str | None = None
    technician_id: str | None = None
    sub_contractor_id: str | None = None
    amount: int | None = None        # cents
    currency: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TransactionRecord:
    id: int                          # BIGSERIAL
    type: str
    performed_by: str
    performed_by_role: str
    timestamp: datetime              # assigned by the DB at insert
    order_id: str | None = None
    order_number: str | None = None
    customer_id: str | None = None
    technician_id: str | None = None
    sub_contractor_id: str | None = None
    amount: int | None = None
    currency: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
