"""Order domain model — pure dataclasses, no SQLAlchemy dependency.

Nested structures (status history, cancellation, payment) are stored as JSONB
documents; to_dict/from_dict are the only place their wire shape is defined.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.im_common.datetime_utils import parse_iso, to_iso


@dataclass(frozen=True)
class StatusHistoryEntry:
    status: str
    timestamp: datetime
    note: str = ""
    changed_by: str = "system"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": to_iso(self.timestamp),
            "note": self.note,
            "changed_by": self.changed_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StatusHistoryEntry":
        return cls(
            status=data["status"],
            timestamp=parse_iso(data["timestamp"]),  # type: ignore[arg-type]
            note=data.get("note") or "",
            changed_by=data.get("changed_by") or "system",
        )


@dataclass(frozen=True)
class Cancellation:
    reason: str
    cancelled_by: str  # customer / installer / admin
    timestamp: datetime
    # Refund requested at cancellation time; not a settlement confirmation
    refund_issued: bool = True
    refund_confirmed: bool = False
    refund_transaction_id: str | None = None
    refund_confirmed_at: datetime | None = None

    @property
    def refund_pending(self) -> bool:
        return self.refund_issued and not self.refund_confirmed

    def to_dict(self) -> dict[str, Any]:
        return {
            "reason": self.reason,
            "cancelled_by": self.cancelled_by,
            "timestamp": to_iso(self.timestamp),
            "refund_issued": self.refund_issued,
            "refund_confirmed": self.refund_confirmed,
            "refund_transaction_id": self.refund_transaction_id,
            "refund_confirmed_at": to_iso(self.refund_confirmed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Cancellation":
        return cls(
            reason=data.get("reason", ""),
            cancelled_by=data["cancelled_by"],
            timestamp=parse_iso(data["timestamp"]),  # type: ignore[arg-type]
            refund_issued=bool(data.get("refund_issued", True)),
            refund_confirmed=bool(data.get("refund_confirmed", False)),
            refund_transaction_id=data.get("refund_transaction_id"),
            refund_confirmed_at=parse_iso(data.get("refund_confirmed_at")),
        )


@dataclass(frozen=True)
class PaymentInfo:
    amount: int  # cents
    currency: str
    status: str = "pending"  # pending / completed / refunded
    method: str = ""
    transaction_id: str | None = None
    paid_at: datetime | None = None
    refunded_at: datetime | None = None
    refund_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status,
            "method": self.method,
            "transaction_id": self.transaction_id,
            "paid_at": to_iso(self.paid_at),
            "refunded_at": to_iso(self.refunded_at),
            "refund_reason": self.refund_reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaymentInfo":
        return cls(
            amount=int(data["amount"]),
            currency=data["currency"],
            status=data.get("status", "pending"),
            method=data.get("method", ""),
            transaction_id=data.get("transaction_id"),
            paid_at=parse_iso(data.get("paid_at")),
            refunded_at=parse_iso(data.get("refunded_at")),
            refund_reason=data.get("refund_reason"),
        )


@dataclass
class Order:
    id: str
    order_number: str
    customer_id: str
    status: str = "pending"
    status_history: list[StatusHistoryEntry] = field(default_factory=list)
    # Participants (external catalogs)
    technician_id: str | None = None
    sub_contractor_id: str | None = None
    product_id: str | None = None
    service_id: str | None = None
    # Opaque snapshot: product/service names, address, installation slot, notes
    details: dict[str, Any] = field(default_factory=dict)
    payment: PaymentInfo | None = None
    cancellation: Cancellation | None = None
    # Lifecycle timestamps, each set at most once
    accepted_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def last_history_entry(self) -> StatusHistoryEntry | None:
        return self.status_history[-1] if self.status_history else None
