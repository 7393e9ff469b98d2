"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class CancelledBy(str, Enum):
    CUSTOMER = "customer"
    INSTALLER = "installer"
    ADMIN = "admin"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    REFUNDED = "refunded"


class ActorRole(str, Enum):
    CUSTOMER = "customer"
    INSTALLER = "installer"
    ADMIN = "admin"
    SYSTEM = "system"


class TransactionType(str, Enum):
    """Ledger entry types written outside the status-transition path.

    Status transitions write `order_<status>` (see status_transaction_type),
    so the ledger column is NOT constrained to this enum.
    """
    ORDER_CREATED = "order_created"
    PAYMENT_RECEIVED = "payment_received"
    REFUND_ISSUED = "refund_issued"
    INSTALLER_ASSIGNED = "installer_assigned"


class HistoryRecordType(str, Enum):
    ORDER_PLACED = "order_placed"
    PAYMENT_MADE = "payment_made"
    ORDER_UPDATED = "order_updated"
    SERVICE_COMPLETED = "service_completed"
    ORDER_CANCELLED = "order_cancelled"


def status_transaction_type(status: OrderStatus | str) -> str:
    """Ledger tag for a status change: accepted -> 'order_accepted'."""
    value = status.value if isinstance(status, OrderStatus) else status
    return f"order_{value}"
