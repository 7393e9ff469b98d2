"""Order status transition table.

    pending -> accepted -> in_progress -> completed
       \\-> cancelled (from any non-terminal status)
    completed / cancelled -> refunded

Non-terminal statuses may move to any status, including themselves: the
business rules for backward moves between them are not defined, so they are
not rejected. Only moves out of terminal statuses are illegal.
"""

from src.im_common.enums import OrderStatus
from src.im_common.errors import InvalidStatusError, InvalidTransitionError

_ALL = frozenset(OrderStatus)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: _ALL,
    OrderStatus.ACCEPTED: _ALL,
    OrderStatus.IN_PROGRESS: _ALL,
    OrderStatus.COMPLETED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.REFUNDED: frozenset(),
}

# Status -> Order attribute stamped the first time the status is reached
LIFECYCLE_TIMESTAMP_FIELDS: dict[OrderStatus, str] = {
    OrderStatus.ACCEPTED: "accepted_at",
    OrderStatus.IN_PROGRESS: "started_at",
    OrderStatus.COMPLETED: "completed_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


def parse_status(value: object) -> OrderStatus:
    """Coerce a raw value into an OrderStatus or raise InvalidStatusError."""
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidStatusError(value) from None


def is_terminal(status: OrderStatus) -> bool:
    return OrderStatus.PENDING not in ALLOWED_TRANSITIONS[status]


def ensure_transition_allowed(order_id: str, current: str, requested: OrderStatus) -> None:
    # Unknown stored statuses are treated as non-terminal
    try:
        allowed = ALLOWED_TRANSITIONS[OrderStatus(current)]
    except ValueError:
        return
    if requested not in allowed:
        raise InvalidTransitionError(order_id, current, requested.value)
