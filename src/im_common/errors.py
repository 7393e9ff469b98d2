"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/Actor
  4xxx: Order lifecycle
  6xxx: Payment
  9xxx: System
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth/Actor ---

class InvalidTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Invalid or expired token", 401)


class ForbiddenError(AppError):
    def __init__(self, role: str) -> None:
        super().__init__(1002, f"Role '{role}' is not allowed to perform this action", 403)


# --- 4xxx: Order ---

class OrderNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(4001, f"Order not found: {order_id}", 404)


class InvalidStatusError(AppError):
    def __init__(self, status: object) -> None:
        super().__init__(4002, f"Invalid order status: {status!r}", 422)


class InvalidTransitionError(AppError):
    def __init__(self, order_id: str, current: str, requested: str) -> None:
        super().__init__(
            4003,
            f"Order {order_id} cannot move from {current} to {requested}",
            409,
        )


class OrderVersionConflictError(AppError):
    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(4004, f"Order {order_id} was modified concurrently", 409)


class InvalidCancellationError(AppError):
    def __init__(self, cancelled_by: object) -> None:
        super().__init__(4005, f"Invalid cancelled_by value: {cancelled_by!r}", 422)


class RefundNotRequestedError(AppError):
    def __init__(self, order_id: str, detail: str) -> None:
        super().__init__(4006, f"Order {order_id} has no refund to confirm: {detail}", 422)


class RefundAlreadyConfirmedError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4007, f"Refund for order {order_id} is already confirmed", 409)


class JobAlreadyClaimedError(AppError):
    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(4008, f"Order {order_id} has already been accepted", 409)


# --- 6xxx: Payment ---

class PaymentFailedError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(6001, f"Payment provider error: {detail}", 502)


# --- 9xxx: System ---

class PersistenceError(AppError):
    def __init__(self, detail: str = "Storage operation failed") -> None:
        super().__init__(9001, detail, 503)


@dataclass(frozen=True)
class MissedWrite:
    """One dependent write that did not land after an order change committed."""

    stage: str      # "ledger" | "history" | "hook"
    attempted: str  # ledger type, history type or hook name
    detail: str = ""


class PartialFailureError(AppError):
    """The order change committed but one or more dependent writes did not.

    The committed order change is NOT rolled back. Every dependent write is
    attempted before this is raised, so `context` lists all of the writes a
    reconciliation job has to replay.
    """

    def __init__(self, order_id: str, missed: Sequence[MissedWrite]) -> None:
        if not missed:
            raise ValueError("PartialFailureError needs at least one missed write")
        self.order_id = order_id
        self.missed = list(missed)
        summary = ", ".join(f"{m.stage} '{m.attempted}'" for m in self.missed)
        details = "; ".join(m.detail for m in self.missed if m.detail)
        message = f"Order {order_id} updated but {summary} failed"
        if details:
            message = f"{message}: {details}"
        super().__init__(9002, message, 207)

    @property
    def attempted(self) -> str:
        return self.missed[0].attempted

    @property
    def stage(self) -> str:
        return self.missed[0].stage

    @property
    def context(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "missing": [{"stage": m.stage, "attempted": m.attempted} for m in self.missed],
        }


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9003, detail, 500)
