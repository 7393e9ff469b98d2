"""OrderLifecycleManager — the only component allowed to change an order's status.

One transition = one versioned order write + one ledger append + hooks:

  1. validate the requested status (InvalidStatusError, nothing written)
  2. read the order (OrderNotFoundError) and check the transition table
  3. append a status_history entry, set status, stamp the lifecycle
     timestamp if it is still unset, merge caller-supplied extra fields
  4. UPDATE ... WHERE version = :read_version, commit
     (on a version conflict: roll back, re-read, retry)
  5. append `order_<status>` to the ledger in its own commit
  6. run registered transition hooks (customer history, notifications)

Steps 5-6 happen after the order commit and are all attempted even when
one of them fails. The order change stays committed; PartialFailureError
is raised afterwards listing every write a reconciliation job must replay.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.im_common.datetime_utils import utc_now
from src.im_common.enums import ActorRole, OrderStatus, status_transaction_type
from src.im_common.errors import (
    AppError,
    MissedWrite,
    OrderNotFoundError,
    OrderVersionConflictError,
    PartialFailureError,
    PersistenceError,
)
from src.im_ledger.application.service import LedgerWriter
from src.im_ledger.domain.models import NewTransaction
from src.im_order.domain.events import StatusTransition, TransitionHook
from src.im_order.domain.models import Order, StatusHistoryEntry
from src.im_order.domain.repository import OrderRepositoryProtocol
from src.im_order.domain.state_machine import (
    LIFECYCLE_TIMESTAMP_FIELDS,
    ensure_transition_allowed,
    parse_status,
)
from src.im_order.infrastructure.persistence import OrderRepository

logger = logging.getLogger(__name__)

# Called with the freshly read order and the transition timestamp
ExtraFields = Callable[[Order, datetime], dict[str, Any]]


@dataclass(frozen=True)
class TransitionResult:
    order: Order
    previous_status: str
    ledger_transaction_id: int | None
    missed: tuple[MissedWrite, ...] = ()


def resolve_actor(actor_id: str | None, actor_role: str | None) -> tuple[str, str]:
    """Return (performed_by, performed_by_role) for ledger attribution."""
    if actor_id is None:
        return "system", actor_role or ActorRole.SYSTEM.value
    return actor_id, actor_role or settings.DEFAULT_ACTOR_ROLE


def _hook_name(hook: TransitionHook) -> str:
    return getattr(hook, "__name__", type(hook).__name__)


class OrderLifecycleManager:
    def __init__(
        self,
        repo: OrderRepositoryProtocol | None = None,
        ledger: LedgerWriter | None = None,
        hooks: Iterable[TransitionHook] | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self._repo: OrderRepositoryProtocol = repo or OrderRepository()
        self._ledger = ledger or LedgerWriter()
        self._hooks: list[TransitionHook] = list(hooks or [])
        self._max_attempts = max_attempts or settings.ORDER_TRANSITION_MAX_ATTEMPTS

    @property
    def ledger(self) -> LedgerWriter:
        return self._ledger

    def add_hook(self, hook: TransitionHook) -> None:
        self._hooks.append(hook)

    async def get_order(self, db: AsyncSession, order_id: str) -> Order:
        try:
            order = await self._repo.get_by_id(db, order_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read order {order_id}") from exc
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def transition_status(
        self,
        db: AsyncSession,
        order_id: str,
        new_status: OrderStatus | str,
        note: str | None = None,
        actor_id: str | None = None,
        actor_role: str | None = None,
        extra_fields: ExtraFields | None = None,
    ) -> TransitionResult:
        result = await self.apply_transition(
            db, order_id, new_status, note, actor_id, actor_role, extra_fields
        )
        if result.missed:
            raise PartialFailureError(result.order.id, result.missed)
        return result

    async def apply_transition(
        self,
        db: AsyncSession,
        order_id: str,
        new_status: OrderStatus | str,
        note: str | None = None,
        actor_id: str | None = None,
        actor_role: str | None = None,
        extra_fields: ExtraFields | None = None,
    ) -> TransitionResult:
        """Same as transition_status, but report missed writes instead of raising.

        For callers that append their own ledger records after the transition
        and raise once, with every missed write listed.
        """
        status = parse_status(new_status)
        performed_by, role = resolve_actor(actor_id, actor_role)

        previous_status, order, occurred_at = await self._commit_transition(
            db, order_id, status, note or "", performed_by, extra_fields
        )

        ledger_type = status_transaction_type(status)
        record = NewTransaction(
            type=ledger_type,
            order_id=order.id,
            order_number=order.order_number,
            customer_id=order.customer_id,
            technician_id=order.technician_id,
            sub_contractor_id=order.sub_contractor_id,
            # Key names are shared with existing ledger readers
            metadata={
                "previousStatus": previous_status,
                "newStatus": status.value,
                "note": note,
            },
            performed_by=performed_by,
            performed_by_role=role,
        )
        missed: list[MissedWrite] = []
        transaction_id, failure = await self.append_ledger(db, record)
        if failure is not None:
            missed.append(failure)

        event = StatusTransition(
            order=order,
            previous_status=previous_status,
            new_status=status.value,
            note=note or "",
            actor_id=performed_by,
            actor_role=role,
            occurred_at=occurred_at,
            ledger_transaction_id=transaction_id,
        )
        # Hooks run even when the ledger append failed
        missed.extend(await self._run_hooks(db, event))
        return TransitionResult(
            order=order,
            previous_status=previous_status,
            ledger_transaction_id=transaction_id,
            missed=tuple(missed),
        )

    async def append_ledger(
        self, db: AsyncSession, record: NewTransaction
    ) -> tuple[int | None, MissedWrite | None]:
        """Append one ledger record after an order commit; never raises PersistenceError."""
        try:
            return await self._ledger.append(db, record), None
        except PersistenceError as exc:
            logger.warning(
                "Partial failure: order %s changed but ledger %s was not written",
                record.order_id,
                record.type,
            )
            return None, MissedWrite("ledger", record.type, exc.message)

    async def _commit_transition(
        self,
        db: AsyncSession,
        order_id: str,
        status: OrderStatus,
        note: str,
        changed_by: str,
        extra_fields: ExtraFields | None,
    ) -> tuple[str, Order, datetime]:
        for attempt in range(1, self._max_attempts + 1):
            current = await self.get_order(db, order_id)
            ensure_transition_allowed(order_id, current.status, status)
            now, fields = self._build_fields(current, status, note, changed_by, extra_fields)
            try:
                updated = await self._repo.update_fields(
                    db, order_id, fields, expected_version=current.version
                )
                await db.commit()
            except OrderVersionConflictError:
                await db.rollback()
                logger.info(
                    "Version conflict on order %s (attempt %d/%d), re-reading",
                    order_id,
                    attempt,
                    self._max_attempts,
                )
                continue
            except OrderNotFoundError:
                await db.rollback()
                raise
            except SQLAlchemyError as exc:
                await db.rollback()
                raise PersistenceError(f"Order update failed for {order_id}") from exc

            logger.info(
                "Order %s: %s -> %s by %s (v%d)",
                order_id,
                current.status,
                status.value,
                changed_by,
                updated.version,
            )
            return current.status, updated, now

        raise OrderVersionConflictError(order_id)

    @staticmethod
    def _build_fields(
        order: Order,
        status: OrderStatus,
        note: str,
        changed_by: str,
        extra_fields: ExtraFields | None,
    ) -> tuple[datetime, dict[str, Any]]:
        now = utc_now()
        last = order.last_history_entry
        # History timestamps never go backwards, even across clock skew
        if last is not None and last.timestamp > now:
            now = last.timestamp

        entry = StatusHistoryEntry(status=status.value, timestamp=now, note=note, changed_by=changed_by)
        fields: dict[str, Any] = {
            "status": status.value,
            "status_history": [*order.status_history, entry],
        }
        stamp_field = LIFECYCLE_TIMESTAMP_FIELDS.get(status)
        if stamp_field is not None and getattr(order, stamp_field) is None:
            fields[stamp_field] = now
        if extra_fields is not None:
            fields.update(extra_fields(order, now))
        return now, fields

    async def _run_hooks(self, db: AsyncSession, event: StatusTransition) -> list[MissedWrite]:
        missed: list[MissedWrite] = []
        for hook in self._hooks:
            try:
                await hook(db, event)
            except SQLAlchemyError as exc:
                await db.rollback()
                self._log_hook_failure(hook, event)
                missed.append(MissedWrite("hook", _hook_name(hook), str(exc)))
            except AppError as exc:
                self._log_hook_failure(hook, event)
                missed.append(MissedWrite("hook", _hook_name(hook), exc.message))
        return missed

    @staticmethod
    def _log_hook_failure(hook: TransitionHook, event: StatusTransition) -> None:
        logger.warning(
            "Partial failure: order %s is %s but hook %s failed",
            event.order.id,
            event.new_status,
            _hook_name(hook),
        )
