"""Domain events emitted by the order lifecycle manager.

Hooks receive a StatusTransition after the order update is committed and
its ledger append attempted. Customer-facing side effects (activity feed,
notifications) are registered as hooks rather than built into the manager.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.im_order.domain.models import Order


@dataclass(frozen=True)
class StatusTransition:
    order: Order                 # state after the update
    previous_status: str
    new_status: str
    note: str
    actor_id: str
    actor_role: str
    occurred_at: datetime
    ledger_transaction_id: int | None  # None when the ledger append failed


TransitionHook = Callable[[AsyncSession, StatusTransition], Awaitable[None]]
