"""Shared test fixtures."""

import os

# Settings() requires JWT_SECRET; set it before anything imports config.settings
os.environ.setdefault("JWT_SECRET", "test-secret")

import uuid  # noqa: E402
from dataclasses import replace  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Any  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.exc import SQLAlchemyError  # noqa: E402

from src.im_common.datetime_utils import utc_now  # noqa: E402
from src.im_common.errors import OrderNotFoundError, OrderVersionConflictError  # noqa: E402
from src.im_history.domain.models import HistoryRecord, NewHistoryRecord  # noqa: E402
from src.im_ledger.domain.models import NewTransaction, TransactionRecord  # noqa: E402
from src.im_order.domain.models import Order  # noqa: E402
from src.main import app  # noqa: E402


class InMemoryOrderRepository:
    """OrderRepositoryProtocol backed by a dict, honouring expected_version."""

    def __init__(self) -> None:
        self.orders: dict[str, Order] = {}
        self.update_calls = 0
        # Number of upcoming updates that lose the race to a concurrent writer
        self.conflicts_remaining = 0
        self.update_error: Exception | None = None
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def seed(self, **kwargs: Any) -> Order:
        self._clock += timedelta(seconds=1)
        order = Order(
            id=kwargs.pop("id", str(uuid.uuid4())),
            order_number=kwargs.pop("order_number", "ORD-202601-0001"),
            customer_id=kwargs.pop("customer_id", "cust-1"),
            created_at=kwargs.pop("created_at", self._clock),
            **kwargs,
        )
        self.orders[order.id] = order
        return order

    async def insert(self, db: Any, order: Order) -> Order:
        self._clock += timedelta(seconds=1)
        stored = replace(
            order,
            id=str(uuid.uuid4()),
            version=0,
            created_at=self._clock,
            updated_at=self._clock,
        )
        self.orders[stored.id] = stored
        return stored

    async def get_by_id(self, db: Any, order_id: str) -> Order | None:
        order = self.orders.get(order_id)
        return replace(order) if order else None

    async def update_fields(
        self,
        db: Any,
        order_id: str,
        fields: dict[str, Any],
        expected_version: int | None = None,
    ) -> Order:
        self.update_calls += 1
        if self.update_error is not None:
            raise self.update_error
        current = self.orders.get(order_id)
        if current is None:
            raise OrderNotFoundError(order_id)
        if self.conflicts_remaining:
            self.conflicts_remaining -= 1
            self.orders[order_id] = replace(current, version=current.version + 1)
            raise OrderVersionConflictError(order_id)
        if expected_version is not None and expected_version != current.version:
            raise OrderVersionConflictError(order_id)
        updated = replace(current, **fields, version=current.version + 1, updated_at=utc_now())
        self.orders[order_id] = updated
        return replace(updated)

    async def list_all(
        self,
        db: Any,
        cursor_ts: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Order]:
        ordered = sorted(self.orders.values(), key=lambda o: (o.created_at, o.id), reverse=True)
        if cursor_ts is not None:
            ordered = [o for o in ordered if (o.created_at, o.id) < (cursor_ts, cursor_id)]
        return ordered[:limit]

    async def list_by_customer(self, db: Any, customer_id: str, limit: int) -> list[Order]:
        ordered = sorted(self.orders.values(), key=lambda o: (o.created_at, o.id), reverse=True)
        return [o for o in ordered if o.customer_id == customer_id][:limit]

    async def list_available(self, db: Any, technician_id: str, limit: int) -> list[Order]:
        ordered = sorted(self.orders.values(), key=lambda o: (o.created_at, o.id))
        return [
            o
            for o in ordered
            if o.status == "pending" and o.technician_id in (None, technician_id)
        ][:limit]

    async def list_by_technician(
        self, db: Any, technician_id: str, statuses: list[str] | None, limit: int
    ) -> list[Order]:
        ordered = sorted(self.orders.values(), key=lambda o: (o.created_at, o.id), reverse=True)
        return [
            o
            for o in ordered
            if o.technician_id == technician_id and (not statuses or o.status in statuses)
        ][:limit]


class InMemoryTransactionRepository:
    def __init__(self) -> None:
        self.records: list[TransactionRecord] = []
        self.fail = False
        # Ledger types whose append fails even when `fail` is off
        self.fail_types: set[str] = set()

    async def insert(self, db: Any, record: NewTransaction) -> TransactionRecord:
        if self.fail or record.type in self.fail_types:
            raise SQLAlchemyError("ledger unavailable")
        stored = TransactionRecord(
            id=len(self.records) + 1,
            timestamp=utc_now(),
            **record.__dict__,
        )
        self.records.append(stored)
        return stored

    async def list_recent(
        self, db: Any, limit: int, type_: str | None
    ) -> list[TransactionRecord]:
        rows = [r for r in reversed(self.records) if type_ is None or r.type == type_]
        return rows[:limit]

    async def list_by_order(self, db: Any, order_id: str) -> list[TransactionRecord]:
        return [r for r in self.records if r.order_id == order_id]

    def types(self) -> list[str]:
        return [r.type for r in self.records]


class InMemoryHistoryRepository:
    def __init__(self) -> None:
        self.records: list[HistoryRecord] = []
        self.fail = False

    async def insert(self, db: Any, record: NewHistoryRecord) -> HistoryRecord:
        if self.fail:
            raise SQLAlchemyError("history unavailable")
        stored = HistoryRecord(id=len(self.records) + 1, timestamp=utc_now(), **record.__dict__)
        self.records.append(stored)
        return stored

    async def list_for_customer(
        self, db: Any, customer_id: str, type_: str | None, limit: int
    ) -> list[HistoryRecord]:
        rows = [
            r
            for r in reversed(self.records)
            if r.customer_id == customer_id and (type_ is None or r.type == type_)
        ]
        return rows[:limit]


@pytest.fixture
def db() -> AsyncMock:
    """Session stand-in: commit/rollback are awaitable no-ops."""
    return AsyncMock()


@pytest.fixture
def order_repo() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def ledger_repo() -> InMemoryTransactionRepository:
    return InMemoryTransactionRepository()


@pytest.fixture
def history_repo() -> InMemoryHistoryRepository:
    return InMemoryHistoryRepository()


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
