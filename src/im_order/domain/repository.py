# src/im_order/domain/repository.py
"""OrderRepository Protocol — interface contract for the Order Store.

The store merges partial field updates and bumps `version`; it never
interprets status legality (that is the lifecycle manager's job).
"""
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.im_order.domain.models import Order


class OrderRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, order: Order) -> Order: ...

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order | None: ...

    async def update_fields(
        self,
        db: AsyncSession,
        order_id: str,
        fields: dict[str, Any],
        expected_version: int | None = None,
    ) -> Order: ...

    async def list_all(
        self,
        db: AsyncSession,
        cursor_ts: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Order]: ...

    async def list_by_customer(
        self, db: AsyncSession, customer_id: str, limit: int
    ) -> list[Order]: ...

    async def list_available(
        self, db: AsyncSession, technician_id: str, limit: int
    ) -> list[Order]: ...

    async def list_by_technician(
        self,
        db: AsyncSession,
        technician_id: str,
        statuses: list[str] | None,
        limit: int,
    ) -> list[Order]: ...
