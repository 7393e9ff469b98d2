"""HistoryRepository Protocol — append-only like the ledger."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.im_history.domain.models import HistoryRecord, NewHistoryRecord


class HistoryRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, record: NewHistoryRecord) -> HistoryRecord: ...

    async def list_for_customer(
        self, db: AsyncSession, customer_id: str, type_: str | None, limit: int
    ) -> list[HistoryRecord]: ...
