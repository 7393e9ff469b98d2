"""HistoryWriter — appends customer-facing activity records and reads them back."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.im_common.enums import HistoryRecordType
from src.im_common.errors import PersistenceError
from src.im_history.domain.models import HistoryRecord, NewHistoryRecord
from src.im_history.domain.repository import HistoryRepositoryProtocol
from src.im_history.infrastructure.persistence import HistoryRepository

logger = logging.getLogger(__name__)


class HistoryWriter:
    def __init__(self, repo: HistoryRepositoryProtocol | None = None) -> None:
        self._repo: HistoryRepositoryProtocol = repo or HistoryRepository()

    async def append(self, db: AsyncSession, record: NewHistoryRecord) -> int:
        try:
            stored = await self._repo.insert(db, record)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error(
                "History append failed: type=%s customer=%s: %s",
                record.type,
                record.customer_id,
                exc,
            )
            raise PersistenceError(f"Customer history append failed for {record.type}") from exc
        return stored.id

    async def list_for_customer(
        self,
        db: AsyncSession,
        customer_id: str,
        type_: str | None = None,
        limit: int = 100,
    ) -> list[HistoryRecord]:
        return await self._repo.list_for_customer(db, customer_id, type_, limit)

    async def payment_history(self, db: AsyncSession, customer_id: str) -> list[HistoryRecord]:
        return await self.list_for_customer(db, customer_id, HistoryRecordType.PAYMENT_MADE.value)

    async def order_history(self, db: AsyncSession, customer_id: str) -> list[HistoryRecord]:
        return await self.list_for_customer(db, customer_id, HistoryRecordType.ORDER_PLACED.value)
