"""LedgerWriter — appends immutable transaction records and serves ledger queries.

Each append runs in its own commit: a ledger write never shares a
transaction with the order update it describes.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.im_common.errors import PersistenceError
from src.im_ledger.domain.models import NewTransaction, TransactionRecord
from src.im_ledger.domain.repository import TransactionRepositoryProtocol
from src.im_ledger.infrastructure.persistence import TransactionRepository

logger = logging.getLogger(__name__)


class LedgerWriter:
    def __init__(self, repo: TransactionRepositoryProtocol | None = None) -> None:
        self._repo: TransactionRepositoryProtocol = repo or TransactionRepository()

    async def append(self, db: AsyncSession, record: NewTransaction) -> int:
        """Insert and commit one ledger record; return its id."""
        try:
            stored = await self._repo.insert(db, record)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error(
                "Ledger append failed: type=%s order=%s: %s", record.type, record.order_id, exc
            )
            raise PersistenceError(f"Ledger append failed for {record.type}") from exc
        logger.debug("Ledger append: id=%s type=%s order=%s", stored.id, stored.type, stored.order_id)
        return stored.id

    async def list_recent(
        self, db: AsyncSession, limit: int = 100, type_: str | None = None
    ) -> list[TransactionRecord]:
        return await self._repo.list_recent(db, limit, type_)

    async def list_by_order(self, db: AsyncSession, order_id: str) -> list[TransactionRecord]:
        return await self._repo.list_by_order(db, order_id)
