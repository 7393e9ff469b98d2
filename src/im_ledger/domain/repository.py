"""TransactionRepository Protocol — append and read only, by construction.

No update or delete method exists: corrections are new
compensating records.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.im_ledger.domain.models import NewTransaction, TransactionRecord


class TransactionRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, record: NewTransaction) -> TransactionRecord: ...

    async def list_recent(
        self, db: AsyncSession, limit: int, type_: str | None
    ) -> list[TransactionRecord]: ...

    async def list_by_order(self, db: AsyncSession, order_id: str) -> list[TransactionRecord]: ...
