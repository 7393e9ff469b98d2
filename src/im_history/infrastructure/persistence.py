"""HistoryRepository — raw SQL persistence for the customer_history table."""
import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.im_history.domain.models import HistoryRecord, NewHistoryRecord

_COLUMNS = """
    id, customer_id, type, title, description, amount, currency,
    order_id, transaction_id, metadata, timestamp
"""

_INSERT_HISTORY_SQL = text(f"""
    INSERT INTO customer_history
        (customer_id, type, title, description, amount, currency,
         order_id, transaction_id, metadata)
    VALUES
        (:customer_id, :type, :title, :description, :amount, :currency,
         :order_id, :transaction_id, CAST(:metadata AS JSONB))
    RETURNING {_COLUMNS}
""")

_LIST_FOR_CUSTOMER_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM customer_history
    WHERE customer_id = :customer_id
      AND (CAST(:type AS TEXT) IS NULL OR type = :type)
    ORDER BY timestamp DESC, id DESC
    LIMIT :limit
""")


def _row_to_record(row: Any) -> HistoryRecord:
    metadata = row.metadata
    if isinstance(metadata, (str, bytes)):
        metadata = json.loads(metadata)
    return HistoryRecord(
        id=row.id,
        customer_id=row.customer_id,
        type=row.type,
        title=row.title,
        description=row.description,
        amount=row.amount,
        currency=row.currency,
        order_id=row.order_id,
        transaction_id=row.transaction_id,
        metadata=metadata or {},
        timestamp=row.timestamp,
    )


class HistoryRepository:
    async def insert(self, db: AsyncSession, record: NewHistoryRecord) -> HistoryRecord:
        result = await db.execute(
            _INSERT_HISTORY_SQL,
            {
                "customer_id": record.customer_id,
                "type": record.type,
                "title": record.title,
                "description": record.description,
                "amount": record.amount,
                "currency": record.currency,
                "order_id": record.order_id,
                "transaction_id": record.transaction_id,
                "metadata": json.dumps(record.metadata),
            },
        )
        return _row_to_record(result.fetchone())

    async def list_for_customer(
        self, db: AsyncSession, customer_id: str, type_: str | None, limit: int
    ) -> list[HistoryRecord]:
        result = await db.execute(
            _LIST_FOR_CUSTOMER_SQL,
            {"customer_id": customer_id, "type": type_, "limit": limit},
        )
        return [_row_to_record(row) for row in result.fetchall()]
