"""TransactionRepository — raw SQL persistence for the append-only transactions table.

`timestamp` is assigned by the database (DEFAULT NOW()), never by the client,
so it is the ordering anchor for every ledger query.
"""
import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.im_ledger.domain.models import NewTransaction, TransactionRecord

_COLUMNS = """
    id, type, order_id, order_number, customer_id, technician_id,
    sub_contractor_id, amount, currency, metadata,
    performed_by, performed_by_role, timestamp
"""

_INSERT_TRANSACTION_SQL = text(f"""
    INSERT INTO transactions
        (type, order_id, order_number, customer_id, technician_id,
         sub_contractor_id, amount, currency, metadata,
         performed_by, performed_by_role)
    VALUES
        (:type, :order_id, :order_number, :customer_id, :technician_id,
         :sub_contractor_id, :amount, :currency, CAST(:metadata AS JSONB),
         :performed_by, :performed_by_role)
    RETURNING {_COLUMNS}
""")

_LIST_RECENT_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM transactions
    WHERE (CAST(:type AS TEXT) IS NULL OR type = :type)
    ORDER BY timestamp DESC, id DESC
    LIMIT :limit
""")

_LIST_BY_ORDER_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM transactions
    WHERE order_id = :order_id
    ORDER BY timestamp ASC, id ASC
""")


def _row_to_record(row: Any) -> TransactionRecord:
    metadata = row.metadata
    if isinstance(metadata, (str, bytes)):
        metadata = json.loads(metadata)
    return TransactionRecord(
        id=row.id,
        type=row.type,
        order_id=row.order_id,
        order_number=row.order_number,
        customer_id=row.customer_id,
        technician_id=row.technician_id,
        sub_contractor_id=row.sub_contractor_id,
        amount=row.amount,
        currency=row.currency,
        metadata=metadata or {},
        performed_by=row.performed_by,
        performed_by_role=row.performed_by_role,
        timestamp=row.timestamp,
    )


class TransactionRepository:
    """Concrete implementation of TransactionRepositoryProtocol."""

    async def insert(self, db: AsyncSession, record: NewTransaction) -> TransactionRecord:
        result = await db.execute(
            _INSERT_TRANSACTION_SQL,
            {
                "type": record.type,
                "order_id": record.order_id,
                "order_number": record.order_number,
                "customer_id": record.customer_id,
                "technician_id": record.technician_id,
                "sub_contractor_id": record.sub_contractor_id,
                "amount": record.amount,
                "currency": record.currency,
                "metadata": json.dumps(record.metadata),
                "performed_by": record.performed_by,
                "performed_by_role": record.performed_by_role,
            },
        )
        return _row_to_record(result.fetchone())

    async def list_recent(
        self, db: AsyncSession, limit: int, type_: str | None
    ) -> list[TransactionRecord]:
        result = await db.execute(_LIST_RECENT_SQL, {"type": type_, "limit": limit})
        return [_row_to_record(row) for row in result.fetchall()]

    async def list_by_order(self, db: AsyncSession, order_id: str) -> list[TransactionRecord]:
        result = await db.execute(_LIST_BY_ORDER_SQL, {"order_id": order_id})
        return [_row_to_record(row) for row in result.fetchall()]
