# src/im_order/infrastructure/persistence.py
"""OrderRepository — raw SQL persistence implementation of the Order Store.

Partial updates are merged column-by-column and always bump `version`.
When `expected_version` is given the UPDATE is conditional on it, so two
writers that read the same version cannot both commit (optimistic locking).

Transaction ownership: the CALLER commits or rolls back.
"""
import json
import uuid
from dataclasses import is_dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import TextClause, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.im_common.errors import OrderNotFoundError, OrderVersionConflictError
from src.im_order.domain.models import Cancellation, Order, PaymentInfo, StatusHistoryEntry

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_COLUMNS = """
    id, order_number, customer_id, technician_id, sub_contractor_id,
    product_id, service_id, status, status_history, details, payment,
    cancellation, accepted_at, started_at, completed_at, cancelled_at,
    version, created_at, updated_at
"""

_INSERT_ORDER_SQL = text(f"""
    INSERT INTO orders (order_number, customer_id, technician_id, sub_contractor_id,
        product_id, service_id, status, status_history, details, payment)
    VALUES (:order_number, :customer_id, :technician_id, :sub_contractor_id,
        :product_id, :service_id, :status,
        CAST(:status_history AS JSONB), CAST(:details AS JSONB), CAST(:payment AS JSONB))
    RETURNING {_SELECT_COLUMNS}
""")

_GET_ORDER_BY_ID_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = CAST(:id AS UUID)
""")

_ORDER_EXISTS_SQL = text("""
    SELECT 1 FROM orders WHERE id = CAST(:id AS UUID)
""")

_LIST_ORDERS_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE (
        CAST(:cursor_ts AS TIMESTAMPTZ) IS NULL
        OR created_at < CAST(:cursor_ts AS TIMESTAMPTZ)
        OR (
            created_at = CAST(:cursor_ts AS TIMESTAMPTZ)
            AND CAST(id AS TEXT) < CAST(:cursor_id AS TEXT)
        )
    )
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

_LIST_BY_CUSTOMER_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE customer_id = :customer_id
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

# Unclaimed pending orders plus pending orders already assigned to this installer
_LIST_AVAILABLE_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE status = 'pending'
      AND (technician_id IS NULL OR technician_id = :technician_id)
    ORDER BY created_at ASC, id ASC
    LIMIT :limit
""")

_LIST_BY_TECHNICIAN_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE technician_id = :technician_id
      AND (CAST(:statuses AS TEXT[]) IS NULL OR status = ANY(CAST(:statuses AS TEXT[])))
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")


# Column name -> stored as JSONB. Anything outside this map is not writable.
_UPDATABLE_COLUMNS: dict[str, bool] = {
    "status": False,
    "status_history": True,
    "technician_id": False,
    "sub_contractor_id": False,
    "details": True,
    "payment": True,
    "cancellation": True,
    "accepted_at": False,
    "started_at": False,
    "completed_at": False,
    "cancelled_at": False,
}


def _is_order_id(order_id: str) -> bool:
    try:
        uuid.UUID(order_id)
    except (TypeError, ValueError, AttributeError):
        return False
    return True


def _build_update_sql(columns: list[str], check_version: bool) -> TextClause:
    assignments = [
        f"{col} = CAST(:{col} AS JSONB)" if _UPDATABLE_COLUMNS[col] else f"{col} = :{col}"
        for col in columns
    ]
    assignments += ["version = version + 1", "updated_at = NOW()"]
    where = "id = CAST(:id AS UUID)"
    if check_version:
        where += " AND version = :expected_version"
    return text(f"""
        UPDATE orders
        SET {", ".join(assignments)}
        WHERE {where}
        RETURNING {_SELECT_COLUMNS}
    """)


# ---------------------------------------------------------------------------
# JSONB (de)serialisation
# ---------------------------------------------------------------------------


def _to_jsonable(value: Any) -> Any:
    if value is None:
        return None
    if is_dataclass(value) and hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _dump_json(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(_to_jsonable(value))


def _load_json(value: Any) -> Any:
    """asyncpg hands back JSONB from text() queries as str."""
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_order(row: Any) -> Order:
    """Convert a DB result row to an Order domain object."""
    history = _load_json(row.status_history) or []
    payment = _load_json(row.payment)
    cancellation = _load_json(row.cancellation)
    return Order(
        id=str(row.id),
        order_number=row.order_number,
        customer_id=row.customer_id,
        technician_id=row.technician_id,
        sub_contractor_id=row.sub_contractor_id,
        product_id=row.product_id,
        service_id=row.service_id,
        status=row.status,
        status_history=[StatusHistoryEntry.from_dict(h) for h in history],
        details=_load_json(row.details) or {},
        payment=PaymentInfo.from_dict(payment) if payment else None,
        cancellation=Cancellation.from_dict(cancellation) if cancellation else None,
        accepted_at=row.accepted_at,
        started_at=row.started_at,
        completed_at=row.completed_at,
        cancelled_at=row.cancelled_at,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrderRepository:
    """Concrete implementation of OrderRepositoryProtocol using raw SQL."""

    async def insert(self, db: AsyncSession, order: Order) -> Order:
        result = await db.execute(
            _INSERT_ORDER_SQL,
            {
                "order_number": order.order_number,
                "customer_id": order.customer_id,
                "technician_id": order.technician_id,
                "sub_contractor_id": order.sub_contractor_id,
                "product_id": order.product_id,
                "service_id": order.service_id,
                "status": order.status,
                "status_history": _dump_json(order.status_history),
                "details": _dump_json(order.details),
                "payment": _dump_json(order.payment),
            },
        )
        return _row_to_order(result.fetchone())

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order | None:
        # A malformed id cannot match any row; asking Postgres would raise on the CAST
        if not _is_order_id(order_id):
            return None
        result = await db.execute(_GET_ORDER_BY_ID_SQL, {"id": order_id})
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def update_fields(
        self,
        db: AsyncSession,
        order_id: str,
        fields: dict[str, Any],
        expected_version: int | None = None,
    ) -> Order:
        if not _is_order_id(order_id):
            raise OrderNotFoundError(order_id)
        unknown = set(fields) - set(_UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)}")
        columns = sorted(fields)
        params: dict[str, Any] = {"id": order_id}
        for col in columns:
            params[col] = _dump_json(fields[col]) if _UPDATABLE_COLUMNS[col] else fields[col]
        if expected_version is not None:
            params["expected_version"] = expected_version

        result = await db.execute(
            _build_update_sql(columns, expected_version is not None), params
        )
        row = result.fetchone()
        if row is not None:
            return _row_to_order(row)

        # 0 rows: either the order is gone or someone else bumped the version
        exists = await db.execute(_ORDER_EXISTS_SQL, {"id": order_id})
        if exists.fetchone() is None:
            raise OrderNotFoundError(order_id)
        raise OrderVersionConflictError(order_id)

    async def list_all(
        self,
        db: AsyncSession,
        cursor_ts: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Order]:
        result = await db.execute(
            _LIST_ORDERS_SQL,
            {"cursor_ts": cursor_ts, "cursor_id": cursor_id, "limit": limit},
        )
        return [_row_to_order(row) for row in result.fetchall()]

    async def list_by_customer(
        self, db: AsyncSession, customer_id: str, limit: int
    ) -> list[Order]:
        result = await db.execute(
            _LIST_BY_CUSTOMER_SQL, {"customer_id": customer_id, "limit": limit}
        )
        return [_row_to_order(row) for row in result.fetchall()]

    async def list_available(
        self, db: AsyncSession, technician_id: str, limit: int
    ) -> list[Order]:
        result = await db.execute(
            _LIST_AVAILABLE_SQL, {"technician_id": technician_id, "limit": limit}
        )
        return [_row_to_order(row) for row in result.fetchall()]

    async def list_by_technician(
        self,
        db: AsyncSession,
        technician_id: str,
        statuses: list[str] | None,
        limit: int,
    ) -> list[Order]:
        result = await db.execute(
            _LIST_BY_TECHNICIAN_SQL,
            {"technician_id": technician_id, "statuses": statuses or None, "limit": limit},
        )
        return [_row_to_order(row) for row in result.fetchall()]
