"""001: create orders table

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                  UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            order_number        VARCHAR(20)     NOT NULL,
            customer_id         VARCHAR(128)    NOT NULL,
            technician_id       VARCHAR(128),
            sub_contractor_id   VARCHAR(128),
            product_id          VARCHAR(128),
            service_id          VARCHAR(128),
            status              VARCHAR(20)     NOT NULL DEFAULT 'pending',
            status_history      JSONB           NOT NULL DEFAULT '[]'::jsonb,
            details             JSONB           NOT NULL DEFAULT '{}'::jsonb,
            payment             JSONB,
            cancellation        JSONB,
            accepted_at         TIMESTAMPTZ,
            started_at          TIMESTAMPTZ,
            completed_at        TIMESTAMPTZ,
            cancelled_at        TIMESTAMPTZ,
            version             INT             NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_orders_status CHECK (
                status IN ('pending', 'accepted', 'in_progress', 'completed', 'cancelled', 'refunded')
            ),
            CONSTRAINT ck_orders_version_gte_0 CHECK (version >= 0),
            CONSTRAINT ck_orders_history_is_array CHECK (jsonb_typeof(status_history) = 'array')
        );
    """)
    op.execute("CREATE INDEX idx_orders_created ON orders (created_at DESC, id DESC);")
    op.execute("CREATE INDEX idx_orders_customer ON orders (customer_id, created_at DESC);")
    op.execute("CREATE INDEX idx_orders_technician ON orders (technician_id) WHERE technician_id IS NOT NULL;")
    # order_number is cosmetic: indexed for lookup, deliberately NOT unique
    op.execute("CREATE INDEX idx_orders_order_number ON orders (order_number);")
    op.execute("COMMENT ON TABLE orders IS 'Installation orders — version column guards concurrent transitions';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
