"""003: create customer_history table

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE customer_history (
            id              BIGSERIAL       PRIMARY KEY,
            customer_id     VARCHAR(128)    NOT NULL,
            type            VARCHAR(30)     NOT NULL,
            title           VARCHAR(200)    NOT NULL,
            description     VARCHAR(1000)   NOT NULL,
            amount          BIGINT,
            currency        VARCHAR(3),
            order_id        VARCHAR(64),
            transaction_id  VARCHAR(128),
            metadata        JSONB           NOT NULL DEFAULT '{}'::jsonb,
            timestamp       TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_customer_history_type CHECK (
                type IN ('order_placed', 'payment_made', 'order_updated',
                         'service_completed', 'order_cancelled')
            )
        );
    """)
    op.execute("CREATE INDEX idx_customer_history_feed ON customer_history (customer_id, timestamp DESC);")
    op.execute("CREATE INDEX idx_customer_history_type ON customer_history (customer_id, type, timestamp DESC);")
    op.execute("""
        CREATE TRIGGER trg_customer_history_append_only
            BEFORE UPDATE OR DELETE ON customer_history
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute("COMMENT ON TABLE customer_history IS 'Customer activity feed — Append-Only';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS customer_history CASCADE;")
