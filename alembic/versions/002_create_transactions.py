"""002: create transactions (ledger) table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_reject_mutation()
        RETURNS TRIGGER AS $$
        BEGIN
            RAISE EXCEPTION '% is append-only: % rejected', TG_TABLE_NAME, TG_OP;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TABLE transactions (
            id                  BIGSERIAL       PRIMARY KEY,
            type                VARCHAR(40)     NOT NULL,
            order_id            VARCHAR(64),
            order_number        VARCHAR(20),
            customer_id         VARCHAR(128),
            technician_id       VARCHAR(128),
            sub_contractor_id   VARCHAR(128),
            amount              BIGINT,
            currency            VARCHAR(3),
            metadata            JSONB           NOT NULL DEFAULT '{}'::jsonb,
            performed_by        VARCHAR(128)    NOT NULL,
            performed_by_role   VARCHAR(20)     NOT NULL,
            timestamp           TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_transactions_time ON transactions (timestamp DESC);")
    op.execute("CREATE INDEX idx_transactions_type_time ON transactions (type, timestamp DESC);")
    op.execute("CREATE INDEX idx_transactions_order ON transactions (order_id, timestamp) WHERE order_id IS NOT NULL;")
    op.execute("""
        CREATE TRIGGER trg_transactions_append_only
            BEFORE UPDATE OR DELETE ON transactions
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute("COMMENT ON TABLE transactions IS 'Audit ledger — Append-Only, never updated or deleted';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
