"""003: create transactions and webhook_logs

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
        CREATE TABLE transactions (
            id                          UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id                     VARCHAR(64)     NOT NULL,
            asset_id                    UUID            NOT NULL REFERENCES assets(id),
            kind                        VARCHAR(20)     NOT NULL,
            amount                      NUMERIC(36, 18) NOT NULL,
            credited_amount             NUMERIC(36, 18) NOT NULL DEFAULT 0,
            locked_amount               NUMERIC(36, 18) NOT NULL DEFAULT 0,
            status                      VARCHAR(20)     NOT NULL DEFAULT 'pending',
            external_correlation_key    VARCHAR(255),
            notes                       TEXT,
            created_at                  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            completed_at                TIMESTAMPTZ,
            CONSTRAINT uq_transactions_correlation_key UNIQUE (external_correlation_key),
            CONSTRAINT ck_transactions_kind   CHECK (kind IN ('deposit', 'withdrawal', 'transfer')),
            CONSTRAINT ck_transactions_status CHECK (status IN ('pending', 'completed', 'failed')),
            CONSTRAINT ck_transactions_amount_gte_0 CHECK (amount >= 0),
            CONSTRAINT ck_transactions_completed_at CHECK (
                (status = 'completed') = (completed_at IS NOT NULL)
            )
        );
    """)
    op.execute("CREATE INDEX idx_transactions_user ON transactions (user_id, created_at DESC);")
    op.execute("""
        CREATE INDEX idx_transactions_pending
        ON transactions (created_at)
        WHERE status = 'pending';
    """)

    op.execute("""
        CREATE TABLE webhook_logs (
            id               BIGSERIAL    PRIMARY KEY,
            provider         VARCHAR(20)  NOT NULL,
            correlation_key  VARCHAR(255),
            payload          JSONB        NOT NULL,
            processed        BOOLEAN      NOT NULL DEFAULT FALSE,
            outcome          VARCHAR(40),
            created_at       TIMESTAMPTZ  NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_webhook_logs_key ON webhook_logs (correlation_key);")
    op.execute("COMMENT ON TABLE webhook_logs IS 'Raw gateway callbacks, recorded before processing';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS webhook_logs CASCADE;")
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
