"""002: create assets, balance_accounts and ledger_entries

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
        CREATE TABLE assets (
            id          UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            symbol      VARCHAR(20) NOT NULL,
            name        VARCHAR(100),
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_assets_symbol UNIQUE (symbol)
        );
    """)
    op.execute("""
        CREATE TABLE balance_accounts (
            user_id         VARCHAR(64)     NOT NULL,
            asset_id        UUID            NOT NULL REFERENCES assets(id),
            balance         NUMERIC(36, 18) NOT NULL DEFAULT 0,
            locked_balance  NUMERIC(36, 18) NOT NULL DEFAULT 0,
            version         BIGINT          NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, asset_id),
            CONSTRAINT ck_balance_accounts_locked_gte_0   CHECK (locked_balance >= 0),
            CONSTRAINT ck_balance_accounts_available_gte_0 CHECK (balance >= locked_balance)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_balance_accounts_updated_at
            BEFORE UPDATE ON balance_accounts
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("""
        CREATE TABLE ledger_entries (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            asset_id        UUID            NOT NULL REFERENCES assets(id),
            entry_type      VARCHAR(10)     NOT NULL,
            amount          NUMERIC(36, 18) NOT NULL,
            balance_after   NUMERIC(36, 18) NOT NULL,
            locked_after    NUMERIC(36, 18) NOT NULL,
            reference_type  VARCHAR(30),
            reference_id    VARCHAR(255),
            description     VARCHAR(500),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_ledger_entry_type CHECK (
                entry_type IN ('CREDIT', 'LOCK', 'UNLOCK', 'SPEND')
            )
        );
    """)
    op.execute("""
        CREATE INDEX idx_ledger_entries_account
        ON ledger_entries (user_id, asset_id, created_at DESC);
    """)
    op.execute("""
        CREATE INDEX idx_ledger_entries_reference
        ON ledger_entries (reference_type, reference_id)
        WHERE reference_id IS NOT NULL;
    """)
    op.execute("COMMENT ON TABLE ledger_entries IS 'Append-only journal of balance mutations';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ledger_entries CASCADE;")
    op.execute("DROP TABLE IF EXISTS balance_accounts CASCADE;")
    op.execute("DROP TABLE IF EXISTS assets CASCADE;")
