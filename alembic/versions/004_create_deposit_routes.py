"""004: create deposit_payments, deposit_addresses and profiles

Revision ID: 004
Revises: 003
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Invoice-style routes: one row per gateway payment the user initiated.
    op.execute("""
        CREATE TABLE deposit_payments (
            id                   UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            external_payment_id  VARCHAR(255) NOT NULL,
            user_id              VARCHAR(64)  NOT NULL,
            asset_id             UUID         NOT NULL REFERENCES assets(id),
            pay_address          VARCHAR(255),
            status               VARCHAR(40)  NOT NULL DEFAULT 'waiting',
            tx_hash              VARCHAR(255),
            created_at           TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            updated_at           TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_deposit_payments_external_id UNIQUE (external_payment_id)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_deposit_payments_updated_at
            BEFORE UPDATE ON deposit_payments
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)

    # Address-style routes: a static deposit address owned by one user.
    op.execute("""
        CREATE TABLE deposit_addresses (
            id          UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id     VARCHAR(64)  NOT NULL,
            asset_id    UUID         NOT NULL REFERENCES assets(id),
            address     VARCHAR(255) NOT NULL,
            created_at  TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_deposit_addresses_address UNIQUE (address)
        );
    """)

    op.execute("""
        CREATE TABLE profiles (
            id                        VARCHAR(64)  PRIMARY KEY,
            email                     VARCHAR(255),
            full_name                 VARCHAR(255),
            notification_preferences  JSONB        NOT NULL DEFAULT '{}'::jsonb,
            created_at                TIMESTAMPTZ  NOT NULL DEFAULT NOW()
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS profiles CASCADE;")
    op.execute("DROP TABLE IF EXISTS deposit_addresses CASCADE;")
    op.execute("DROP TABLE IF EXISTS deposit_payments CASCADE;")
