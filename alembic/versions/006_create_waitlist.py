"""006: create waitlist_entries

Revision ID: 006
Revises: 005
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE waitlist_entries (
            id                 UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id            VARCHAR(64)  NOT NULL,
            trader_id          UUID         NOT NULL REFERENCES traders(id),
            status             VARCHAR(20)  NOT NULL DEFAULT 'waiting',
            position_in_queue  INTEGER      NOT NULL,
            claim_token        VARCHAR(64),
            claim_expires_at   TIMESTAMPTZ,
            notified_at        TIMESTAMPTZ,
            claimed_at         TIMESTAMPTZ,
            created_at         TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_waitlist_claim_token UNIQUE (claim_token),
            CONSTRAINT ck_waitlist_status CHECK (
                status IN ('waiting', 'notified', 'expired', 'claimed')
            ),
            CONSTRAINT ck_waitlist_token_after_notify CHECK (
                status = 'waiting' OR claim_token IS NOT NULL
            )
        );
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_waitlist_open_entry
        ON waitlist_entries (user_id, trader_id)
        WHERE status IN ('waiting', 'notified');
    """)
    op.execute("""
        CREATE INDEX idx_waitlist_queue
        ON waitlist_entries (trader_id, created_at)
        WHERE status = 'waiting';
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS waitlist_entries CASCADE;")
