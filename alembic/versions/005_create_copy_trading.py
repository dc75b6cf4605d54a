"""005: create traders and copy_positions

Revision ID: 005
Revises: 004
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE traders (
            id                       UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            name                     VARCHAR(100)    NOT NULL,
            strategy                 VARCHAR(100)    NOT NULL DEFAULT '',
            risk_level               VARCHAR(10)     NOT NULL DEFAULT 'medium',
            historical_roi_min       NUMERIC(10, 4)  NOT NULL,
            historical_roi_max       NUMERIC(10, 4)  NOT NULL,
            max_drawdown             NUMERIC(10, 4)  NOT NULL DEFAULT 0.20,
            performance_fee_percent  NUMERIC(6, 2)   NOT NULL DEFAULT 20,
            current_copiers          INTEGER         NOT NULL DEFAULT 0,
            max_copiers              INTEGER         NOT NULL,
            aum                      NUMERIC(36, 18) NOT NULL DEFAULT 0,
            lifetime_earnings        NUMERIC(36, 18) NOT NULL DEFAULT 0,
            stats                    JSONB           NOT NULL DEFAULT '{}'::jsonb,
            created_at               TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at               TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_traders_risk_level CHECK (risk_level IN ('low', 'medium', 'high')),
            CONSTRAINT ck_traders_roi_range  CHECK (historical_roi_min <= historical_roi_max),
            CONSTRAINT ck_traders_copiers    CHECK (
                current_copiers >= 0 AND current_copiers <= max_copiers
            ),
            CONSTRAINT ck_traders_aum_gte_0  CHECK (aum >= 0)
        );
    """)

    op.execute("""
        CREATE TABLE copy_positions (
            id                    UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id               VARCHAR(64)     NOT NULL,
            trader_id             UUID            NOT NULL REFERENCES traders(id),
            allocation            NUMERIC(36, 18) NOT NULL,
            current_pnl           NUMERIC(36, 18) NOT NULL DEFAULT 0,
            status                VARCHAR(20)     NOT NULL DEFAULT 'active',
            started_at            TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            stopped_at            TIMESTAMPTZ,
            final_pnl             NUMERIC(36, 18),
            performance_fee_paid  NUMERIC(36, 18),
            simulation_state      JSONB           NOT NULL DEFAULT '{}'::jsonb,
            CONSTRAINT ck_copy_positions_status CHECK (
                status IN ('active', 'stopped', 'liquidated')
            ),
            CONSTRAINT ck_copy_positions_allocation_gt_0 CHECK (allocation > 0)
        );
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_copy_positions_active
        ON copy_positions (user_id, trader_id)
        WHERE status = 'active';
    """)
    op.execute("""
        CREATE INDEX idx_copy_positions_active
        ON copy_positions (started_at)
        WHERE status = 'active';
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS copy_positions CASCADE;")
    op.execute("DROP TABLE IF EXISTS traders CASCADE;")
