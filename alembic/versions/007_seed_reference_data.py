"""007: seed reference data

Revision ID: 007
Revises: 006
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Settlement asset for copy trading (SETTLEMENT_ASSET_SYMBOL)
    op.execute("""
        INSERT INTO assets (symbol, name) VALUES
            ('USDT', 'Tether USD'),
            ('BTC', 'Bitcoin'),
            ('ETH', 'Ethereum')
        ON CONFLICT (symbol) DO NOTHING;
    """)

    # Sample traders
    op.execute("""
        INSERT INTO traders (
            name, strategy, risk_level,
            historical_roi_min, historical_roi_max, max_drawdown,
            performance_fee_percent, max_copiers, stats
        ) VALUES
            ('Steady Eddie', 'DCA blue chips', 'low',
             2, 6, 0.08, 15, 50, '{"monthly_roi": 4.0, "win_rate": 0.71}'),
            ('Momentum Mia', 'Trend following', 'medium',
             4, 14, 0.18, 20, 25, '{"monthly_roi": 9.0, "win_rate": 0.58}'),
            ('Degen Dan', 'Leveraged breakouts', 'high',
             -10, 40, 0.35, 30, 10, '{"monthly_roi": 18.0, "win_rate": 0.44}');
    """)


def downgrade() -> None:
    op.execute("DELETE FROM traders WHERE name IN ('Steady Eddie', 'Momentum Mia', 'Degen Dan');")
    op.execute("DELETE FROM assets WHERE symbol IN ('USDT', 'BTC', 'ETH');")
