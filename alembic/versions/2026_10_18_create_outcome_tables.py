"""create candles, signals, signal_outcomes and managed_positions

Revision ID: 5c1e7a9b3d20
Revises:
Create Date: 2026-10-18 00:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c1e7a9b3d20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('candles',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('symbol', sa.String(length=20), nullable=False),
        sa.Column('timeframe', sa.String(length=5), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('open', sa.Float(), nullable=False),
        sa.Column('high', sa.Float(), nullable=False),
        sa.Column('low', sa.Float(), nullable=False),
        sa.Column('close', sa.Float(), nullable=False),
        sa.Column('volume', sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_candles')),
        sa.UniqueConstraint('symbol', 'timeframe', 'timestamp', name='uq_candle_identity')
    )
    op.create_index('idx_candles_lookup', 'candles', ['symbol', 'timeframe', 'timestamp'], unique=False)

    op.create_table('signals',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('symbol', sa.String(length=20), nullable=False),
        sa.Column('direction', sa.String(length=5), nullable=False),
        sa.Column('entry_price', sa.Float(), nullable=False),
        sa.Column('stop_price', sa.Float(), nullable=True),
        sa.Column('tp1_price', sa.Float(), nullable=True),
        sa.Column('tp2_price', sa.Float(), nullable=True),
        sa.Column('entry_time', sa.BigInteger(), nullable=False),
        sa.Column('horizons', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_signals'))
    )

    op.create_table('signal_outcomes',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('signal_id', sa.BigInteger(), nullable=False),
        sa.Column('horizon_min', sa.Integer(), nullable=False),
        sa.Column('window_status', sa.String(length=10), nullable=False),
        sa.Column('invalid_reason', sa.String(length=20), nullable=True),
        sa.Column('window_start', sa.BigInteger(), nullable=True),
        sa.Column('window_end', sa.BigInteger(), nullable=True),
        sa.Column('n_bars', sa.Integer(), nullable=False),
        sa.Column('bars_expected', sa.Integer(), nullable=False),
        sa.Column('coverage_pct', sa.Float(), nullable=False),
        sa.Column('outcome_state', sa.String(length=10), nullable=False),
        sa.Column('result', sa.String(length=5), nullable=False),
        sa.Column('exit_reason', sa.String(length=5), nullable=True),
        sa.Column('exit_price', sa.Float(), nullable=True),
        sa.Column('exit_time', sa.BigInteger(), nullable=True),
        sa.Column('hit_sl', sa.Boolean(), nullable=False),
        sa.Column('hit_tp1', sa.Boolean(), nullable=False),
        sa.Column('hit_tp2', sa.Boolean(), nullable=False),
        sa.Column('ambiguous', sa.Boolean(), nullable=False),
        sa.Column('first_touch_time', sa.BigInteger(), nullable=True),
        sa.Column('ret_pct', sa.Float(), nullable=True),
        sa.Column('r_multiple', sa.Float(), nullable=True),
        sa.Column('r_mfe', sa.Float(), nullable=True),
        sa.Column('r_mae', sa.Float(), nullable=True),
        sa.Column('mfe_pct', sa.Float(), nullable=True),
        sa.Column('mae_pct', sa.Float(), nullable=True),
        sa.Column('attempted_at', sa.BigInteger(), nullable=True),
        sa.Column('computed_at', sa.BigInteger(), nullable=True),
        sa.Column('resolved_at', sa.BigInteger(), nullable=True),
        sa.ForeignKeyConstraint(['signal_id'], ['signals.id'], name=op.f('fk_signal_outcomes_signal_id_signals')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_signal_outcomes')),
        sa.UniqueConstraint('signal_id', 'horizon_min', name='uq_outcome_signal_horizon')
    )
    op.create_index('idx_outcomes_state_horizon', 'signal_outcomes', ['outcome_state', 'horizon_min'], unique=False)

    op.create_table('managed_positions',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('signal_id', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.String(length=24), nullable=False),
        sa.Column('realized_r', sa.Float(), nullable=False),
        sa.Column('managed_r', sa.Float(), nullable=True),
        sa.Column('managed_pnl_currency', sa.Float(), nullable=True),
        sa.Column('tp1_partial_at', sa.BigInteger(), nullable=True),
        sa.Column('runner_breakeven_at', sa.BigInteger(), nullable=True),
        sa.Column('runner_exit_at', sa.BigInteger(), nullable=True),
        sa.Column('runner_exit_reason', sa.String(length=20), nullable=True),
        sa.Column('timeout_exit_price', sa.Float(), nullable=True),
        sa.Column('risk_currency_snapshot', sa.Float(), nullable=False),
        sa.Column('last_price', sa.Float(), nullable=True),
        sa.Column('same_bar_conflicts', sa.JSON(), nullable=True),
        sa.Column('computed_at', sa.BigInteger(), nullable=True),
        sa.ForeignKeyConstraint(['signal_id'], ['signals.id'], name=op.f('fk_managed_positions_signal_id_signals')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_managed_positions')),
        sa.UniqueConstraint('signal_id', name=op.f('uq_managed_positions_signal_id'))
    )


def downgrade() -> None:
    op.drop_table('managed_positions')
    op.drop_index('idx_outcomes_state_horizon', table_name='signal_outcomes')
    op.drop_table('signal_outcomes')
    op.drop_table('signals')
    op.drop_index('idx_candles_lookup', table_name='candles')
    op.drop_table('candles')
