"""create_relayer_tables

Revision ID: 2026_10_19_120000
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '2026_10_19_120000'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'processed_events',
        sa.Column('chain', sa.Text(), nullable=False),
        sa.Column('tx_hash', sa.Text(), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.Text(), nullable=False),
        sa.Column('ethscription_id', sa.Text(), nullable=False),
        sa.Column('target_tx_hash', sa.Text(), nullable=True),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('CURRENT_TIMESTAMP'),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint('chain', 'tx_hash', 'log_index'),
    )
    op.create_index(
        'ix_processed_events_type_target',
        'processed_events',
        ['event_type', 'target_tx_hash'],
    )
    op.create_index(
        'ix_processed_events_ethscription_id',
        'processed_events',
        ['ethscription_id'],
    )

    op.create_table(
        'cursors',
        sa.Column('chain', sa.Text(), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint('chain'),
    )

    op.create_table(
        'event_attempts',
        sa.Column('chain', sa.Text(), nullable=False),
        sa.Column('tx_hash', sa.Text(), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.Text(), nullable=False),
        sa.Column('ethscription_id', sa.Text(), nullable=False),
        sa.Column('account', sa.Text(), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('next_attempt_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('chain', 'tx_hash', 'log_index'),
    )
    op.create_index(
        'ix_event_attempts_status_chain',
        'event_attempts',
        ['status', 'chain'],
    )


def downgrade() -> None:
    op.drop_index('ix_event_attempts_status_chain', table_name='event_attempts')
    op.drop_table('event_attempts')
    op.drop_table('cursors')
    op.drop_index('ix_processed_events_ethscription_id', table_name='processed_events')
    op.drop_index('ix_processed_events_type_target', table_name='processed_events')
    op.drop_table('processed_events')
