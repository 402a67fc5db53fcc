"""Initial price alert schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000

Tables created:
- users: Alert owners and their delivery addresses
- price_alerts: User price thresholds evaluated by the scheduler
"""
from alembic import op
import sqlalchemy as sa
import logging

logger = logging.getLogger('alembic.runtime.migration')

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create users and price_alerts tables."""
    logger.info("Creating users table...")
    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('telegram_chat_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    logger.info("Creating price_alerts table...")
    op.create_table(
        'price_alerts',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('symbol', sa.String(), nullable=False),
        sa.Column('operator', sa.String(), nullable=False),
        sa.Column('threshold', sa.Numeric(18, 6), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_triggered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_price_alerts_user_id', 'price_alerts', ['user_id'])
    op.create_index('ix_price_alerts_symbol', 'price_alerts', ['symbol'])
    op.create_index('ix_price_alerts_active', 'price_alerts', ['active'])
    logger.info("✓ Schema created")


def downgrade() -> None:
    """Drop price alert tables."""
    op.drop_index('ix_price_alerts_active', table_name='price_alerts')
    op.drop_index('ix_price_alerts_symbol', table_name='price_alerts')
    op.drop_index('ix_price_alerts_user_id', table_name='price_alerts')
    op.drop_table('price_alerts')
    op.drop_table('users')
