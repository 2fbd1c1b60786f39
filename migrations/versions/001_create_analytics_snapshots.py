"""Create analytics_snapshots table

Revision ID: 001_create_analytics_snapshots
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_create_analytics_snapshots'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'analytics_snapshots',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('period_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('period_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True, comment='Null for platform-wide snapshots'),
        sa.Column('revenue', sa.JSON(), nullable=False),
        sa.Column('betting', sa.JSON(), nullable=False),
        sa.Column('players', sa.JSON(), nullable=False),
        sa.Column('financial', sa.JSON(), nullable=False),
        sa.Column('agents', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='completed'),
        sa.Column('generated_by', sa.String(length=20), nullable=False, server_default='system'),
        sa.Column('generated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_analytics_snapshots_type'), 'analytics_snapshots', ['type'], unique=False)
    op.create_index(op.f('ix_analytics_snapshots_tenant_id'), 'analytics_snapshots', ['tenant_id'], unique=False)
    op.create_index(
        'ix_analytics_snapshots_type_period', 'analytics_snapshots', ['type', 'period_start'], unique=False
    )
    op.create_index(
        'ix_analytics_snapshots_tenant_type_period',
        'analytics_snapshots',
        ['tenant_id', 'type', 'period_start'],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_analytics_snapshots_tenant_type_period', table_name='analytics_snapshots')
    op.drop_index('ix_analytics_snapshots_type_period', table_name='analytics_snapshots')
    op.drop_index(op.f('ix_analytics_snapshots_tenant_id'), table_name='analytics_snapshots')
    op.drop_index(op.f('ix_analytics_snapshots_type'), table_name='analytics_snapshots')
    op.drop_table('analytics_snapshots')
