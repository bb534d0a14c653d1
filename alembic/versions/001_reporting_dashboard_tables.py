"""Add reporting dashboard widget tables

Revision ID: 001_reporting_dashboard_tables
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSON


# revision identifiers, used by Alembic.
revision = '001_reporting_dashboard_tables'
down_revision = None  # Platform tables (users, payments, content) are owned upstream
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create dashboard_widgets table
    op.create_table(
        'dashboard_widgets',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('type', sa.Enum('NUMBER', 'CHART', 'LIST', 'TABLE', name='widgettype'), nullable=False),
        sa.Column('data_source', sa.String(50), nullable=False),

        # Rendering
        sa.Column('query', JSON),
        sa.Column('chart_type', sa.String(30)),
        sa.Column('chart_config', JSON),
        sa.Column('refresh_interval', sa.Integer),

        # Default placement
        sa.Column('default_width', sa.Integer, nullable=False, server_default='4'),
        sa.Column('default_height', sa.Integer, nullable=False, server_default='2'),
        sa.Column('display_order', sa.Integer, nullable=False, server_default='0'),
        sa.Column('is_default', sa.Boolean, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean, server_default=sa.true()),

        # Timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    # Create user_dashboard_widgets table
    op.create_table(
        'user_dashboard_widgets',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('widget_id', sa.String(64), sa.ForeignKey('dashboard_widgets.id', ondelete='CASCADE'), nullable=False),

        # Grid position
        sa.Column('position_x', sa.Integer, nullable=False, server_default='0'),
        sa.Column('position_y', sa.Integer, nullable=False, server_default='0'),
        sa.Column('width', sa.Integer, nullable=False),
        sa.Column('height', sa.Integer, nullable=False),
        sa.Column('is_visible', sa.Boolean, server_default=sa.true()),
        sa.Column('custom_config', JSON),

        # Timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),

        sa.UniqueConstraint('user_id', 'widget_id', name='unique_user_widget'),
    )

    # Indexes used by the report queries
    op.create_index('ix_payments_status_created_at', 'payments', ['status', 'created_at'])
    op.create_index('ix_subscriptions_status_created_at', 'subscriptions', ['status', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_subscriptions_status_created_at', table_name='subscriptions')
    op.drop_index('ix_payments_status_created_at', table_name='payments')
    op.drop_table('user_dashboard_widgets')
    op.drop_table('dashboard_widgets')
    sa.Enum(name='widgettype').drop(op.get_bind(), checkfirst=True)
