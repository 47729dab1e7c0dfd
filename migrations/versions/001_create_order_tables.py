"""
Alembic migration: Create user, order, order item and status history tables.

Creates the users table read by the admin gate, the orders table with its
delivery fields and optimistic-concurrency version column, order_items for
line items and order_status_history for the status audit trail.

Revision ID: 001
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ORDER_STATUSES = ('Pending', 'Processing', 'Shipped', 'Delivered', 'Cancelled')


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('now()'),
            comment='Timestamp when record was created',
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('now()'),
            comment='Timestamp when record was last updated',
        ),
    ]


def _status_column(name: str, constraint: str, **kwargs) -> sa.Column:
    return sa.Column(
        name,
        sa.Enum(
            *ORDER_STATUSES,
            name=constraint,
            native_enum=False,
            length=20,
            create_constraint=True,
        ),
        nullable=False,
        **kwargs,
    )


def upgrade() -> None:
    """
    Create tables for the admin order workflow.
    """
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False, comment='User email address'),
        sa.Column('name', sa.String(length=200), nullable=False, comment='Display name'),
        sa.Column(
            'role',
            sa.Enum('user', 'admin', name='user_role', native_enum=False, create_constraint=True),
            nullable=False,
            server_default='user',
            comment='User role for access control',
        ),
        sa.Column(
            'is_active',
            sa.Boolean(),
            nullable=False,
            server_default=sa.true(),
            comment='Account active status',
        ),
        *_timestamps(),
        sa.UniqueConstraint('email', name='uq_users_email'),
        comment='Storefront accounts',
    )
    op.create_index('ix_users_role_active', 'users', ['role', 'is_active'])

    op.create_table(
        'orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            'user_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False,
            comment='User who placed the order',
        ),
        sa.Column(
            'total_amount',
            sa.Numeric(precision=10, scale=2),
            nullable=False,
            server_default='0.00',
            comment='Total order amount including shipping and tax',
        ),
        _status_column(
            'status',
            'order_status',
            server_default='Pending',
            comment='Current order status',
        ),
        sa.Column(
            'is_delivered',
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
            comment='Whether the order is currently delivered',
        ),
        sa.Column(
            'delivered_at',
            sa.DateTime(timezone=True),
            nullable=True,
            comment='Timestamp of first delivery; never cleared',
        ),
        sa.Column(
            'version',
            sa.Integer(),
            nullable=False,
            server_default='1',
            comment='Optimistic-concurrency version counter',
        ),
        *_timestamps(),
        sa.CheckConstraint('total_amount >= 0', name='ck_orders_total_amount_non_negative'),
        sa.CheckConstraint(
            "(status = 'Delivered') = is_delivered",
            name='ck_orders_delivered_flag_matches_status',
        ),
        comment='Customer orders',
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_user_created', 'orders', ['user_id', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            'order_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('orders.id', ondelete='CASCADE'),
            nullable=False,
            comment='Parent order identifier',
        ),
        sa.Column('book_id', postgresql.UUID(as_uuid=True), nullable=False, comment='Catalog book identifier'),
        sa.Column('title', sa.String(length=500), nullable=False, server_default='', comment='Book title snapshot'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1', comment='Number of copies'),
        sa.Column('unit_price', sa.Numeric(precision=10, scale=2), nullable=False, comment='Price per copy'),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0', comment='Line position within the order'),
        *_timestamps(),
        sa.CheckConstraint('quantity >= 1', name='ck_order_items_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='ck_order_items_unit_price_non_negative'),
        comment='Individual items in an order',
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_book_id', 'order_items', ['book_id'])

    op.create_table(
        'order_status_history',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            'order_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('orders.id', ondelete='CASCADE'),
            nullable=False,
            comment='Parent order identifier',
        ),
        _status_column('from_status', 'order_status_from', comment='Previous status'),
        _status_column('to_status', 'order_status_to', comment='New status'),
        sa.Column(
            'changed_by',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='SET NULL'),
            nullable=True,
            comment='Admin who made the change',
        ),
        *_timestamps(),
        comment='Order status change history for audit trail',
    )
    op.create_index(
        'ix_order_status_history_order_created',
        'order_status_history',
        ['order_id', 'created_at'],
    )


def downgrade() -> None:
    """
    Drop the admin order workflow tables in dependency order.
    """
    op.drop_index('ix_order_status_history_order_created', table_name='order_status_history')
    op.drop_table('order_status_history')

    op.drop_index('ix_order_items_book_id', table_name='order_items')
    op.drop_index('ix_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')

    op.drop_index('ix_orders_user_created', table_name='orders')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_user_id', table_name='orders')
    op.drop_table('orders')

    op.drop_index('ix_users_role_active', table_name='users')
    op.drop_table('users')
