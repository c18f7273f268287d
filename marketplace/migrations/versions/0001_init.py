"""orders, order items and status history

Revision ID: 0001_init
Revises:
Create Date: 2025-01-02

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_number', sa.String(50), nullable=False),
        sa.Column('consumer_id', sa.String(64), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('payment_status', sa.String(20), nullable=False),
        sa.Column('payment_method', sa.String(20), nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('shipping_address', sa.JSON, nullable=True),
        sa.Column('delivery_address', sa.JSON, nullable=True),
        sa.Column('delivery_instructions', sa.Text, nullable=True),
        sa.Column('consumer_notes', sa.Text, nullable=True),
        sa.Column('transaction_id', sa.String(100), nullable=True),
        sa.Column('payment_failure_reason', sa.String(255), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_delivery', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.String(255), nullable=True),
        sa.Column('cancelled_by', sa.String(64), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('consumer_name_snapshot', sa.String(200), nullable=True),
        sa.Column('version', sa.Integer, nullable=False),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_consumer_id', 'orders', ['consumer_id'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('product_id', sa.String(64), nullable=False),
        sa.Column('farmer_id', sa.String(64), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('product_name_snapshot', sa.String(200), nullable=True),
        sa.Column('farmer_name_snapshot', sa.String(200), nullable=True),
    )
    op.create_index('ix_order_items_farmer_id', 'order_items', ['farmer_id'])

    op.create_table(
        'order_status_events',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('actor_id', sa.String(64), nullable=False),
        sa.Column('actor_role', sa.String(20), nullable=False),
        sa.Column('reason', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_order_status_events_order_id', 'order_status_events', ['order_id'])


def downgrade() -> None:
    op.drop_table('order_status_events')
    op.drop_table('order_items')
    op.drop_table('orders')
