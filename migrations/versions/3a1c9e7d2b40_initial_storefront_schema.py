"""initial storefront schema

Revision ID: 3a1c9e7d2b40
Revises:
Create Date: 2026-10-12 09:14:22.481906

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a1c9e7d2b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ts(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _public_id():
    return sa.Column('public_id', sa.Uuid(), nullable=False)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        _public_id(),
        sa.Column('email', sa.String(320), nullable=True, unique=True),
        sa.Column('name', sa.String(128), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('role', sa.String(16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('ix_users_public_id', 'users', ['public_id'], unique=True)

    op.create_table(
        'deliveryperson',
        sa.Column('id', sa.Integer(), primary_key=True),
        _public_id(),
        sa.Column('name', sa.String(128), nullable=False),
        sa.Column('phone', sa.String(20), nullable=False, unique=True),
        sa.Column('email', sa.String(320), nullable=True),
        sa.Column('vehicle_number', sa.String(32), nullable=True),
        sa.Column('delivery_shift', sa.String(16), nullable=False),
        sa.Column('approval_status', sa.String(16), nullable=False),
        sa.Column('is_suspended', sa.Boolean(), nullable=False),
        sa.Column('suspension_reason', sa.Text(), nullable=True),
        sa.Column('total_deliveries', sa.Integer(), nullable=False),
        sa.Column('approved_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _ts('approved_at', nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('ix_deliveryperson_public_id', 'deliveryperson', ['public_id'], unique=True)
    op.create_index('ix_deliveryperson_approval_status', 'deliveryperson', ['approval_status'])

    op.create_table(
        'product',
        sa.Column('id', sa.Integer(), primary_key=True),
        _public_id(),
        sa.Column('name', sa.String(255), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(64), nullable=False),
        sa.Column('unit', sa.String(32), nullable=False),
        sa.Column('price', sa.BigInteger(), nullable=False),
        sa.Column('discount_price', sa.BigInteger(), nullable=True),
        sa.Column('stock_qty', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _ts('created_at'),
        _ts('updated_at'),
        sa.CheckConstraint('stock_qty >= 0', name='ck_product_stock_non_negative'),
        sa.CheckConstraint('price >= 0', name='ck_product_price_non_negative'),
    )
    op.create_index('ix_product_public_id', 'product', ['public_id'], unique=True)
    op.create_index('ix_product_category', 'product', ['category'])

    op.create_table(
        'cart',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        _ts('created_at'),
        _ts('updated_at'),
    )

    op.create_table(
        'cartitem',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('cart_id', sa.Integer(), sa.ForeignKey('cart.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('product.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        _ts('created_at'),
        sa.UniqueConstraint('cart_id', 'product_id', name='uq_cartitem_cart_product'),
    )
    op.create_index('ix_cartitem_cart_id', 'cartitem', ['cart_id'])
    op.create_index('ix_cartitem_product_id', 'cartitem', ['product_id'])

    op.create_table(
        'subscriptionplan',
        sa.Column('id', sa.Integer(), primary_key=True),
        _public_id(),
        sa.Column('name', sa.String(128), nullable=False),
        sa.Column('milk_type', sa.String(16), nullable=False),
        sa.Column('volume', sa.String(8), nullable=False),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('price', sa.BigInteger(), nullable=False),
        sa.Column('daily_price', sa.BigInteger(), nullable=False),
        sa.Column('discount', sa.Integer(), nullable=False),
        sa.Column('original_price', sa.BigInteger(), nullable=True),
        sa.Column('features', sa.JSON(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('popularity', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _ts('created_at'),
        _ts('updated_at'),
        sa.CheckConstraint('discount >= 0 AND discount <= 100', name='ck_plan_discount_range'),
        sa.CheckConstraint('duration_days IN (7, 15, 30)', name='ck_plan_duration'),
    )
    op.create_index('ix_subscriptionplan_public_id', 'subscriptionplan', ['public_id'], unique=True)
    op.create_index('ix_subscriptionplan_milk_type', 'subscriptionplan', ['milk_type'])
    op.create_index('ix_subscriptionplan_is_active', 'subscriptionplan', ['is_active'])

    op.create_table(
        'usersubscription',
        sa.Column('id', sa.Integer(), primary_key=True),
        _public_id(),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('subscriptionplan.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('payment_status', sa.String(16), nullable=False),
        sa.Column('payment_method', sa.String(16), nullable=False),
        sa.Column('total_amount', sa.BigInteger(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('next_delivery_date', sa.Date(), nullable=True),
        sa.Column('total_deliveries', sa.Integer(), nullable=False),
        sa.Column('completed_deliveries', sa.Integer(), nullable=False),
        sa.Column('skipped_deliveries', sa.Integer(), nullable=False),
        sa.Column('delivery_address', sa.JSON(), nullable=False),
        sa.Column('preferred_delivery_time', sa.String(16), nullable=False),
        sa.Column('special_instructions', sa.Text(), nullable=True),
        sa.Column('payment_session_id', sa.Integer(), nullable=True),
        _ts('claim_expires_at', nullable=True),
        _ts('paid_at', nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        _ts('cancelled_at', nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
        sa.CheckConstraint('completed_deliveries + skipped_deliveries <= total_deliveries',
                           name='ck_usersub_delivery_counters'),
    )
    op.create_index('ix_usersubscription_public_id', 'usersubscription', ['public_id'], unique=True)
    op.create_index('ix_usersubscription_user_id', 'usersubscription', ['user_id'])
    op.create_index('ix_usersubscription_plan_id', 'usersubscription', ['plan_id'])
    op.create_index('ix_usersubscription_status', 'usersubscription', ['status'])
    op.create_index('ix_usersubscription_end_date', 'usersubscription', ['end_date'])
    op.create_index('ix_usersubscription_next_delivery_date', 'usersubscription', ['next_delivery_date'])
    op.create_index('ix_usersubscription_payment_session_id', 'usersubscription', ['payment_session_id'])

    op.create_table(
        'subscriptionhistory',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('subscription_id', sa.Integer(), sa.ForeignKey('usersubscription.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action', sa.String(32), nullable=False),
        sa.Column('from_status', sa.String(32), nullable=True),
        sa.Column('to_status', sa.String(32), nullable=True),
        sa.Column('actor', sa.String(16), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        _ts('created_at'),
    )
    op.create_index('ix_subscriptionhistory_subscription_id', 'subscriptionhistory', ['subscription_id'])

    op.create_table(
        'paymentsession',
        sa.Column('id', sa.Integer(), primary_key=True),
        _public_id(),
        sa.Column('reference_number', sa.String(32), nullable=False, unique=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('subscription_id', sa.Integer(), sa.ForeignKey('usersubscription.id', ondelete='SET NULL'), nullable=True),
        sa.Column('total_amount', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(8), nullable=False),
        sa.Column('upi_id', sa.String(128), nullable=False),
        sa.Column('upi_name', sa.String(128), nullable=False),
        sa.Column('qr_code_url', sa.Text(), nullable=False),
        sa.Column('verification_status', sa.String(32), nullable=False),
        sa.Column('upi_transaction_id', sa.String(64), nullable=True),
        sa.Column('upi_reference_number', sa.String(64), nullable=True),
        _ts('expires_at'),
        _ts('submitted_at', nullable=True),
        _ts('verified_at', nullable=True),
        sa.Column('verified_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('ix_paymentsession_public_id', 'paymentsession', ['public_id'], unique=True)
    op.create_index('ix_paymentsession_user_id', 'paymentsession', ['user_id'])
    op.create_index('ix_paymentsession_subscription_id', 'paymentsession', ['subscription_id'])
    op.create_index('ix_paymentsession_verification_status', 'paymentsession', ['verification_status'])
    op.create_index('ix_paymentsession_expires_at', 'paymentsession', ['expires_at'])

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        _public_id(),
        sa.Column('order_number', sa.String(32), nullable=False, unique=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('payment_status', sa.String(16), nullable=False),
        sa.Column('payment_method', sa.String(16), nullable=False),
        sa.Column('subtotal', sa.BigInteger(), nullable=False),
        sa.Column('shipping_fee', sa.BigInteger(), nullable=False),
        sa.Column('tax', sa.BigInteger(), nullable=False),
        sa.Column('discount', sa.BigInteger(), nullable=False),
        sa.Column('total_amount', sa.BigInteger(), nullable=False),
        sa.Column('shipping_address', sa.JSON(), nullable=False),
        sa.Column('delivery_date', sa.Date(), nullable=False),
        sa.Column('delivery_shift', sa.String(16), nullable=False),
        sa.Column('customer_notes', sa.Text(), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_by', sa.String(16), nullable=True),
        sa.Column('delivery_person_id', sa.Integer(), sa.ForeignKey('deliveryperson.id', ondelete='SET NULL'), nullable=True),
        _ts('assigned_at', nullable=True),
        sa.Column('delivery_notes', sa.Text(), nullable=True),
        sa.Column('payment_session_id', sa.Integer(), sa.ForeignKey('paymentsession.id', ondelete='SET NULL'), nullable=True),
        _ts('claim_expires_at', nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
        _ts('confirmed_at', nullable=True),
        _ts('delivered_at', nullable=True),
        _ts('cancelled_at', nullable=True),
        _ts('paid_at', nullable=True),
        sa.CheckConstraint('total_amount = subtotal + shipping_fee + tax - discount', name='ck_orders_total_reconciles'),
    )
    op.create_index('ix_orders_public_id', 'orders', ['public_id'], unique=True)
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_payment_status', 'orders', ['payment_status'])
    op.create_index('ix_orders_delivery_date', 'orders', ['delivery_date'])
    op.create_index('ix_orders_delivery_person_id', 'orders', ['delivery_person_id'])
    op.create_index('ix_orders_payment_session_id', 'orders', ['payment_session_id'])

    op.create_table(
        'orderitem',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('product.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('unit_price', sa.BigInteger(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('line_total', sa.BigInteger(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_orderitem_quantity_positive'),
    )
    op.create_index('ix_orderitem_order_id', 'orderitem', ['order_id'])
    op.create_index('ix_orderitem_product_id', 'orderitem', ['product_id'])

    op.create_table(
        'paymentsessionorder',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('payment_session_id', sa.Integer(), sa.ForeignKey('paymentsession.id', ondelete='CASCADE'), nullable=False),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.UniqueConstraint('payment_session_id', 'order_id', name='uq_paymentsessionorder_session_order'),
    )
    op.create_index('ix_paymentsessionorder_payment_session_id', 'paymentsessionorder', ['payment_session_id'])
    op.create_index('ix_paymentsessionorder_order_id', 'paymentsessionorder', ['order_id'])

    op.create_table(
        'refundrequest',
        sa.Column('id', sa.Integer(), primary_key=True),
        _public_id(),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('subscription_id', sa.Integer(), sa.ForeignKey('usersubscription.id', ondelete='SET NULL'), nullable=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='SET NULL'), nullable=True),
        sa.Column('original_amount', sa.BigInteger(), nullable=False),
        sa.Column('refund_amount', sa.BigInteger(), nullable=False),
        sa.Column('days_used', sa.Integer(), nullable=False),
        sa.Column('days_remaining', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('refund_method', sa.String(16), nullable=False),
        sa.Column('refund_details', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('processed_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _ts('processed_at', nullable=True),
        sa.Column('refund_transaction_id', sa.String(64), nullable=True),
        _ts('refund_date', nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
        sa.CheckConstraint('subscription_id IS NOT NULL OR order_id IS NOT NULL', name='ck_refund_has_target'),
    )
    op.create_index('ix_refundrequest_public_id', 'refundrequest', ['public_id'], unique=True)
    op.create_index('ix_refundrequest_user_id', 'refundrequest', ['user_id'])
    op.create_index('ix_refundrequest_subscription_id', 'refundrequest', ['subscription_id'])
    op.create_index('ix_refundrequest_order_id', 'refundrequest', ['order_id'])
    op.create_index('ix_refundrequest_status', 'refundrequest', ['status'])


def downgrade() -> None:
    """Downgrade schema."""
    for table in ('refundrequest', 'paymentsessionorder', 'orderitem', 'orders', 'paymentsession',
                  'subscriptionhistory', 'usersubscription', 'subscriptionplan', 'cartitem', 'cart',
                  'product', 'deliveryperson', 'users'):
        op.drop_table(table)
