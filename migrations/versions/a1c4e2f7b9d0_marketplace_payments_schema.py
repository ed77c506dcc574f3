"""marketplace_payments_schema

Revision ID: a1c4e2f7b9d0
Revises:
Create Date: 2026-09-02 10:15:00.000000

Users, provider accounts with subscription fields, dishes, escrow-backed
food orders and in-app notifications.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1c4e2f7b9d0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _provider_columns():
    return [
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'),
                  nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('is_verified', sa.Boolean(), nullable=True),
        sa.Column('subscription_status', sa.String(32), nullable=True),
        sa.Column('subscription_tier', sa.String(32), nullable=True),
        sa.Column('subscription_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('subscription_ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('stripe_customer_id', sa.String(64), nullable=True),
        sa.Column('stripe_subscription_id', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'home_cooks',
        *_provider_columns(),
        sa.Column('delivery_available', sa.Boolean(), nullable=True),
        sa.Column('min_order_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('completed_orders', sa.Integer(), nullable=True),
    )
    op.create_table(
        'house_workers',
        *_provider_columns(),
        sa.Column('hourly_rate', sa.Numeric(10, 2), nullable=True),
    )
    for table in ('home_cooks', 'house_workers'):
        op.create_index(f'ix_{table}_user_id', table, ['user_id'], unique=True)
        op.create_index(f'ix_{table}_subscription_ends_at', table, ['subscription_ends_at'])
        op.create_index(f'ix_{table}_stripe_customer_id', table, ['stripe_customer_id'])

    op.create_table(
        'food_dishes',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('cook_id', sa.String(36), sa.ForeignKey('home_cooks.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=True),
        sa.Column('order_count', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_food_dishes_cook_id', 'food_dishes', ['cook_id'])

    op.create_table(
        'food_orders',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('client_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('cook_id', sa.String(36), sa.ForeignKey('home_cooks.id'), nullable=False),
        sa.Column('dish_id', sa.String(36), sa.ForeignKey('food_dishes.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('platform_fee', sa.Numeric(10, 2), nullable=False),
        sa.Column('cook_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('delivery_address', sa.Text(), nullable=True),
        sa.Column('delivery_notes', sa.Text(), nullable=True),
        sa.Column('scheduled_delivery_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('payment_status', sa.String(20), nullable=False),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('stripe_checkout_session_id', sa.String(255), nullable=True),
        sa.Column('stripe_payment_intent_id', sa.String(255), nullable=True),
        sa.Column('client_confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cook_confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('escrow_released_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('receipt_generated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('receipt_data', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_food_orders_client_id', 'food_orders', ['client_id'])
    op.create_index('ix_food_orders_cook_id', 'food_orders', ['cook_id'])
    op.create_index('ix_food_orders_status', 'food_orders', ['status'])
    op.create_index('ix_food_orders_stripe_checkout_session_id', 'food_orders',
                    ['stripe_checkout_session_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(64), nullable=False),
        sa.Column('priority', sa.String(16), nullable=True),
        sa.Column('link', sa.String(255), nullable=True),
        sa.Column('metadata', sa.Text(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_type', 'notifications', ['type'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('food_orders')
    op.drop_table('food_dishes')
    op.drop_table('house_workers')
    op.drop_table('home_cooks')
    op.drop_table('users')
