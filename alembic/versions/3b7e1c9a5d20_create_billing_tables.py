"""create_billing_tables

Revision ID: 3b7e1c9a5d20
Revises:
Create Date: 2026-10-19 18:05:12.481930

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b7e1c9a5d20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create plan catalog, user profile and user subscription tables."""
    from sqlalchemy import inspect

    # Idempotent: skip tables that already exist
    bind = op.get_bind()
    existing = set(inspect(bind).get_table_names())

    if 'subscription_plans' not in existing:
        op.create_table(
            'subscription_plans',
            sa.Column('plan_id', sa.String(), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('description', sa.String(), nullable=True),
            sa.Column('monthly_price', sa.Float(), nullable=False, server_default='0'),
            sa.Column('yearly_price', sa.Float(), nullable=False, server_default='0'),
            sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
            sa.Column('stripe_monthly_price_id', sa.String(), nullable=True),
            sa.Column('stripe_yearly_price_id', sa.String(), nullable=True),
            sa.Column('stripe_product_id', sa.String(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.PrimaryKeyConstraint('plan_id'),
        )
        op.create_index(op.f('ix_subscription_plans_stripe_monthly_price_id'), 'subscription_plans', ['stripe_monthly_price_id'], unique=False)
        op.create_index(op.f('ix_subscription_plans_stripe_yearly_price_id'), 'subscription_plans', ['stripe_yearly_price_id'], unique=False)
        op.bulk_insert(
            sa.table(
                'subscription_plans',
                sa.column('plan_id', sa.String()),
                sa.column('name', sa.String()),
                sa.column('description', sa.String()),
                sa.column('monthly_price', sa.Float()),
                sa.column('yearly_price', sa.Float()),
                sa.column('currency', sa.String()),
                sa.column('is_active', sa.Boolean()),
            ),
            [{
                'plan_id': 'free',
                'name': 'Free',
                'description': 'Free plan',
                'monthly_price': 0,
                'yearly_price': 0,
                'currency': 'USD',
                'is_active': True,
            }],
        )

    if 'user_profiles' not in existing:
        op.create_table(
            'user_profiles',
            sa.Column('user_id', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('stripe_price_id', sa.String(), nullable=True),
            sa.Column('stripe_product_id', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
            sa.PrimaryKeyConstraint('user_id'),
        )
        op.create_index(op.f('ix_user_profiles_stripe_customer_id'), 'user_profiles', ['stripe_customer_id'], unique=True)

    if 'user_subscriptions' not in existing:
        op.create_table(
            'user_subscriptions',
            sa.Column('user_id', sa.String(), nullable=False),
            sa.Column('plan_id', sa.String(), nullable=False, server_default='free'),
            sa.Column('stripe_subscription_id', sa.String(), nullable=True),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('status', sa.String(), nullable=False, server_default='active'),
            sa.Column('current_period_start', sa.DateTime(timezone=True), nullable=True),
            sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
            sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('billing_interval', sa.String(), nullable=True),
            sa.Column('trial_start', sa.DateTime(timezone=True), nullable=True),
            sa.Column('trial_end', sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(['plan_id'], ['subscription_plans.plan_id']),
            sa.PrimaryKeyConstraint('user_id'),
        )
        op.create_index(op.f('ix_user_subscriptions_stripe_subscription_id'), 'user_subscriptions', ['stripe_subscription_id'], unique=False)


def downgrade() -> None:
    """Drop billing tables."""
    op.drop_index(op.f('ix_user_subscriptions_stripe_subscription_id'), table_name='user_subscriptions')
    op.drop_table('user_subscriptions')
    op.drop_index(op.f('ix_user_profiles_stripe_customer_id'), table_name='user_profiles')
    op.drop_table('user_profiles')
    op.drop_index(op.f('ix_subscription_plans_stripe_yearly_price_id'), table_name='subscription_plans')
    op.drop_index(op.f('ix_subscription_plans_stripe_monthly_price_id'), table_name='subscription_plans')
    op.drop_table('subscription_plans')
