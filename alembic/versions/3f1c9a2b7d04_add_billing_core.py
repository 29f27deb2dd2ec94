"""add_billing_core

Revision ID: 3f1c9a2b7d04
Revises:
Create Date: 2026-10-19 09:12:40.118204

Creates the tenant, employee and billing tables and seeds the default catalog.

Tables:
- companies, employees: owned by their domains; billing reads them
- features, plans, plan_features: plan catalog (reference data)
- subscriptions: one row per company, the billing ledger
- invoices: one row per billing action, with a snapshot of what was bought
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a2b7d04'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


FEATURES = [
    {'code': 'attendance', 'name': 'Attendance System', 'description': 'Clock in/out, attendance tracking, GPS-based attendance'},
    {'code': 'leave', 'name': 'Leave Management', 'description': 'Leave requests, approvals, quota management'},
    {'code': 'payroll', 'name': 'Payroll System', 'description': 'Salary calculation, payslips, payroll reports'},
    {'code': 'invitation', 'name': 'Employee Invitation', 'description': 'Invite employees via email with role assignment'},
    {'code': 'schedule', 'name': 'Work Schedule', 'description': 'Work schedule management and assignment'},
    {'code': 'report', 'name': 'Advanced Reports', 'description': 'Detailed reports and analytics'},
]

PLANS = [
    {'id': 'trial', 'name': 'Free Trial', 'price': 0, 'tier_level': 0, 'max_seats_included': 5, 'active': True},
    {'id': 'standard', 'name': 'Standard', 'price': 12000, 'tier_level': 1, 'max_seats_included': 50, 'active': True},
    {'id': 'premium', 'name': 'Premium', 'price': 15000, 'tier_level': 2, 'max_seats_included': 200, 'active': True},
    {'id': 'ultra', 'name': 'Ultra', 'price': 20000, 'tier_level': 3, 'max_seats_included': None, 'active': True},
]

ALL_FEATURES = ['attendance', 'leave', 'invitation', 'schedule', 'payroll', 'report']

PLAN_FEATURES = {
    'trial': ['attendance', 'leave'],
    'standard': ['attendance', 'leave', 'invitation', 'schedule'],
    'premium': ALL_FEATURES,
    'ultra': ALL_FEATURES,
}


def upgrade() -> None:
    """Add billing tables with indexes, constraints and the default catalog."""

    op.create_table(
        'companies',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('billing_email', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id', name='pk_companies'),
    )
    op.create_index('ix_companies_id', 'companies', ['id'])
    op.create_index('ix_companies_name', 'companies', ['name'])

    op.create_table(
        'employees',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('company_id', sa.BigInteger(), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('employment_status', sa.String(50), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id', name='pk_employees'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], name='fk_employees_company_id_companies', ondelete='CASCADE'),
    )
    op.create_index('ix_employees_id', 'employees', ['id'])
    op.create_index('ix_employees_company_id', 'employees', ['company_id'])
    op.create_index('idx_employees_company_status', 'employees', ['company_id', 'employment_status'])

    # Catalog
    op.create_table(
        'features',
        sa.Column('code', sa.String(100), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('code', name='pk_features'),
    )

    op.create_table(
        'plans',
        sa.Column('id', sa.String(50), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('price', sa.Numeric(15, 2), nullable=False),
        sa.Column('tier_level', sa.Integer(), nullable=False),
        sa.Column('max_seats_included', sa.Integer(), nullable=True),  # NULL = unlimited
        sa.Column('active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id', name='pk_plans'),
        sa.UniqueConstraint('name', name='uq_plans_name'),
    )
    op.create_index('ix_plans_tier_level', 'plans', ['tier_level'])

    op.create_table(
        'plan_features',
        sa.Column('plan_id', sa.String(50), nullable=False),
        sa.Column('feature_code', sa.String(100), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('plan_id', 'feature_code', name='pk_plan_features'),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], name='fk_plan_features_plan_id_plans', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['feature_code'], ['features.code'], name='fk_plan_features_feature_code_features', ondelete='CASCADE'),
    )

    # Ledger
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('company_id', sa.BigInteger(), nullable=False),
        sa.Column('plan_id', sa.String(50), nullable=False),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('billing_cycle', sa.String(20), nullable=False, server_default='monthly'),
        sa.Column('max_seats', sa.Integer(), nullable=False),

        # Deferred changes
        sa.Column('pending_plan_id', sa.String(50), nullable=True),
        sa.Column('pending_max_seats', sa.Integer(), nullable=True),

        # Billing period (naive UTC)
        sa.Column('period_start', sa.DateTime(), nullable=False),
        sa.Column('period_end', sa.DateTime(), nullable=False),
        sa.Column('trial_ends_at', sa.DateTime(), nullable=True),

        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),

        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),

        sa.PrimaryKeyConstraint('id', name='pk_subscriptions'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], name='fk_subscriptions_company_id_companies', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], name='fk_subscriptions_plan_id_plans'),
        sa.ForeignKeyConstraint(['pending_plan_id'], ['plans.id'], name='fk_subscriptions_pending_plan_id_plans'),
        sa.CheckConstraint(
            "status IN ('trial', 'active', 'past_due', 'cancelled', 'expired')",
            name='ck_subscriptions_status_valid',
        ),
        sa.CheckConstraint('max_seats > 0', name='ck_subscriptions_max_seats_positive'),
    )
    op.create_index('ix_subscriptions_id', 'subscriptions', ['id'])
    op.create_index('ix_subscriptions_company_id', 'subscriptions', ['company_id'], unique=True)
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])
    op.create_index('idx_subscriptions_status_period_end', 'subscriptions', ['status', 'period_end'])

    # Invoices
    op.create_table(
        'invoices',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('company_id', sa.BigInteger(), nullable=False),
        sa.Column('subscription_id', sa.BigInteger(), nullable=True),

        sa.Column('provider_invoice_id', sa.String(255), nullable=True),
        sa.Column('provider_invoice_url', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),

        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('purpose', sa.String(20), nullable=False),
        sa.Column('amount', sa.Numeric(15, 2), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),

        # Snapshot of what is being bought
        sa.Column('plan_id', sa.String(50), nullable=False),
        sa.Column('plan_name', sa.String(100), nullable=False),
        sa.Column('price_per_seat', sa.Numeric(15, 2), nullable=False),
        sa.Column('seat_count', sa.Integer(), nullable=False),
        sa.Column('billing_cycle', sa.String(20), nullable=False),
        sa.Column('period_start', sa.DateTime(), nullable=False),
        sa.Column('period_end', sa.DateTime(), nullable=False),

        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('payment_method', sa.String(100), nullable=True),
        sa.Column('payment_channel', sa.String(100), nullable=True),

        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),

        sa.PrimaryKeyConstraint('id', name='pk_invoices'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], name='fk_invoices_company_id_companies', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], name='fk_invoices_subscription_id_subscriptions'),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], name='fk_invoices_plan_id_plans'),
        sa.UniqueConstraint('provider_invoice_id', name='uq_invoices_provider_invoice_id'),
        sa.CheckConstraint(
            "status IN ('pending', 'paid', 'expired', 'cancelled')",
            name='ck_invoices_status_valid',
        ),
        sa.CheckConstraint('amount > 0', name='ck_invoices_amount_positive'),
    )
    op.create_index('ix_invoices_id', 'invoices', ['id'])
    op.create_index('ix_invoices_company_id', 'invoices', ['company_id'])
    op.create_index('ix_invoices_subscription_id', 'invoices', ['subscription_id'])
    op.create_index('idx_invoices_status_created_at', 'invoices', ['status', 'created_at'])
    # At most one pending invoice per company
    op.create_index(
        'uq_invoices_one_pending_per_company',
        'invoices',
        ['company_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    # Default catalog
    features_table = sa.table('features',
        sa.column('code', sa.String),
        sa.column('name', sa.String),
        sa.column('description', sa.Text),
    )
    plans_table = sa.table('plans',
        sa.column('id', sa.String),
        sa.column('name', sa.String),
        sa.column('price', sa.Numeric),
        sa.column('tier_level', sa.Integer),
        sa.column('max_seats_included', sa.Integer),
        sa.column('active', sa.Boolean),
    )
    plan_features_table = sa.table('plan_features',
        sa.column('plan_id', sa.String),
        sa.column('feature_code', sa.String),
        sa.column('position', sa.Integer),
    )

    op.bulk_insert(features_table, FEATURES)
    op.bulk_insert(plans_table, PLANS)
    op.bulk_insert(plan_features_table, [
        {'plan_id': plan_id, 'feature_code': code, 'position': position}
        for plan_id, codes in PLAN_FEATURES.items()
        for position, code in enumerate(codes)
    ])


def downgrade() -> None:
    """Remove billing tables."""
    op.drop_index('uq_invoices_one_pending_per_company', table_name='invoices')
    op.drop_table('invoices')
    op.drop_table('subscriptions')
    op.drop_table('plan_features')
    op.drop_table('plans')
    op.drop_table('features')
    op.drop_table('employees')
    op.drop_table('companies')
