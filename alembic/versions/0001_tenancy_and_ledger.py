"""tenancy, crm and sales ledger

Revision ID: 0001_tenancy_and_ledger
Revises: 
Create Date: 2026-09-01 00:00:00

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_tenancy_and_ledger'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'store_groups',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'shops',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('store_group_id', sa.String(length=36), nullable=True),
        sa.Column('subscription_status', sa.String(length=40), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['store_group_id'], ['store_groups.id']),
    )
    op.create_index('ix_shops_store_group_id', 'shops', ['store_group_id'])

    op.create_table(
        'profiles',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('login_id', sa.String(length=120), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=40), nullable=True),
        sa.Column('shop_id', sa.String(length=36), nullable=True),
        sa.Column('managed_store_group_id', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.ForeignKeyConstraint(['managed_store_group_id'], ['store_groups.id']),
    )
    op.create_index('ix_profiles_login_id', 'profiles', ['login_id'], unique=True)
    op.create_index('ix_profiles_shop_id', 'profiles', ['shop_id'])
    op.create_index('ix_profiles_managed_store_group_id', 'profiles', ['managed_store_group_id'])

    op.create_table(
        'crm_consultations',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('shop_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('phone', sa.String(length=40), nullable=True),
        sa.Column('product_name', sa.String(length=200), nullable=True),
        sa.Column('memo', sa.Text(), nullable=True),
        sa.Column('consultation_date', sa.Date(), nullable=False),
        sa.Column('sales_person', sa.String(length=120), nullable=True),
        sa.Column('activation_status', sa.String(length=4), nullable=False, server_default='X'),
        sa.Column('inflow_type', sa.String(length=20), nullable=True),
        sa.Column('report_id', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
    )
    op.create_index('ix_crm_consultations_shop_id', 'crm_consultations', ['shop_id'])
    op.create_index('ix_consultation_shop_date', 'crm_consultations', ['shop_id', 'consultation_date'])

    op.create_table(
        'reports',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('shop_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('phone', sa.String(length=40), nullable=False, server_default=''),
        sa.Column('birth_date', sa.String(length=40), nullable=False, server_default=''),
        sa.Column('address', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('path', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('existing_carrier', sa.String(length=60), nullable=False, server_default=''),
        sa.Column('sale_date', sa.String(length=40), nullable=False, server_default=''),
        sa.Column('product_name', sa.String(length=200), nullable=False, server_default=''),
        sa.Column('amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('margin', sa.Float(), nullable=False, server_default='0'),
        sa.Column('sales_person', sa.String(length=120), nullable=True),
        sa.Column('plan_name', sa.String(length=200), nullable=True),
        sa.Column('support_amount', sa.Float(), nullable=True),
        sa.Column('factory_price', sa.Float(), nullable=True),
        sa.Column('official_subsidy', sa.Float(), nullable=True),
        sa.Column('installment_principal', sa.Float(), nullable=True),
        sa.Column('installment_months', sa.Float(), nullable=True),
        sa.Column('face_amount', sa.Float(), nullable=True),
        sa.Column('verbal_a', sa.Float(), nullable=True),
        sa.Column('verbal_b', sa.Float(), nullable=True),
        sa.Column('verbal_c', sa.Float(), nullable=True),
        sa.Column('verbal_d', sa.Float(), nullable=True),
        sa.Column('verbal_e', sa.Float(), nullable=True),
        sa.Column('verbal_f', sa.Float(), nullable=True),
        sa.Column('inspection_store', sa.String(length=120), nullable=True),
        sa.Column('inspection_office', sa.String(length=120), nullable=True),
        sa.Column('welfare', sa.String(length=120), nullable=True),
        sa.Column('insurance', sa.String(length=120), nullable=True),
        sa.Column('card', sa.String(length=120), nullable=True),
        sa.Column('combined', sa.String(length=120), nullable=True),
        sa.Column('line_type', sa.String(length=60), nullable=True),
        sa.Column('sale_type', sa.String(length=60), nullable=True),
        sa.Column('serial_number', sa.String(length=120), nullable=True),
        sa.Column('activation_time', sa.String(length=60), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
    )
    op.create_index('ix_reports_shop_id', 'reports', ['shop_id'])
    op.create_index('ix_reports_sale_date', 'reports', ['sale_date'])
    op.create_index('ix_report_shop_sale_date', 'reports', ['shop_id', 'sale_date'])

    op.create_table(
        'report_uploads',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('shop_id', sa.String(length=36), nullable=False),
        sa.Column('file_hash', sa.String(length=128), nullable=False),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.UniqueConstraint('shop_id', 'file_hash', name='uq_report_upload_hash'),
    )

    op.create_table(
        'crm_customers',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('shop_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('phone', sa.String(length=40), nullable=True),
        sa.Column('first_seen_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_seen_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.UniqueConstraint('shop_id', 'phone', name='uq_crm_customer_phone'),
    )
    op.create_index('ix_crm_customers_shop_id', 'crm_customers', ['shop_id'])

    op.create_table(
        'shop_settings',
        sa.Column('shop_id', sa.String(length=36), primary_key=True),
        sa.Column('margin_rate_pct', sa.Float(), nullable=False, server_default='0'),
        sa.Column('sales_target_monthly', sa.Float(), nullable=False, server_default='0'),
        sa.Column('per_sale_incentive', sa.Float(), nullable=False, server_default='30000'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
    )

    op.create_table(
        'salary_snapshots',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('shop_id', sa.String(length=36), nullable=False),
        sa.Column('sales_person', sa.String(length=120), nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('sale_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_margin', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_support', sa.Float(), nullable=False, server_default='0'),
        sa.Column('calculated_salary', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
    )
    op.create_index('ix_salary_snapshots_shop_id', 'salary_snapshots', ['shop_id'])


def downgrade() -> None:
    op.drop_index('ix_salary_snapshots_shop_id', table_name='salary_snapshots')
    op.drop_table('salary_snapshots')
    op.drop_table('shop_settings')
    op.drop_index('ix_crm_customers_shop_id', table_name='crm_customers')
    op.drop_table('crm_customers')
    op.drop_table('report_uploads')
    op.drop_index('ix_report_shop_sale_date', table_name='reports')
    op.drop_index('ix_reports_sale_date', table_name='reports')
    op.drop_index('ix_reports_shop_id', table_name='reports')
    op.drop_table('reports')
    op.drop_index('ix_consultation_shop_date', table_name='crm_consultations')
    op.drop_index('ix_crm_consultations_shop_id', table_name='crm_consultations')
    op.drop_table('crm_consultations')
    op.drop_index('ix_profiles_managed_store_group_id', table_name='profiles')
    op.drop_index('ix_profiles_shop_id', table_name='profiles')
    op.drop_index('ix_profiles_login_id', table_name='profiles')
    op.drop_table('profiles')
    op.drop_index('ix_shops_store_group_id', table_name='shops')
    op.drop_table('shops')
    op.drop_table('store_groups')
