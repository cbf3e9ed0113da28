"""per-shop device, plan and add-on policy catalogs

Revision ID: 0004_policy_catalogs
Revises: 0003_audit_and_idempotency
Create Date: 2026-10-17 00:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0004_policy_catalogs"
down_revision = "0003_audit_and_idempotency"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "device_policies",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("shop_id", sa.String(length=36), sa.ForeignKey("shops.id"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("capacity", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("colors_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("factory_price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("default_subsidy", sa.Float(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_device_policies_shop_id", "device_policies", ["shop_id"])

    op.create_table(
        "plan_policies",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("shop_id", sa.String(length=36), sa.ForeignKey("shops.id"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("monthly_fee", sa.Float(), nullable=False, server_default="0"),
        sa.Column("rebate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_plan_policies_shop_id", "plan_policies", ["shop_id"])

    op.create_table(
        "add_on_policies",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("shop_id", sa.String(length=36), sa.ForeignKey("shops.id"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_add_on_policies_shop_id", "add_on_policies", ["shop_id"])


def downgrade() -> None:
    op.drop_index("ix_add_on_policies_shop_id", table_name="add_on_policies")
    op.drop_table("add_on_policies")
    op.drop_index("ix_plan_policies_shop_id", table_name="plan_policies")
    op.drop_table("plan_policies")
    op.drop_index("ix_device_policies_shop_id", table_name="device_policies")
    op.drop_table("device_policies")
