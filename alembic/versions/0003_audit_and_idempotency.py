"""audit trail and idempotency records

Revision ID: 0003_audit_and_idempotency
Revises: 0002_accounts_and_content
Create Date: 2026-09-15 00:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0003_audit_and_idempotency"
down_revision = "0002_accounts_and_content"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actor", sa.String(length=120), nullable=False, server_default=""),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("resource", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("shop_id", sa.String(length=36), nullable=True),
        sa.Column("ip", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("ua", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("result", sa.String(length=40), nullable=False, server_default="ok"),
        sa.Column("meta_json", sa.Text(), nullable=False, server_default="{}"),
    )
    op.create_index("ix_audit_events_ts", "audit_events", ["ts"])
    op.create_index("ix_audit_events_shop_id", "audit_events", ["shop_id"])

    op.create_table(
        "idempotency_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=200), nullable=False),
        sa.Column("method", sa.String(length=10), nullable=False),
        sa.Column("path", sa.String(length=255), nullable=False),
        sa.Column("body_hash", sa.String(length=64), nullable=False),
        sa.Column("shop_id", sa.String(length=36), nullable=True),
        sa.Column("status_code", sa.Integer(), nullable=False, server_default="200"),
        sa.Column("response_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("key", "method", "path", name="uq_idempotency_key"),
    )
    op.create_index("ix_idempotency_records_shop_id", "idempotency_records", ["shop_id"])


def downgrade() -> None:
    op.drop_index("ix_idempotency_records_shop_id", table_name="idempotency_records")
    op.drop_table("idempotency_records")
    op.drop_index("ix_audit_events_shop_id", table_name="audit_events")
    op.drop_index("ix_audit_events_ts", table_name="audit_events")
    op.drop_table("audit_events")
