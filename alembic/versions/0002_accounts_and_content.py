"""invites, password resets, notices and calendar

Revision ID: 0002_accounts_and_content
Revises: 0001_tenancy_and_ledger
Create Date: 2026-09-08 00:00:00

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0002_accounts_and_content'
down_revision = '0001_tenancy_and_ledger'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'invites',
        sa.Column('code', sa.String(length=12), primary_key=True),
        sa.Column('shop_id', sa.String(length=36), nullable=False),
        sa.Column('role', sa.String(length=40), nullable=False, server_default='staff'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
    )
    op.create_index('ix_invites_shop_id', 'invites', ['shop_id'])

    op.create_table(
        'password_reset_tokens',
        sa.Column('token', sa.String(length=128), primary_key=True),
        sa.Column('profile_id', sa.String(length=36), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['profile_id'], ['profiles.id']),
    )
    op.create_index('ix_password_reset_tokens_profile_id', 'password_reset_tokens', ['profile_id'])

    op.create_table(
        'notices',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('body', sa.Text(), nullable=False, server_default=''),
        sa.Column('type', sa.String(length=20), nullable=False, server_default='notice'),
        sa.Column('pinned', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('author_id', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['author_id'], ['profiles.id']),
    )

    op.create_table(
        'notice_comments',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('notice_id', sa.String(length=36), nullable=False),
        sa.Column('author_id', sa.String(length=36), nullable=True),
        sa.Column('parent_id', sa.String(length=36), nullable=True),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['notice_id'], ['notices.id']),
        sa.ForeignKeyConstraint(['author_id'], ['profiles.id']),
    )
    op.create_index('ix_notice_comments_notice_id', 'notice_comments', ['notice_id'])

    op.create_table(
        'calendar_todos',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('profile_id', sa.String(length=36), nullable=False),
        sa.Column('todo_date', sa.Date(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('highlight', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['profile_id'], ['profiles.id']),
        sa.CheckConstraint('highlight BETWEEN 0 AND 3', name='ck_todo_highlight_range'),
    )
    op.create_index('ix_calendar_todos_profile_id', 'calendar_todos', ['profile_id'])

    op.create_table(
        'calendar_leave',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('profile_id', sa.String(length=36), nullable=False),
        sa.Column('leave_date', sa.Date(), nullable=False),
        sa.Column('label', sa.String(length=60), nullable=False, server_default='휴가'),
        sa.ForeignKeyConstraint(['profile_id'], ['profiles.id']),
        sa.UniqueConstraint('profile_id', 'leave_date', name='uq_leave_profile_date'),
    )
    op.create_index('ix_calendar_leave_profile_id', 'calendar_leave', ['profile_id'])


def downgrade() -> None:
    op.drop_index('ix_calendar_leave_profile_id', table_name='calendar_leave')
    op.drop_table('calendar_leave')
    op.drop_index('ix_calendar_todos_profile_id', table_name='calendar_todos')
    op.drop_table('calendar_todos')
    op.drop_index('ix_notice_comments_notice_id', table_name='notice_comments')
    op.drop_table('notice_comments')
    op.drop_table('notices')
    op.drop_index('ix_password_reset_tokens_profile_id', table_name='password_reset_tokens')
    op.drop_table('password_reset_tokens')
    op.drop_index('ix_invites_shop_id', table_name='invites')
    op.drop_table('invites')
