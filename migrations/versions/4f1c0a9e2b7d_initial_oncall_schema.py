"""initial on-call schema

Revision ID: 4f1c0a9e2b7d
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4f1c0a9e2b7d'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(64), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(80), nullable=False),
        sa.Column('last_name', sa.String(80), nullable=False),
        sa.Column('role', sa.String(16), nullable=False),
        sa.Column('manager_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('paid_leaves', sa.Integer(), nullable=False, server_default='20'),
        sa.Column('sick_leaves', sa.Integer(), nullable=False, server_default='12'),
        sa.Column('comp_offs', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('paid_leaves >= 0', name='ck_users_paid_leaves_nonneg'),
        sa.CheckConstraint('sick_leaves >= 0', name='ck_users_sick_leaves_nonneg'),
        sa.CheckConstraint('comp_offs >= 0', name='ck_users_comp_offs_nonneg'),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_manager_id', 'users', ['manager_id'])

    op.create_table(
        'shifts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('on_call_role', sa.String(10), nullable=False),
        sa.Column('status', sa.String(12), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('date', 'on_call_role', name='uq_shift_date_role'),
    )
    op.create_index('ix_shifts_user_id', 'shifts', ['user_id'])
    op.create_index('ix_shifts_date', 'shifts', ['date'])

    op.create_table(
        'leave_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('type', sa.String(12), nullable=False),
        sa.Column('status', sa.String(12), nullable=False),
        sa.Column('reason', sa.Text()),
        sa.Column('manager_comment', sa.Text()),
        sa.Column('approved_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('responded_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_leave_requests_user_id', 'leave_requests', ['user_id'])
    op.create_index('ix_leave_user_status_range', 'leave_requests',
                    ['user_id', 'status', 'start_date', 'end_date'])

    op.create_table(
        'leave_approval_actions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('leave_request_id', sa.Integer(),
                  sa.ForeignKey('leave_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('comment', sa.Text()),
        sa.Column('acted_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('acted_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_leave_approval_actions_leave_request_id', 'leave_approval_actions', ['leave_request_id'])

    op.create_table(
        'swap_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('requester_shift_id', sa.Integer(), sa.ForeignKey('shifts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('requester_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('target_shift_id', sa.Integer(), sa.ForeignKey('shifts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('target_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=True),
        sa.Column('reason', sa.Text(), nullable=False, server_default=''),
        sa.Column('status', sa.String(12), nullable=False),
        sa.Column('response_notes', sa.Text()),
        sa.Column('responded_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('requested_at', sa.DateTime(), nullable=False),
        sa.Column('responded_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_swap_requests_requester_user_id', 'swap_requests', ['requester_user_id'])
    op.create_index('ix_swap_requests_target_user_id', 'swap_requests', ['target_user_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('related_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])

    op.create_table(
        'change_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('entity', sa.String(10), nullable=False),
        sa.Column('op', sa.String(10), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_change_events_created_at', 'change_events', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_change_events_created_at', table_name='change_events')
    op.drop_table('change_events')
    op.drop_index('ix_notifications_user_id', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('ix_swap_requests_target_user_id', table_name='swap_requests')
    op.drop_index('ix_swap_requests_requester_user_id', table_name='swap_requests')
    op.drop_table('swap_requests')
    op.drop_index('ix_leave_approval_actions_leave_request_id', table_name='leave_approval_actions')
    op.drop_table('leave_approval_actions')
    op.drop_index('ix_leave_user_status_range', table_name='leave_requests')
    op.drop_index('ix_leave_requests_user_id', table_name='leave_requests')
    op.drop_table('leave_requests')
    op.drop_index('ix_shifts_date', table_name='shifts')
    op.drop_index('ix_shifts_user_id', table_name='shifts')
    op.drop_table('shifts')
    op.drop_index('ix_users_manager_id', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
