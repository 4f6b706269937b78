"""create messaging core tables

Revision ID: 3f1c9a2b7d40
Revises:
Create Date: 2026-10-19 09:12:31.402118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c9a2b7d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns():
    return [
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
    ]


def _base_indexes(table: str):
    op.create_index(f'ix_{table}_created_at', table, ['created_at'])
    op.create_index(f'ix_{table}_is_deleted', table, ['is_deleted'])


def upgrade() -> None:
    op.create_table(
        'users',
        *_base_columns(),
        sa.Column('full_name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('role', sa.String(9), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
    )
    _base_indexes('users')
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'class_divisions',
        *_base_columns(),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('academic_year', sa.String(10), nullable=False),
        sa.UniqueConstraint('name', 'academic_year', name='unique_class_division_per_year'),
    )
    _base_indexes('class_divisions')

    op.create_table(
        'students',
        *_base_columns(),
        sa.Column('full_name', sa.String(200), nullable=False),
        sa.Column('admission_number', sa.String(50), nullable=True, unique=True),
        sa.Column('class_division_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('class_divisions.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
    )
    _base_indexes('students')
    op.create_index('ix_students_class_division_id', 'students', ['class_division_id'])

    op.create_table(
        'teacher_class_assignments',
        *_base_columns(),
        sa.Column('teacher_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('class_division_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('class_divisions.id'), nullable=False),
        sa.Column('assignment_type', sa.String(17), nullable=False),
        sa.Column('subject', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_primary', sa.Boolean(), nullable=False),
    )
    _base_indexes('teacher_class_assignments')
    op.create_index('ix_teacher_class_assignments_teacher_id', 'teacher_class_assignments', ['teacher_id'])
    op.create_index('ix_teacher_class_assignments_class_division_id', 'teacher_class_assignments', ['class_division_id'])
    op.create_index('idx_assignment_class_active', 'teacher_class_assignments', ['class_division_id', 'is_active'])
    op.create_index('idx_assignment_teacher_active', 'teacher_class_assignments', ['teacher_id', 'is_active'])

    op.create_table(
        'guardian_student_links',
        *_base_columns(),
        sa.Column('guardian_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('student_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('relationship', sa.String(30), nullable=False),
        sa.Column('is_primary_guardian', sa.Boolean(), nullable=False),
        sa.UniqueConstraint('guardian_id', 'student_id', name='unique_guardian_student'),
    )
    _base_indexes('guardian_student_links')
    op.create_index('ix_guardian_student_links_guardian_id', 'guardian_student_links', ['guardian_id'])
    op.create_index('ix_guardian_student_links_student_id', 'guardian_student_links', ['student_id'])

    op.create_table(
        'chat_threads',
        *_base_columns(),
        sa.Column('title', sa.String(200), nullable=True),
        sa.Column('thread_type', sa.String(6), nullable=False),
        sa.Column('status', sa.String(8), nullable=False),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
    )
    _base_indexes('chat_threads')

    op.create_table(
        'chat_participants',
        *_base_columns(),
        sa.Column('thread_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('chat_threads.id'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('role', sa.String(9), nullable=False),
        sa.UniqueConstraint('thread_id', 'user_id', name='unique_thread_participant'),
    )
    _base_indexes('chat_participants')
    op.create_index('ix_chat_participants_thread_id', 'chat_participants', ['thread_id'])
    op.create_index('ix_chat_participants_user_id', 'chat_participants', ['user_id'])

    op.create_table(
        'chat_messages',
        *_base_columns(),
        sa.Column('thread_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('chat_threads.id'), nullable=False),
        sa.Column('sender_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('sender_role', sa.String(9), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('message_type', sa.String(6), nullable=False),
        sa.Column('approval_status', sa.String(8), nullable=False),
        sa.Column('rejection_reason', sa.String(500), nullable=True),
        sa.Column('approver_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('edited_at', sa.DateTime(timezone=True), nullable=True),
    )
    _base_indexes('chat_messages')
    op.create_index('ix_chat_messages_thread_id', 'chat_messages', ['thread_id'])
    op.create_index('ix_chat_messages_sender_id', 'chat_messages', ['sender_id'])
    op.create_index('idx_chat_message_thread_time', 'chat_messages', ['thread_id', 'created_at'])
    op.create_index('idx_chat_message_approval', 'chat_messages', ['approval_status', 'created_at'])

    op.create_table(
        'device_tokens',
        *_base_columns(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('device_token', sa.String(512), nullable=False),
        sa.Column('platform', sa.String(7), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('user_id', 'device_token', name='unique_user_device_token'),
    )
    _base_indexes('device_tokens')
    op.create_index('ix_device_tokens_user_id', 'device_tokens', ['user_id'])

    op.create_table(
        'notification_records',
        *_base_columns(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('student_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('students.id'), nullable=True),
        sa.Column('notification_type', sa.String(16), nullable=False),
        sa.Column('priority', sa.String(6), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('related_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
    )
    _base_indexes('notification_records')
    op.create_index('ix_notification_records_user_id', 'notification_records', ['user_id'])
    op.create_index('idx_notification_user_unread', 'notification_records', ['user_id', 'is_read'])


def downgrade() -> None:
    for table in (
        'notification_records',
        'device_tokens',
        'chat_messages',
        'chat_participants',
        'chat_threads',
        'guardian_student_links',
        'teacher_class_assignments',
        'students',
        'class_divisions',
        'users',
    ):
        op.drop_table(table)
