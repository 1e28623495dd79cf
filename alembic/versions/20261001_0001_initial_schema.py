"""initial schema: users, subjects, tutor applications, sessions, chat, notifications

Revision ID: 20261001_0001
Revises:
Create Date: 2026-10-01
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = '20261001_0001'
down_revision = None
branch_labels = None
depends_on = None


def _ts(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


user_role = sa.Enum('STUDENT', 'TUTOR', 'ADMIN', name='user_role_enum')
# Second use of the same type must not emit CREATE TYPE again
user_role_existing = postgresql.ENUM('STUDENT', 'TUTOR', 'ADMIN', name='user_role_enum', create_type=False)


def upgrade() -> None:
    # ── Users ─────────────────────────────────────────────────────────────────
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('avatar_url', sa.Text, nullable=True),
        sa.Column('programme', sa.String(255), nullable=True),
        sa.Column('role', user_role, nullable=False),
        sa.Column(
            'verification_status',
            sa.Enum('PENDING', 'AUTO_VERIFIED', 'REJECTED', name='verification_status_enum'),
            nullable=False,
        ),
        sa.Column('is_tutor_approved', sa.Boolean, nullable=False),
        sa.Column('is_deactivated', sa.Boolean, nullable=False),
        sa.Column('avg_rating', sa.Float, nullable=True),
        sa.Column('rating_count', sa.Integer, nullable=False),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_verification_status', 'users', ['verification_status'])
    op.create_index('ix_users_is_tutor_approved', 'users', ['is_tutor_approved'])

    op.create_table(
        'user_role_assignments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', user_role_existing, nullable=False),
        _ts('created_at'),
        sa.UniqueConstraint('user_id', 'role', name='uq_user_role'),
    )
    op.create_index('ix_user_role_assignments_user_id', 'user_role_assignments', ['user_id'])

    # ── Subjects ──────────────────────────────────────────────────────────────
    op.create_table(
        'subjects',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('code', sa.String(32), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('aliases', sa.Text, nullable=True),
        _ts('created_at'),
    )
    op.create_index('ix_subjects_code', 'subjects', ['code'], unique=True)

    op.create_table(
        'tutor_subjects',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tutor_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subject_id', sa.Uuid(), sa.ForeignKey('subjects.id', ondelete='CASCADE'), nullable=False),
        _ts('created_at'),
        sa.UniqueConstraint('tutor_id', 'subject_id', name='uq_tutor_subject'),
    )
    op.create_index('ix_tutor_subjects_tutor_id', 'tutor_subjects', ['tutor_id'])
    op.create_index('ix_tutor_subjects_subject_id', 'tutor_subjects', ['subject_id'])

    # ── Tutor Applications ────────────────────────────────────────────────────
    op.create_table(
        'tutor_applications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subjects', sa.Text, nullable=False),
        sa.Column('cgpa', sa.Float, nullable=True),
        sa.Column('availability', sa.Text, nullable=True),
        sa.Column('transcript_path', sa.Text, nullable=True),
        sa.Column(
            'status',
            sa.Enum('PENDING', 'APPROVED', 'REJECTED', name='tutor_application_status_enum'),
            nullable=False,
        ),
        sa.Column('rejection_reason', sa.Text, nullable=True),
        _ts('reviewed_at', nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('ix_tutor_applications_user_id', 'tutor_applications', ['user_id'])
    op.create_index('ix_tutor_applications_status', 'tutor_applications', ['status'])
    op.create_index('ix_tutor_applications_created_at', 'tutor_applications', ['created_at'])

    # ── Tutoring Sessions ─────────────────────────────────────────────────────
    op.create_table(
        'tutoring_sessions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tutor_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('subject_id', sa.Uuid(), sa.ForeignKey('subjects.id', ondelete='RESTRICT'), nullable=False),
        _ts('scheduled_at'),
        sa.Column('duration_min', sa.Integer, nullable=False),
        _ts('ends_at', nullable=True),
        sa.Column(
            'status',
            sa.Enum(
                'PENDING', 'ACCEPTED', 'REJECTED', 'CANCELLED', 'COMPLETED',
                name='session_status_enum',
            ),
            nullable=False,
        ),
        _ts('proposed_at', nullable=True),
        _ts('proposed_end_at', nullable=True),
        sa.Column('proposed_note', sa.Text, nullable=True),
        sa.Column(
            'proposal_status',
            sa.Enum('PENDING', 'ACCEPTED', 'REJECTED', name='proposal_status_enum'),
            nullable=True,
        ),
        sa.Column(
            'proposed_by_user_id', sa.Uuid(),
            sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True,
        ),
        _ts('cancelled_at', nullable=True),
        sa.Column('cancel_reason', sa.Text, nullable=True),
        _ts('rescheduled_at', nullable=True),
        sa.Column('calendar_uid', sa.String(255), nullable=True),
        sa.Column('calendar_sequence', sa.Integer, nullable=False),
        sa.Column('student_reminder_email_id', sa.String(255), nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
    )
    for column in ('student_id', 'tutor_id', 'subject_id', 'scheduled_at', 'ends_at', 'status', 'created_at'):
        op.create_index(f'ix_tutoring_sessions_{column}', 'tutoring_sessions', [column])

    op.create_table(
        'session_ratings',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'session_id', sa.Uuid(),
            sa.ForeignKey('tutoring_sessions.id', ondelete='CASCADE'), nullable=False, unique=True,
        ),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tutor_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('rating', sa.Integer, nullable=False),
        sa.Column('comment', sa.String(500), nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('ix_session_ratings_tutor_id', 'session_ratings', ['tutor_id'])

    op.create_table(
        'session_reviews',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'session_id', sa.Uuid(),
            sa.ForeignKey('tutoring_sessions.id', ondelete='CASCADE'), nullable=False, unique=True,
        ),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tutor_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('rating', sa.Integer, nullable=False),
        sa.Column('feedback', sa.Text, nullable=True),
        sa.Column('confirmed', sa.Boolean, nullable=True),
        _ts('created_at'),
    )

    op.create_table(
        'session_reminders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'session_id', sa.Uuid(),
            sa.ForeignKey('tutoring_sessions.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('kind', sa.Enum('H24', 'H1', 'M5', name='reminder_kind_enum'), nullable=False),
        _ts('send_at'),
        _ts('created_at'),
        sa.UniqueConstraint('session_id', 'kind', name='uq_session_reminder_kind'),
    )

    # ── Chat ──────────────────────────────────────────────────────────────────
    op.create_table(
        'chat_channels',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'session_id', sa.Uuid(),
            sa.ForeignKey('tutoring_sessions.id', ondelete='CASCADE'), nullable=False, unique=True,
        ),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tutor_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        _ts('close_at', nullable=True),
        _ts('closed_at', nullable=True),
        _ts('created_at'),
    )
    op.create_index('ix_chat_channels_student_id', 'chat_channels', ['student_id'])
    op.create_index('ix_chat_channels_tutor_id', 'chat_channels', ['tutor_id'])
    op.create_index('ix_chat_channels_created_at', 'chat_channels', ['created_at'])

    op.create_table(
        'chat_messages',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'channel_id', sa.Uuid(),
            sa.ForeignKey('chat_channels.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('sender_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('text', sa.Text, nullable=False),
        _ts('created_at'),
    )
    op.create_index('ix_chat_messages_channel_id', 'chat_messages', ['channel_id'])
    op.create_index('ix_chat_messages_created_at', 'chat_messages', ['created_at'])

    op.create_table(
        'chat_reads',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'channel_id', sa.Uuid(),
            sa.ForeignKey('chat_channels.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        _ts('last_read_at', nullable=True),
        sa.UniqueConstraint('channel_id', 'user_id', name='uq_chat_read_channel_user'),
    )

    # ── Notifications ─────────────────────────────────────────────────────────
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('notification_type', sa.String(64), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('body', sa.Text, nullable=True),
        sa.Column('extra_data', sa.JSON().with_variant(postgresql.JSONB(), 'postgresql'), nullable=True),
        sa.Column('is_read', sa.Boolean, nullable=False),
        _ts('read_at', nullable=True),
        _ts('created_at'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_notification_type', 'notifications', ['notification_type'])
    op.create_index('ix_notifications_is_read', 'notifications', ['is_read'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])


def downgrade() -> None:
    for table in (
        'notifications',
        'chat_reads',
        'chat_messages',
        'chat_channels',
        'session_reminders',
        'session_reviews',
        'session_ratings',
        'tutoring_sessions',
        'tutor_applications',
        'tutor_subjects',
        'subjects',
        'user_role_assignments',
        'users',
    ):
        op.drop_table(table)

    # Enum types outlive their tables on PostgreSQL
    bind = op.get_bind()
    for enum_name in (
        'reminder_kind_enum',
        'proposal_status_enum',
        'session_status_enum',
        'tutor_application_status_enum',
        'verification_status_enum',
        'user_role_enum',
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
