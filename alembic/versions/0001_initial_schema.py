"""Initial GradeBook schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns():
    return [
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def _base_indexes(table):
    op.create_index(op.f(f'ix_{table}_id'), table, ['id'], unique=False)
    op.create_index(op.f(f'ix_{table}_created_at'), table, ['created_at'], unique=False)


def upgrade() -> None:
    op.create_table('schools',
    *_base_columns(),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('address', sa.String(length=500), nullable=False),
    sa.Column('phone', sa.String(length=30), nullable=True),
    sa.Column('email', sa.String(length=254), nullable=True),
    sa.Column('school_domain', sa.String(length=100), nullable=False),
    sa.Column('email_domain', sa.String(length=150), nullable=False),
    sa.Column('active', sa.Boolean(), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('name'),
    sa.UniqueConstraint('email_domain')
    )
    _base_indexes('schools')
    op.create_index('idx_school_active_domain', 'schools', ['active', 'email_domain'], unique=False)

    op.create_table('users',
    *_base_columns(),
    sa.Column('name', sa.String(length=100), nullable=False),
    sa.Column('email', sa.String(length=254), nullable=False),
    sa.Column('password_hash', sa.String(length=255), nullable=False),
    sa.Column('role', sa.String(length=20), nullable=False),
    sa.Column('school_id', sa.Uuid(), nullable=True),
    sa.Column('active', sa.Boolean(), nullable=False),
    sa.Column('mobile_phone', sa.String(length=30), nullable=True),
    sa.Column('personal_email', sa.String(length=254), nullable=True),
    sa.Column('secretary_permissions', sa.JSON(), nullable=False),
    sa.Column('admin_permissions', sa.JSON(), nullable=False),
    sa.Column('can_send_notifications', sa.Boolean(), nullable=False),
    sa.Column('can_add_grade_descriptions', sa.Boolean(), nullable=False),
    sa.Column('require_password_change', sa.Boolean(), nullable=False),
    sa.Column('is_first_login', sa.Boolean(), nullable=False),
    sa.Column('last_login', sa.DateTime(), nullable=True),
    sa.Column('last_password_change', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['school_id'], ['schools.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('email', 'school_id', name='uq_user_email_school')
    )
    _base_indexes('users')
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=False)
    op.create_index(op.f('ix_users_role'), 'users', ['role'], unique=False)
    op.create_index(op.f('ix_users_school_id'), 'users', ['school_id'], unique=False)
    op.create_index('idx_user_school_role', 'users', ['school_id', 'role'], unique=False)

    op.create_table('parent_students',
    sa.Column('parent_id', sa.Uuid(), nullable=False),
    sa.Column('student_id', sa.Uuid(), nullable=False),
    sa.ForeignKeyConstraint(['parent_id'], ['users.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['student_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('parent_id', 'student_id')
    )

    op.create_table('classes',
    *_base_columns(),
    sa.Column('school_id', sa.Uuid(), nullable=False),
    sa.Column('name', sa.String(length=100), nullable=False),
    sa.Column('subject', sa.String(length=100), nullable=False),
    sa.Column('direction', sa.String(length=100), nullable=False),
    sa.Column('school_branch', sa.String(length=100), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('schedule', sa.JSON(), nullable=False),
    sa.Column('active', sa.Boolean(), nullable=False),
    sa.ForeignKeyConstraint(['school_id'], ['schools.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('school_id', 'name', name='uq_class_school_name')
    )
    _base_indexes('classes')
    op.create_index(op.f('ix_classes_school_id'), 'classes', ['school_id'], unique=False)
    op.create_index(op.f('ix_classes_subject'), 'classes', ['subject'], unique=False)

    for table, column in (('class_teachers', 'teacher_id'), ('class_students', 'student_id')):
        op.create_table(table,
        sa.Column('class_id', sa.Uuid(), nullable=False),
        sa.Column(column, sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint([column], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('class_id', column)
        )

    op.create_table('subjects',
    *_base_columns(),
    sa.Column('school_id', sa.Uuid(), nullable=False),
    sa.Column('name', sa.String(length=100), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('directions', sa.JSON(), nullable=False),
    sa.ForeignKeyConstraint(['school_id'], ['schools.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('school_id', 'name', name='uq_subject_school_name')
    )
    _base_indexes('subjects')
    op.create_index(op.f('ix_subjects_school_id'), 'subjects', ['school_id'], unique=False)

    op.create_table('subject_teachers',
    sa.Column('subject_id', sa.Uuid(), nullable=False),
    sa.Column('teacher_id', sa.Uuid(), nullable=False),
    sa.ForeignKeyConstraint(['subject_id'], ['subjects.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['teacher_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('subject_id', 'teacher_id')
    )

    op.create_table('grades',
    *_base_columns(),
    sa.Column('school_id', sa.Uuid(), nullable=False),
    sa.Column('student_id', sa.Uuid(), nullable=False),
    sa.Column('subject_id', sa.Uuid(), nullable=False),
    sa.Column('teacher_id', sa.Uuid(), nullable=False),
    sa.Column('value', sa.Integer(), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('date', sa.Date(), nullable=False),
    sa.CheckConstraint('value >= 0 AND value <= 100', name='ck_grade_value_range'),
    sa.ForeignKeyConstraint(['school_id'], ['schools.id'], ),
    sa.ForeignKeyConstraint(['student_id'], ['users.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['subject_id'], ['subjects.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['teacher_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('student_id', 'subject_id', 'date', 'school_id', name='uq_grade_student_subject_day')
    )
    _base_indexes('grades')
    for column in ('school_id', 'student_id', 'subject_id', 'teacher_id'):
        op.create_index(op.f(f'ix_grades_{column}'), 'grades', [column], unique=False)
    op.create_index('idx_grade_school_date', 'grades', ['school_id', 'date'], unique=False)

    op.create_table('contacts',
    *_base_columns(),
    sa.Column('user_id', sa.Uuid(), nullable=True),
    sa.Column('school_id', sa.Uuid(), nullable=True),
    sa.Column('subject', sa.String(length=200), nullable=False),
    sa.Column('message', sa.Text(), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('read', sa.Boolean(), nullable=False),
    sa.Column('user_name', sa.String(length=100), nullable=True),
    sa.Column('user_email', sa.String(length=254), nullable=True),
    sa.Column('user_role', sa.String(length=20), nullable=True),
    sa.Column('admin_reply', sa.Text(), nullable=True),
    sa.Column('admin_reply_date', sa.DateTime(), nullable=True),
    sa.Column('reply_read', sa.Boolean(), nullable=False),
    sa.Column('is_bug_report', sa.Boolean(), nullable=False),
    sa.Column('is_public_contact', sa.Boolean(), nullable=False),
    sa.Column('client_ip', sa.String(length=64), nullable=True),
    sa.Column('user_agent', sa.String(length=500), nullable=True),
    sa.Column('referrer', sa.String(length=500), nullable=True),
    sa.ForeignKeyConstraint(['school_id'], ['schools.id'], ),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id')
    )
    _base_indexes('contacts')
    op.create_index(op.f('ix_contacts_user_id'), 'contacts', ['user_id'], unique=False)
    op.create_index(op.f('ix_contacts_school_id'), 'contacts', ['school_id'], unique=False)
    op.create_index('idx_contact_school_status', 'contacts', ['school_id', 'status'], unique=False)

    op.create_table('events',
    *_base_columns(),
    sa.Column('title', sa.String(length=200), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('start_date', sa.DateTime(), nullable=False),
    sa.Column('end_date', sa.DateTime(), nullable=False),
    sa.Column('all_day', sa.Boolean(), nullable=False),
    sa.Column('creator_id', sa.Uuid(), nullable=True),
    sa.Column('creator_role', sa.String(length=20), nullable=False),
    sa.Column('school_id', sa.Uuid(), nullable=True),
    sa.Column('target_type', sa.String(length=20), nullable=False),
    sa.Column('specific_users', sa.JSON(), nullable=False),
    sa.Column('schools', sa.JSON(), nullable=False),
    sa.Column('directions', sa.JSON(), nullable=False),
    sa.Column('color', sa.String(length=20), nullable=False),
    sa.Column('tags', sa.JSON(), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.ForeignKeyConstraint(['creator_id'], ['users.id'], ondelete='SET NULL'),
    sa.ForeignKeyConstraint(['school_id'], ['schools.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    _base_indexes('events')
    op.create_index(op.f('ix_events_start_date'), 'events', ['start_date'], unique=False)
    op.create_index(op.f('ix_events_school_id'), 'events', ['school_id'], unique=False)
    op.create_index('idx_event_active_start', 'events', ['is_active', 'start_date'], unique=False)

    op.create_table('subscriptions',
    *_base_columns(),
    sa.Column('user_id', sa.Uuid(), nullable=False),
    sa.Column('school_id', sa.Uuid(), nullable=True),
    sa.Column('is_superadmin', sa.Boolean(), nullable=False),
    sa.Column('endpoint', sa.String(length=1000), nullable=False),
    sa.Column('expiration_time', sa.DateTime(), nullable=True),
    sa.Column('keys_p256dh', sa.String(length=255), nullable=False),
    sa.Column('keys_auth', sa.String(length=255), nullable=False),
    sa.ForeignKeyConstraint(['school_id'], ['schools.id'], ),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('user_id', 'endpoint', name='uq_subscription_user_endpoint')
    )
    _base_indexes('subscriptions')
    op.create_index(op.f('ix_subscriptions_user_id'), 'subscriptions', ['user_id'], unique=False)
    op.create_index(op.f('ix_subscriptions_school_id'), 'subscriptions', ['school_id'], unique=False)

    op.create_table('system_maintenance',
    *_base_columns(),
    sa.Column('is_maintenance_mode', sa.Boolean(), nullable=False),
    sa.Column('maintenance_message', sa.String(length=500), nullable=False),
    sa.Column('estimated_completion', sa.DateTime(), nullable=True),
    sa.Column('last_modified_by', sa.Uuid(), nullable=True),
    sa.Column('reason', sa.String(length=200), nullable=True),
    sa.Column('allowed_roles', sa.JSON(), nullable=False),
    sa.ForeignKeyConstraint(['last_modified_by'], ['users.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id')
    )
    _base_indexes('system_maintenance')

    op.create_table('maintenance_history',
    *_base_columns(),
    sa.Column('maintenance_id', sa.Uuid(), nullable=False),
    sa.Column('action', sa.String(length=20), nullable=False),
    sa.Column('timestamp', sa.DateTime(), nullable=False),
    sa.Column('modified_by', sa.Uuid(), nullable=True),
    sa.Column('reason', sa.String(length=200), nullable=True),
    sa.Column('previous_state', sa.JSON(), nullable=True),
    sa.ForeignKeyConstraint(['maintenance_id'], ['system_maintenance.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['modified_by'], ['users.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id')
    )
    _base_indexes('maintenance_history')
    op.create_index(op.f('ix_maintenance_history_maintenance_id'), 'maintenance_history', ['maintenance_id'], unique=False)

    op.create_table('themes',
    *_base_columns(),
    sa.Column('name', sa.String(length=50), nullable=False),
    sa.Column('description', sa.String(length=200), nullable=False),
    sa.Column('primary_color', sa.String(length=7), nullable=False),
    sa.Column('secondary_color', sa.String(length=7), nullable=False),
    sa.Column('is_default', sa.Boolean(), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('created_by', sa.Uuid(), nullable=True),
    sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id')
    )
    _base_indexes('themes')
    op.create_index('idx_theme_active_default', 'themes', ['is_active', 'is_default'], unique=False)


def downgrade() -> None:
    for table in (
        'themes',
        'maintenance_history',
        'system_maintenance',
        'subscriptions',
        'events',
        'contacts',
        'grades',
        'subject_teachers',
        'subjects',
        'class_students',
        'class_teachers',
        'classes',
        'parent_students',
        'users',
        'schools',
    ):
        op.drop_table(table)
