"""create booking core tables

Revision ID: a1c4e7b2d9f0
Revises:
Create Date: 2025-06-02

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'a1c4e7b2d9f0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


APPOINTMENT_STATUSES = ('pending', 'confirmed', 'in_service', 'completed', 'cancelled', 'no_show')
CALENDAR_ENTRY_TYPES = ('holiday', 'closure', 'special_hours')
RECIPIENT_ROLES = ('client', 'stylist')
NOTIFICATION_TYPES = (
    'appointment_created',
    'appointment_confirmed',
    'appointment_cancelled',
    'appointment_reminder',
    'appointment_completed',
    'appointment_rescheduled',
    'appointment_in_service',
    'appointment_no_show',
)


def _enum(name: str, values: tuple[str, ...]) -> postgresql.ENUM:
    return postgresql.ENUM(*values, name=name, create_type=False)


def upgrade() -> None:
    # Equality on stylist_id inside a gist exclusion constraint
    op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist')

    bind = op.get_bind()
    for name, values in (
        ('appointment_status', APPOINTMENT_STATUSES),
        ('calendar_entry_type', CALENDAR_ENTRY_TYPES),
        ('recipient_role', RECIPIENT_ROLES),
        ('notification_type', NOTIFICATION_TYPES),
    ):
        _enum(name, values).create(bind, checkfirst=True)

    # Branches
    op.create_table(
        'branches',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('operating_hours', postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )

    # Calendar overrides
    op.create_table(
        'calendar_entries',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('branch_id', sa.String(64), nullable=False),
        sa.Column('date', sa.DATE(), nullable=False),
        sa.Column('type', _enum('calendar_entry_type', CALENDAR_ENTRY_TYPES), nullable=False),
        sa.Column('title', sa.String(200), nullable=True),
        sa.Column('special_hours', postgresql.JSONB(), nullable=True),
        sa.Column('status', sa.String(20), nullable=True, server_default='active'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_calendar_entries_branch_id', 'calendar_entries', ['branch_id'])
    op.create_index('idx_calendar_entries_branch_date', 'calendar_entries', ['branch_id', 'date'])

    # Appointments
    op.create_table(
        'appointments',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('branch_id', sa.String(64), nullable=False),
        sa.Column('client_id', sa.String(64), nullable=True),
        sa.Column('client_name', sa.String(200), nullable=True),
        sa.Column('is_guest', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('service_id', sa.String(64), nullable=True),
        sa.Column('stylist_id', sa.String(64), nullable=True),
        sa.Column('services', postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('appointment_date', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=True),
        sa.Column('status', _enum('appointment_status', APPOINTMENT_STATUSES), nullable=False,
                  server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('post_service_notes', sa.Text(), nullable=True),
        sa.Column('history', postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('created_by', sa.String(64), nullable=True),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_by', sa.String(64), nullable=True),
        sa.Column('cancelled_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('reminder_sent_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('duration IS NULL OR duration > 0', name='check_appointment_duration_positive'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_appointments_branch_id', 'appointments', ['branch_id'])
    op.create_index('ix_appointments_client_id', 'appointments', ['client_id'])
    op.create_index('ix_appointments_appointment_date', 'appointments', ['appointment_date'])
    op.create_index('ix_appointments_status', 'appointments', ['status'])
    op.create_index('idx_appointments_branch_date_status', 'appointments',
                    ['branch_id', 'appointment_date', 'status'])
    op.create_index('idx_appointments_reminder', 'appointments', ['appointment_date', 'status'],
                    postgresql_where=sa.text('reminder_sent_at IS NULL'))

    # Stylist -> appointment lookup
    op.create_table(
        'appointment_stylists',
        sa.Column('appointment_id', sa.UUID(), nullable=False),
        sa.Column('stylist_id', sa.String(64), nullable=False),
        sa.ForeignKeyConstraint(['appointment_id'], ['appointments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('appointment_id', 'stylist_id'),
    )
    op.create_index('idx_appointment_stylists_stylist', 'appointment_stylists', ['stylist_id'])

    # Per-stylist time ranges held by occupying appointments
    op.create_table(
        'stylist_slot_reservations',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('stylist_id', sa.String(64), nullable=False),
        sa.Column('period', postgresql.TSTZRANGE(), nullable=False),
        sa.Column('appointment_id', sa.UUID(), nullable=False),
        sa.ForeignKeyConstraint(['appointment_id'], ['appointments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        postgresql.ExcludeConstraint(
            ('stylist_id', '='),
            ('period', '&&'),
            name='excl_stylist_reservation_overlap',
            using='gist',
        ),
    )
    op.create_index('ix_stylist_slot_reservations_appointment_id', 'stylist_slot_reservations',
                    ['appointment_id'])

    # Notifications
    op.create_table(
        'notifications',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('type', _enum('notification_type', NOTIFICATION_TYPES), nullable=False),
        sa.Column('recipient_id', sa.String(64), nullable=False),
        sa.Column('recipient_role', _enum('recipient_role', RECIPIENT_ROLES), nullable=False),
        sa.Column('appointment_id', sa.UUID(), nullable=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['appointment_id'], ['appointments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_notifications_recipient_unread', 'notifications', ['recipient_id', 'is_read'])


def downgrade() -> None:
    op.drop_index('idx_notifications_recipient_unread', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('ix_stylist_slot_reservations_appointment_id', table_name='stylist_slot_reservations')
    op.drop_table('stylist_slot_reservations')
    op.drop_index('idx_appointment_stylists_stylist', table_name='appointment_stylists')
    op.drop_table('appointment_stylists')
    op.drop_index('idx_appointments_reminder', table_name='appointments')
    op.drop_index('idx_appointments_branch_date_status', table_name='appointments')
    op.drop_index('ix_appointments_status', table_name='appointments')
    op.drop_index('ix_appointments_appointment_date', table_name='appointments')
    op.drop_index('ix_appointments_client_id', table_name='appointments')
    op.drop_index('ix_appointments_branch_id', table_name='appointments')
    op.drop_table('appointments')
    op.drop_index('idx_calendar_entries_branch_date', table_name='calendar_entries')
    op.drop_index('ix_calendar_entries_branch_id', table_name='calendar_entries')
    op.drop_table('calendar_entries')
    op.drop_table('branches')
    op.execute('DROP TYPE IF EXISTS notification_type')
    op.execute('DROP TYPE IF EXISTS recipient_role')
    op.execute('DROP TYPE IF EXISTS calendar_entry_type')
    op.execute('DROP TYPE IF EXISTS appointment_status')
