"""Initial database schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _uuid_pk() -> sa.Column:
    return sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False)


def _temple_fk(nullable: bool = False) -> sa.Column:
    return sa.Column('temple_id', postgresql.UUID(as_uuid=True), nullable=nullable)


def upgrade() -> None:
    """Upgrade database schema."""
    # Create temples table
    op.create_table('temples',
        _uuid_pk(),
        sa.Column('slug', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('city', sa.String(length=128), nullable=False),
        sa.Column('state', sa.String(length=128), nullable=False),
        sa.Column('address', sa.String(length=512), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('opening_time', sa.String(length=5), nullable=False),
        sa.Column('closing_time', sa.String(length=5), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('capacity > 0', name='ck_temple_capacity_positive'),
        sa.CheckConstraint('length(slug) > 0', name='ck_temple_slug_not_empty'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug')
    )
    op.create_index(op.f('ix_temples_name'), 'temples', ['name'], unique=False)
    op.create_index(op.f('ix_temples_slug'), 'temples', ['slug'], unique=False)

    # Create bookings table
    op.create_table('bookings',
        _uuid_pk(),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        _temple_fk(),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('time_slot', sa.String(length=20), nullable=False),
        sa.Column('visitor_count', sa.Integer(), nullable=False),
        sa.Column('special_requirements', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('payment_status', sa.String(length=20), nullable=False),
        sa.Column('payment_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('visitor_count > 0', name='ck_booking_visitor_count_positive'),
        sa.CheckConstraint('visitor_count <= 10', name='ck_booking_visitor_count_max'),
        sa.CheckConstraint('payment_amount >= 0', name='ck_booking_payment_amount_non_negative'),
        sa.CheckConstraint('length(user_id) > 0', name='ck_booking_user_id_not_empty'),
        sa.ForeignKeyConstraint(['temple_id'], ['temples.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bookings_user_id'), 'bookings', ['user_id'], unique=False)
    op.create_index(op.f('ix_bookings_temple_id'), 'bookings', ['temple_id'], unique=False)
    op.create_index(op.f('ix_bookings_booking_date'), 'bookings', ['booking_date'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)

    # Create queue_status table
    op.create_table('queue_status',
        _uuid_pk(),
        sa.Column('booking_id', postgresql.UUID(as_uuid=True), nullable=False),
        _temple_fk(),
        sa.Column('current_position', sa.Integer(), nullable=False),
        sa.Column('total_in_queue', sa.Integer(), nullable=False),
        sa.Column('estimated_wait_minutes', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('last_updated', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('current_position >= 1', name='ck_queue_position_positive'),
        sa.CheckConstraint('total_in_queue >= current_position', name='ck_queue_total_gte_position'),
        sa.CheckConstraint('estimated_wait_minutes >= 0', name='ck_queue_wait_non_negative'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['temple_id'], ['temples.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_queue_status_booking_id'), 'queue_status', ['booking_id'], unique=True)
    op.create_index(op.f('ix_queue_status_temple_id'), 'queue_status', ['temple_id'], unique=False)
    op.create_index(op.f('ix_queue_status_status'), 'queue_status', ['status'], unique=False)

    # Create crowd_data table
    op.create_table('crowd_data',
        _uuid_pk(),
        _temple_fk(),
        sa.Column('crowd_level', sa.String(length=20), nullable=False),
        sa.Column('crowd_count', sa.Integer(), nullable=False),
        sa.Column('capacity_percentage', sa.Float(), nullable=True),
        sa.Column('recorded_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint("crowd_level IN ('low', 'moderate', 'high')", name='ck_crowd_level_valid'),
        sa.CheckConstraint('crowd_count >= 0', name='ck_crowd_count_non_negative'),
        sa.CheckConstraint(
            'capacity_percentage IS NULL OR (capacity_percentage >= 0 AND capacity_percentage <= 100)',
            name='ck_crowd_capacity_percentage_range'
        ),
        sa.ForeignKeyConstraint(['temple_id'], ['temples.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_crowd_data_temple_id'), 'crowd_data', ['temple_id'], unique=False)
    op.create_index('ix_crowd_data_temple_recorded', 'crowd_data', ['temple_id', 'recorded_at'], unique=False)

    # Create parking_data table
    op.create_table('parking_data',
        _uuid_pk(),
        _temple_fk(),
        sa.Column('area_name', sa.String(length=255), nullable=False),
        sa.Column('total_spots', sa.Integer(), nullable=False),
        sa.Column('available_spots', sa.Integer(), nullable=False),
        sa.Column('last_updated', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('total_spots >= 0', name='ck_parking_total_non_negative'),
        sa.CheckConstraint('available_spots >= 0', name='ck_parking_available_non_negative'),
        sa.CheckConstraint('available_spots <= total_spots', name='ck_parking_available_lte_total'),
        sa.ForeignKeyConstraint(['temple_id'], ['temples.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_parking_data_temple_id'), 'parking_data', ['temple_id'], unique=False)

    # Create traffic_data table
    op.create_table('traffic_data',
        _uuid_pk(),
        _temple_fk(),
        sa.Column('route_name', sa.String(length=255), nullable=False),
        sa.Column('congestion_level', sa.String(length=20), nullable=True),
        sa.Column('estimated_travel_time_minutes', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('last_updated', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint(
            "congestion_level IS NULL OR congestion_level IN ('low', 'moderate', 'high')",
            name='ck_traffic_congestion_level_valid'
        ),
        sa.CheckConstraint(
            'estimated_travel_time_minutes IS NULL OR estimated_travel_time_minutes >= 0',
            name='ck_traffic_travel_time_non_negative'
        ),
        sa.ForeignKeyConstraint(['temple_id'], ['temples.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_traffic_data_temple_id'), 'traffic_data', ['temple_id'], unique=False)
    op.create_index(op.f('ix_traffic_data_last_updated'), 'traffic_data', ['last_updated'], unique=False)

    # Create payment_transactions table
    op.create_table('payment_transactions',
        _uuid_pk(),
        sa.Column('booking_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('payment_method', sa.String(length=20), nullable=False),
        sa.Column('transaction_reference', sa.String(length=64), nullable=False),
        sa.Column('upi_string', sa.Text(), nullable=False),
        sa.Column('utr_number', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('amount > 0', name='ck_payment_amount_positive'),
        sa.CheckConstraint('length(transaction_reference) > 0', name='ck_payment_reference_not_empty'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_payment_transactions_booking_id'), 'payment_transactions', ['booking_id'], unique=False)
    op.create_index(op.f('ix_payment_transactions_user_id'), 'payment_transactions', ['user_id'], unique=False)
    op.create_index(
        op.f('ix_payment_transactions_transaction_reference'),
        'payment_transactions',
        ['transaction_reference'],
        unique=True
    )
    op.create_index(op.f('ix_payment_transactions_status'), 'payment_transactions', ['status'], unique=False)
    op.create_index(op.f('ix_payment_transactions_created_at'), 'payment_transactions', ['created_at'], unique=False)

    # Create notifications table
    op.create_table('notifications',
        _uuid_pk(),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('priority', sa.String(length=20), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)
    op.create_index(op.f('ix_notifications_created_at'), 'notifications', ['created_at'], unique=False)

    # Create emergency_incidents table
    op.create_table('emergency_incidents',
        _uuid_pk(),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        _temple_fk(nullable=True),
        sa.Column('incident_type', sa.String(length=50), nullable=False),
        sa.Column('severity', sa.String(length=20), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('location_lat', sa.Float(), nullable=True),
        sa.Column('location_lng', sa.Float(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('responder_id', sa.String(length=128), nullable=True),
        sa.Column('response_notes', sa.Text(), nullable=True),
        sa.Column('reported_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['temple_id'], ['temples.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_emergency_incidents_user_id'), 'emergency_incidents', ['user_id'], unique=False)
    op.create_index(op.f('ix_emergency_incidents_temple_id'), 'emergency_incidents', ['temple_id'], unique=False)
    op.create_index(op.f('ix_emergency_incidents_status'), 'emergency_incidents', ['status'], unique=False)
    op.create_index(op.f('ix_emergency_incidents_reported_at'), 'emergency_incidents', ['reported_at'], unique=False)

    # Create user_roles table
    op.create_table('user_roles',
        _uuid_pk(),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        _temple_fk(nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['temple_id'], ['temples.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'role', 'temple_id', name='uq_user_role_scope')
    )
    op.create_index(op.f('ix_user_roles_user_id'), 'user_roles', ['user_id'], unique=False)
    op.create_index(op.f('ix_user_roles_role'), 'user_roles', ['role'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('user_roles')
    op.drop_table('emergency_incidents')
    op.drop_table('notifications')
    op.drop_table('payment_transactions')
    op.drop_table('traffic_data')
    op.drop_table('parking_data')
    op.drop_table('crowd_data')
    op.drop_table('queue_status')
    op.drop_table('bookings')
    op.drop_table('temples')
