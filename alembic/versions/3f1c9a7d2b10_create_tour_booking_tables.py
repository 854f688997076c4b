"""create tour booking tables

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


userrole_enum = sa.Enum('traveler', 'admin', 'system_admin', name='userrole')
difficultylevel_enum = sa.Enum('easy', 'moderate', 'challenging', name='difficultylevel')
bookingstatus_enum = sa.Enum('pending', 'confirmed', 'cancelled', 'completed', name='bookingstatus')
paymentmethod_enum = sa.Enum('chapa', 'telebirr', 'cbe_birr', 'credit_card', name='paymentmethod')
paymentstatus_enum = sa.Enum('pending', 'completed', 'failed', 'refunded', name='paymentstatus')


def _timestamps():
    return [
        sa.Column('created_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'user_profiles',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(32), nullable=True),
        sa.Column('role', userrole_enum, nullable=False, server_default='traveler'),
        *_timestamps(),
    )

    op.create_table(
        'destinations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('country', sa.String(128), nullable=False),
        sa.Column('image_url', sa.String(512), nullable=True),
        sa.Column('popular', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index('ix_destinations_id', 'destinations', ['id'])

    op.create_table(
        'packages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('destination_id', sa.Integer(), sa.ForeignKey('destinations.id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('max_participants', sa.Integer(), nullable=False),
        sa.Column('available_slots', sa.Integer(), nullable=False),
        sa.Column('includes', sa.JSON(), nullable=True),
        sa.Column('excludes', sa.JSON(), nullable=True),
        sa.Column('itinerary', sa.JSON(), nullable=True),
        sa.Column('difficulty_level', difficultylevel_enum, nullable=False, server_default='moderate'),
        sa.Column('image_url', sa.String(512), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('featured', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.CheckConstraint('available_slots >= 0', name='ck_packages_slots_non_negative'),
        sa.CheckConstraint('available_slots <= max_participants', name='ck_packages_slots_within_capacity'),
    )
    op.create_index('ix_packages_id', 'packages', ['id'])
    op.create_index('ix_packages_destination_id', 'packages', ['destination_id'])
    op.create_index('ix_packages_active_created', 'packages', ['active', 'created_at'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(64), sa.ForeignKey('user_profiles.id'), nullable=False),
        sa.Column('package_id', sa.Integer(), sa.ForeignKey('packages.id'), nullable=False),
        sa.Column('booking_date', sa.TIMESTAMP(), nullable=False),
        sa.Column('travel_date', sa.Date(), nullable=False),
        sa.Column('participants', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', bookingstatus_enum, nullable=False, server_default='pending'),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('idempotency_key', sa.String(128), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('participants >= 1', name='ck_bookings_participants_positive'),
        sa.UniqueConstraint('user_id', 'idempotency_key', name='uq_bookings_user_idempotency_key'),
    )
    op.create_index('ix_bookings_id', 'bookings', ['id'])
    op.create_index('ix_bookings_user_id', 'bookings', ['user_id'])
    op.create_index('ix_bookings_package_id', 'bookings', ['package_id'])
    op.create_index('ix_bookings_status', 'bookings', ['status'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id', ondelete='CASCADE'),
                  nullable=False, unique=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_method', paymentmethod_enum, nullable=False),
        sa.Column('transaction_id', sa.String(64), nullable=True, unique=True),
        sa.Column('status', paymentstatus_enum, nullable=False, server_default='pending'),
        sa.Column('payment_date', sa.TIMESTAMP(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=True),
    )
    op.create_index('ix_payments_id', 'payments', ['id'])

    op.create_table(
        'reviews',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(64), sa.ForeignKey('user_profiles.id'), nullable=False),
        sa.Column('package_id', sa.Integer(), sa.ForeignKey('packages.id'), nullable=True),
        sa.Column('destination_id', sa.Integer(), sa.ForeignKey('destinations.id'), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('rating >= 1 AND rating <= 5', name='ck_reviews_rating_range'),
    )
    op.create_index('ix_reviews_id', 'reviews', ['id'])
    op.create_index('ix_reviews_user_id', 'reviews', ['user_id'])
    op.create_index('ix_reviews_package_id', 'reviews', ['package_id'])
    op.create_index('ix_reviews_destination_id', 'reviews', ['destination_id'])

    op.create_table(
        'outbox_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('topic', sa.String(255), nullable=False),
        sa.Column('payload', sa.Text(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=True),
    )
    op.create_index('ix_outbox_events_id', 'outbox_events', ['id'])
    op.create_index('ix_outbox_events_status', 'outbox_events', ['status'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('outbox_events')
    op.drop_table('reviews')
    op.drop_table('payments')
    op.drop_table('bookings')
    op.drop_table('packages')
    op.drop_table('destinations')
    op.drop_table('user_profiles')

    bind = op.get_bind()
    for enum in (paymentstatus_enum, paymentmethod_enum, bookingstatus_enum, difficultylevel_enum, userrole_enum):
        enum.drop(bind, checkfirst=True)
