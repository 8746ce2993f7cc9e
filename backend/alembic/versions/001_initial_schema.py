"""Initial schema: users, listings, bookings, audit log

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

Adds:
- userrole, listingcategory, currency, bookingstatus, paymentstatus,
  cancelledbyrole and auditaction enums
- users, listings, bookings and audit_log tables
- Booking pricing and cancellation-record columns
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create enums using raw SQL to avoid SQLAlchemy auto-creation issues
    op.execute("CREATE TYPE userrole AS ENUM ('guest', 'host', 'admin')")
    op.execute("CREATE TYPE listingcategory AS ENUM ('stay', 'vehicle')")
    op.execute("CREATE TYPE currency AS ENUM ('DZD', 'EUR')")
    op.execute(
        "CREATE TYPE bookingstatus AS ENUM ("
        "'pending', 'pending_payment', 'confirmed', 'paid', 'active', 'completed', "
        "'cancelled_by_guest', 'cancelled_by_host', 'cancelled_by_admin', 'expired', 'disputed')"
    )
    op.execute(
        "CREATE TYPE paymentstatus AS ENUM ("
        "'pending', 'authorized', 'paid', 'failed', 'refunded', 'partially_refunded', 'refund_pending')"
    )
    op.execute("CREATE TYPE cancelledbyrole AS ENUM ('guest', 'host', 'admin')")
    op.execute("CREATE TYPE auditaction AS ENUM ('booking_cancelled', 'refund_instructed')")

    op.execute("""
        CREATE TABLE users (
            id UUID PRIMARY KEY,
            firebase_uid VARCHAR(128) NOT NULL UNIQUE,
            email VARCHAR(255) NOT NULL UNIQUE,
            full_name VARCHAR(255),
            role userrole NOT NULL DEFAULT 'guest',
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT now(),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT now()
        )
    """)
    op.create_index('ix_users_firebase_uid', 'users', ['firebase_uid'])
    op.create_index('ix_users_email', 'users', ['email'])

    op.execute("""
        CREATE TABLE listings (
            id UUID PRIMARY KEY,
            host_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            title VARCHAR(255) NOT NULL,
            category listingcategory NOT NULL DEFAULT 'stay',
            cancellation_policy VARCHAR(50) NOT NULL DEFAULT 'moderate',
            created_at TIMESTAMP WITH TIME ZONE DEFAULT now()
        )
    """)
    op.create_index('ix_listings_host_id', 'listings', ['host_id'])

    op.execute("""
        CREATE TABLE bookings (
            id UUID PRIMARY KEY,
            listing_id UUID NOT NULL REFERENCES listings(id) ON DELETE RESTRICT,
            guest_id UUID NOT NULL REFERENCES users(id) ON DELETE RESTRICT,
            host_id UUID NOT NULL REFERENCES users(id) ON DELETE RESTRICT,
            start_date TIMESTAMP WITH TIME ZONE NOT NULL,
            end_date TIMESTAMP WITH TIME ZONE NOT NULL,
            nightly_price_cents INTEGER NOT NULL,
            nights INTEGER NOT NULL,
            subtotal_cents INTEGER NOT NULL,
            cleaning_fee_cents INTEGER NOT NULL DEFAULT 0,
            service_fee_cents INTEGER NOT NULL DEFAULT 0,
            taxes_cents INTEGER NOT NULL DEFAULT 0,
            total_amount_cents INTEGER NOT NULL,
            currency currency NOT NULL,
            status bookingstatus NOT NULL DEFAULT 'pending',
            payment_status paymentstatus NOT NULL DEFAULT 'pending',
            payment_reference VARCHAR(255),
            cancelled_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            cancelled_by_role cancelledbyrole,
            cancelled_at TIMESTAMP WITH TIME ZONE,
            cancellation_reason TEXT,
            refund_amount_cents INTEGER,
            cancellation_fee_cents INTEGER,
            refund_reference VARCHAR(255),
            created_at TIMESTAMP WITH TIME ZONE,
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT now(),
            CONSTRAINT ck_bookings_nights_positive CHECK (nights >= 1),
            CONSTRAINT ck_bookings_amounts_non_negative CHECK (
                subtotal_cents >= 0 AND cleaning_fee_cents >= 0 AND service_fee_cents >= 0
                AND taxes_cents >= 0 AND total_amount_cents >= 0
            )
        )
    """)
    op.create_index('ix_bookings_listing_id', 'bookings', ['listing_id'])
    op.create_index('ix_bookings_guest_id', 'bookings', ['guest_id'])
    op.create_index('ix_bookings_host_id', 'bookings', ['host_id'])
    op.create_index('ix_bookings_status', 'bookings', ['status'])
    op.create_index('ix_bookings_payment_status', 'bookings', ['payment_status'])

    op.create_table(
        'audit_log',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', postgresql.ENUM(name='auditaction', create_type=False), nullable=False),
        sa.Column('resource_type', sa.String(50), nullable=False),
        sa.Column('resource_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_audit_log_user_id', 'audit_log', ['user_id'])
    op.create_index('ix_audit_log_action', 'audit_log', ['action'])


def downgrade() -> None:
    op.drop_index('ix_audit_log_action', table_name='audit_log')
    op.drop_index('ix_audit_log_user_id', table_name='audit_log')
    op.drop_table('audit_log')

    op.drop_index('ix_bookings_payment_status', table_name='bookings')
    op.drop_index('ix_bookings_status', table_name='bookings')
    op.drop_index('ix_bookings_host_id', table_name='bookings')
    op.drop_index('ix_bookings_guest_id', table_name='bookings')
    op.drop_index('ix_bookings_listing_id', table_name='bookings')
    op.drop_table('bookings')

    op.drop_index('ix_listings_host_id', table_name='listings')
    op.drop_table('listings')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_firebase_uid', table_name='users')
    op.drop_table('users')

    op.execute("DROP TYPE IF EXISTS auditaction")
    op.execute("DROP TYPE IF EXISTS cancelledbyrole")
    op.execute("DROP TYPE IF EXISTS paymentstatus")
    op.execute("DROP TYPE IF EXISTS bookingstatus")
    op.execute("DROP TYPE IF EXISTS currency")
    op.execute("DROP TYPE IF EXISTS listingcategory")
    op.execute("DROP TYPE IF EXISTS userrole")
