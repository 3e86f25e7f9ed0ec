"""Baseline migration - causes, ledger, claims, waitlist and jobs

Revision ID: 0001_baseline
Revises: 
Create Date: 2026-10-18

Creates every table of the tote engine. The ledger CHECK constraints and
the partial unique indexes for active claims / waitlist entries are what
keep concurrent admissions from overselling or double-claiming.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tote engine tables."""

    # ==========================================================================
    # Causes (inventory ledger counters)
    # ==========================================================================
    op.execute('''
        CREATE TABLE causes (
            id UUID PRIMARY KEY,
            title VARCHAR(255) NOT NULL,
            description TEXT,
            is_online BOOLEAN NOT NULL DEFAULT true,
            total_totes INTEGER NOT NULL DEFAULT 0,
            claimed_totes INTEGER NOT NULL DEFAULT 0,
            available_totes INTEGER NOT NULL DEFAULT 0,
            reserved_totes INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_causes_total_nonneg CHECK (total_totes >= 0),
            CONSTRAINT ck_causes_claimed_nonneg CHECK (claimed_totes >= 0),
            CONSTRAINT ck_causes_available_nonneg CHECK (available_totes >= 0),
            CONSTRAINT ck_causes_reserved_nonneg CHECK (reserved_totes >= 0),
            CONSTRAINT ck_causes_ledger_balanced
                CHECK (total_totes = claimed_totes + available_totes + reserved_totes)
        )
    ''')
    op.execute('CREATE INDEX idx_causes_online ON causes(is_online)')

    # ==========================================================================
    # Inventory reservations (reservation tokens)
    # ==========================================================================
    op.execute('''
        CREATE TABLE inventory_reservations (
            id UUID PRIMARY KEY,
            cause_id UUID NOT NULL REFERENCES causes(id) ON DELETE CASCADE,
            quantity INTEGER NOT NULL,
            status VARCHAR(20) NOT NULL,
            holder VARCHAR(20) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            resolved_at TIMESTAMPTZ,
            CONSTRAINT ck_reservations_quantity_positive CHECK (quantity > 0)
        )
    ''')
    op.execute('CREATE INDEX idx_reservations_cause_status ON inventory_reservations(cause_id, status)')

    # ==========================================================================
    # Verification challenges
    # ==========================================================================
    op.execute('''
        CREATE TABLE verification_challenges (
            id UUID PRIMARY KEY,
            channel VARCHAR(20) NOT NULL,
            identity VARCHAR(320) NOT NULL,
            purpose VARCHAR(100) NOT NULL,
            code_hash VARCHAR(64),
            status VARCHAR(20) NOT NULL,
            expires_at TIMESTAMPTZ,
            verified_at TIMESTAMPTZ,
            superseded_by_id UUID REFERENCES verification_challenges(id) ON DELETE SET NULL,
            resend_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_challenges_identity_purpose ON verification_challenges(identity, purpose)')

    # ==========================================================================
    # Sponsorships
    # ==========================================================================
    op.execute('''
        CREATE TABLE sponsorships (
            id UUID PRIMARY KEY,
            cause_id UUID NOT NULL REFERENCES causes(id) ON DELETE CASCADE,
            organization_name VARCHAR(255) NOT NULL,
            contact_name VARCHAR(255) NOT NULL,
            email VARCHAR(320) NOT NULL,
            phone VARCHAR(32),
            tote_quantity INTEGER NOT NULL,
            logo_url VARCHAR(1000),
            message TEXT,
            status VARCHAR(20) NOT NULL,
            logo_status VARCHAR(20) NOT NULL,
            rejection_reason TEXT,
            logo_rejection_reason TEXT,
            approved_at TIMESTAMPTZ,
            rejected_at TIMESTAMPTZ,
            ended_at TIMESTAMPTZ,
            totes_removed_on_end INTEGER,
            end_shortfall INTEGER,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_sponsorships_quantity_positive CHECK (tote_quantity > 0)
        )
    ''')
    op.execute('CREATE INDEX idx_sponsorships_cause ON sponsorships(cause_id)')
    op.execute('CREATE INDEX idx_sponsorships_status ON sponsorships(status, created_at)')

    # ==========================================================================
    # Waitlist entries
    # ==========================================================================
    op.execute('''
        CREATE TABLE waitlist_entries (
            id UUID PRIMARY KEY,
            cause_id UUID NOT NULL REFERENCES causes(id) ON DELETE CASCADE,
            email VARCHAR(320) NOT NULL,
            full_name VARCHAR(255),
            phone VARCHAR(32),
            message TEXT,
            notify_email BOOLEAN NOT NULL,
            notify_sms BOOLEAN NOT NULL,
            position INTEGER NOT NULL,
            status VARCHAR(20) NOT NULL,
            magic_link_token_hash VARCHAR(64),
            magic_link_sent_at TIMESTAMPTZ,
            magic_link_expires_at TIMESTAMPTZ,
            reservation_id UUID REFERENCES inventory_reservations(id),
            claimed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_waitlist_position UNIQUE (cause_id, position)
        )
    ''')
    # One waiting/notified entry per (cause, email); left/expired/claimed rows may repeat
    op.execute('''
        CREATE UNIQUE INDEX uq_active_waitlist_email
        ON waitlist_entries (cause_id, email)
        WHERE status IN ('waiting', 'notified')
    ''')
    op.execute(
        'CREATE INDEX idx_waitlist_cause_status_position ON waitlist_entries(cause_id, status, position)'
    )
    op.execute('CREATE INDEX idx_waitlist_token_hash ON waitlist_entries(magic_link_token_hash)')
    op.execute('CREATE INDEX idx_waitlist_email ON waitlist_entries(email)')

    # ==========================================================================
    # Claims
    # ==========================================================================
    op.execute('''
        CREATE TABLE claims (
            id UUID PRIMARY KEY,
            cause_id UUID NOT NULL REFERENCES causes(id) ON DELETE CASCADE,
            email VARCHAR(320) NOT NULL,
            full_name VARCHAR(255),
            phone VARCHAR(32),
            address TEXT,
            city VARCHAR(120),
            state VARCHAR(120),
            zip_code VARCHAR(20),
            channel VARCHAR(20) NOT NULL,
            status VARCHAR(30) NOT NULL,
            verification_method VARCHAR(10),
            reservation_id UUID NOT NULL REFERENCES inventory_reservations(id),
            challenge_id UUID REFERENCES verification_challenges(id) ON DELETE SET NULL,
            waitlist_entry_id UUID REFERENCES waitlist_entries(id) ON DELETE SET NULL,
            resend_count INTEGER NOT NULL DEFAULT 0,
            tracking_number VARCHAR(100),
            carrier VARCHAR(100),
            verified_at TIMESTAMPTZ,
            shipped_at TIMESTAMPTZ,
            delivered_at TIMESTAMPTZ,
            cancelled_at TIMESTAMPTZ,
            expired_at TIMESTAMPTZ,
            cancel_reason TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    # One active claim per (cause, email); cancelled/expired claims do not count
    op.execute('''
        CREATE UNIQUE INDEX uq_active_claim_per_email
        ON claims (cause_id, email)
        WHERE status IN ('reserved', 'pending-verification', 'verified', 'shipped', 'delivered')
    ''')
    op.execute('CREATE INDEX idx_claims_cause_status ON claims(cause_id, status)')
    op.execute('CREATE INDEX idx_claims_status_created ON claims(status, created_at)')

    # ==========================================================================
    # Background jobs
    # ==========================================================================
    op.execute('''
        CREATE TABLE jobs (
            id UUID PRIMARY KEY,
            job_type VARCHAR(50) NOT NULL,
            payload JSONB NOT NULL,
            run_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            status VARCHAR(20) NOT NULL,
            attempts INTEGER NOT NULL DEFAULT 0,
            max_attempts INTEGER NOT NULL DEFAULT 3,
            last_error TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            completed_at TIMESTAMPTZ,
            idempotency_key VARCHAR(255)
        )
    ''')
    op.execute("CREATE INDEX idx_jobs_pending ON jobs(status, run_at) WHERE status = 'pending'")
    op.execute('''
        CREATE UNIQUE INDEX uq_job_idempotency
        ON jobs (idempotency_key)
        WHERE idempotency_key IS NOT NULL
    ''')


def downgrade() -> None:
    """Drop all tote engine tables."""
    op.execute('DROP TABLE IF EXISTS jobs CASCADE')
    op.execute('DROP TABLE IF EXISTS claims CASCADE')
    op.execute('DROP TABLE IF EXISTS waitlist_entries CASCADE')
    op.execute('DROP TABLE IF EXISTS sponsorships CASCADE')
    op.execute('DROP TABLE IF EXISTS verification_challenges CASCADE')
    op.execute('DROP TABLE IF EXISTS inventory_reservations CASCADE')
    op.execute('DROP TABLE IF EXISTS causes CASCADE')
