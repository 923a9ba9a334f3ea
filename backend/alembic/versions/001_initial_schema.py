"""Initial schema: events, seating, promo codes, tickets, holds and the scan log.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Events table
    op.create_table(
        "events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.Time(), nullable=True),
        sa.Column("location", sa.String(500), nullable=False),
        sa.Column("organizer_id", sa.String(64), nullable=False),
        sa.Column("event_key", sa.String(60), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("total_tickets", sa.Integer(), nullable=False),
        sa.Column("sold_tickets", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        *_timestamps(),
        sa.UniqueConstraint("event_key", name="uq_events_event_key"),
        # The capacity invariant, enforced below the application as well
        sa.CheckConstraint("total_tickets > 0", name="check_total_tickets_positive"),
        sa.CheckConstraint("sold_tickets >= 0", name="check_sold_tickets_non_negative"),
        sa.CheckConstraint("sold_tickets <= total_tickets", name="check_sold_lte_total"),
        sa.CheckConstraint("status IN ('active', 'completed', 'cancelled')", name="check_event_status"),
    )
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])
    op.create_index("ix_events_date", "events", ["date"])

    op.create_table(
        "seat_sections",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("section_name", sa.String(20), nullable=False),
        sa.Column("rows", sa.Integer(), nullable=False),
        sa.Column("seats_per_row", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.UniqueConstraint("event_id", "section_name", name="uq_section_per_event"),
        sa.CheckConstraint("rows > 0 AND seats_per_row > 0", name="check_section_dimensions"),
    )

    # Promo codes: uniqueness on the upper-cased code makes lookups case-insensitive
    op.create_table(
        "promo_codes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("code_normalized", sa.String(50), nullable=False),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("ticket_limit", sa.Integer(), nullable=False),
        sa.Column("used_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("event_id", "code_normalized", name="uq_promo_code_per_event"),
        sa.CheckConstraint(
            "discount_percentage > 0 AND discount_percentage <= 100",
            name="check_promo_discount_range",
        ),
        sa.CheckConstraint("ticket_limit > 0", name="check_promo_limit_positive"),
        sa.CheckConstraint("used_count >= 0 AND used_count <= ticket_limit", name="check_promo_usage_bound"),
    )
    op.create_index("ix_promo_codes_event_id", "promo_codes", ["event_id"])

    op.create_table(
        "tickets",
        sa.Column("ticket_id", sa.String(64), primary_key=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("event_key", sa.String(60), nullable=False),
        sa.Column("owner_email", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("seat_ids", sa.JSON(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("promo_code_id", sa.String(36), sa.ForeignKey("promo_codes.id"), nullable=True),
        sa.Column("status", sa.String(10), nullable=False, server_default=sa.text("'valid'")),
        sa.Column("purchased_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("used_by", sa.String(100), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="check_ticket_quantity_positive"),
        sa.CheckConstraint("status IN ('valid', 'used')", name="check_ticket_status"),
    )
    op.create_index("ix_tickets_event_id", "tickets", ["event_id"])
    op.create_index("ix_tickets_owner_email", "tickets", ["owner_email"])
    # Scan dashboards count used vs valid per event
    op.create_index("ix_tickets_event_status", "tickets", ["event_id", "status"])

    op.create_table(
        "capacity_holds",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("seat_ids", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'held'")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity > 0", name="check_hold_quantity_positive"),
        sa.CheckConstraint("status IN ('held', 'committed', 'released')", name="check_hold_status"),
    )
    op.create_index("ix_capacity_holds_event_id", "capacity_holds", ["event_id"])
    # The expiry sweeper scans held rows by expiry
    op.create_index("ix_capacity_holds_status_expiry", "capacity_holds", ["status", "expires_at"])

    op.create_table(
        "seat_claims",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("seat_id", sa.String(40), nullable=False),
        sa.Column("hold_id", sa.String(36), sa.ForeignKey("capacity_holds.id"), nullable=False),
        sa.Column("ticket_id", sa.String(64), sa.ForeignKey("tickets.ticket_id"), nullable=True),
        sa.UniqueConstraint("event_id", "seat_id", name="uq_seat_claim"),
    )
    op.create_index("ix_seat_claims_hold_id", "seat_claims", ["hold_id"])

    op.create_table(
        "scan_log",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("event_key", sa.String(60), nullable=False),
        sa.Column("ticket_id", sa.String(64), nullable=True),
        sa.Column("outcome", sa.String(20), nullable=False),
        sa.Column("session_id", sa.String(100), nullable=True),
        sa.Column("scanned_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_scan_log_ticket_id", "scan_log", ["ticket_id"])
    op.create_index("ix_scan_log_event_key_scanned_at", "scan_log", ["event_key", "scanned_at"])


def downgrade() -> None:
    op.drop_table("scan_log")
    op.drop_table("seat_claims")
    op.drop_table("capacity_holds")
    op.drop_table("tickets")
    op.drop_table("promo_codes")
    op.drop_table("seat_sections")
    op.drop_table("events")
