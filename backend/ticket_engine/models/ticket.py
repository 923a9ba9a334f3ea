"""
Ticket, capacity hold and seat claim models.

Key design decisions:
- `ticket_id` is the primary key: it is the unguessable redemption reference,
  so gate lookups are a primary-key hit
- `status` only moves valid -> used, through UPDATE ... WHERE status = 'valid'
- seat claims carry the (event_id, seat_id) uniqueness; a claim is created by a
  capacity hold and handed to the ticket when the purchase commits
- tickets are never deleted
"""

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)

from ticket_engine.db.base import Base, TimestampMixin


class Ticket(Base, TimestampMixin):
    __tablename__ = "tickets"

    ticket_id = Column(String(64), primary_key=True)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    event_key = Column(String(60), nullable=False)
    owner_email = Column(String(255), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    seat_ids = Column(JSON, nullable=False, default=list)
    unit_price = Column(Numeric(12, 2), nullable=False)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    total_price = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    promo_code_id = Column(String(36), ForeignKey("promo_codes.id"), nullable=True)
    status = Column(String(10), nullable=False, default="valid")
    purchased_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    used_by = Column(String(100), nullable=True)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_ticket_quantity_positive"),
        CheckConstraint("status IN ('valid', 'used')", name="check_ticket_status"),
        Index("ix_tickets_event_status", "event_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Ticket(id={self.ticket_id}, event={self.event_id}, status={self.status})>"


class CapacityHold(Base):
    __tablename__ = "capacity_holds"

    id = Column(String(36), primary_key=True)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    seat_ids = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default="held")
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_hold_quantity_positive"),
        CheckConstraint("status IN ('held', 'committed', 'released')", name="check_hold_status"),
        Index("ix_capacity_holds_status_expiry", "status", "expires_at"),
    )


class SeatClaim(Base):
    __tablename__ = "seat_claims"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False)
    seat_id = Column(String(40), nullable=False)
    hold_id = Column(String(36), ForeignKey("capacity_holds.id"), nullable=False, index=True)
    ticket_id = Column(String(64), ForeignKey("tickets.ticket_id"), nullable=True)

    __table_args__ = (
        # No two live claims on one seat: this is the seat exclusivity guarantee
        UniqueConstraint("event_id", "seat_id", name="uq_seat_claim"),
    )
