"""
Event model with ticket inventory tracking.

Key design decisions:
- `sold_tickets` is the capacity counter; every issuance path changes it with a
  guarded UPDATE (sold_tickets + n <= total_tickets), never read-then-write
- CHECK constraints are the final safety net against overselling
- `event_key` is the public slug embedded in QR payloads
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ticket_engine.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True)
    title = Column(String(255), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(Time, nullable=True)
    location = Column(String(500), nullable=False)
    organizer_id = Column(String(64), nullable=False, index=True)
    event_key = Column(String(60), nullable=False, unique=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False)
    total_tickets = Column(Integer, nullable=False)
    sold_tickets = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="active")

    sections = relationship(
        "SeatSection",
        back_populates="event",
        lazy="selectin",
        order_by="SeatSection.section_name",
    )

    __table_args__ = (
        CheckConstraint("total_tickets > 0", name="check_total_tickets_positive"),
        CheckConstraint("sold_tickets >= 0", name="check_sold_tickets_non_negative"),
        CheckConstraint("sold_tickets <= total_tickets", name="check_sold_lte_total"),
        CheckConstraint("status IN ('active', 'completed', 'cancelled')", name="check_event_status"),
        Index("ix_events_date", "date"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, key={self.event_key}, sold={self.sold_tickets}/{self.total_tickets})>"


class SeatSection(Base):
    __tablename__ = "seat_sections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    section_name = Column(String(20), nullable=False)
    rows = Column(Integer, nullable=False)
    seats_per_row = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)

    event = relationship("Event", back_populates="sections")

    __table_args__ = (
        UniqueConstraint("event_id", "section_name", name="uq_section_per_event"),
        CheckConstraint("rows > 0 AND seats_per_row > 0", name="check_section_dimensions"),
    )
