from ticket_engine.domain.models import (
    CapacityHold,
    Event,
    EventStatus,
    HoldStatus,
    PromoCode,
    PromoRejection,
    ScanOutcome,
    ScanRecord,
    ScanStats,
    SeatSection,
    Ticket,
    TicketStatus,
)
from ticket_engine.domain.value_objects import SeatId

__all__ = [
    "CapacityHold",
    "Event",
    "EventStatus",
    "HoldStatus",
    "PromoCode",
    "PromoRejection",
    "ScanOutcome",
    "ScanRecord",
    "ScanStats",
    "SeatId",
    "SeatSection",
    "Ticket",
    "TicketStatus",
]
