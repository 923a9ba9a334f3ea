from ticket_engine.models.event import Event, SeatSection
from ticket_engine.models.promo_code import PromoCode
from ticket_engine.models.ticket import CapacityHold, SeatClaim, Ticket
from ticket_engine.models.scan_log import ScanLog
from ticket_engine.models.gate_access import ScannerAccessCode

__all__ = [
    "Event",
    "SeatSection",
    "PromoCode",
    "Ticket",
    "CapacityHold",
    "SeatClaim",
    "ScanLog",
    "ScannerAccessCode",
]
