"""Domain models for issuance and redemption.

Pure records with no persistence concerns. Stores convert their own rows
to and from these; services only ever see these.
"""

import json
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum

from ticket_engine.domain.value_objects import SeatId


class EventStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TicketStatus(str, Enum):
    VALID = "valid"
    USED = "used"


class HoldStatus(str, Enum):
    HELD = "held"
    COMMITTED = "committed"
    RELEASED = "released"


class PromoRejection(str, Enum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    LIMIT_REACHED = "limit_reached"


class GateAccessRejection(str, Enum):
    MISSING = "missing"
    NOT_FOUND = "not_found"
    WRONG_EVENT = "wrong_event"
    INACTIVE = "inactive"
    EXPIRED = "expired"


class ScanOutcome(str, Enum):
    ADMITTED = "admitted"
    ALREADY_USED = "already_used"
    NOT_FOUND = "not_found"
    EVENT_MISMATCH = "event_mismatch"
    MALFORMED = "malformed"

    @property
    def result(self) -> str:
        """Operator-facing status: unknown, mismatched and garbage scans are all "invalid"."""
        if self in (ScanOutcome.ADMITTED, ScanOutcome.ALREADY_USED):
            return self.value
        return "invalid"


@dataclass(frozen=True)
class SeatSection:
    """A reserved-seating block: seats are addressed as <section>-<row>-<seat>."""

    section_name: str
    rows: int
    seats_per_row: int
    price: Decimal

    @property
    def capacity(self) -> int:
        return self.rows * self.seats_per_row

    def contains(self, seat: SeatId) -> bool:
        return (
            seat.section == self.section_name
            and 1 <= seat.row <= self.rows
            and 1 <= seat.number <= self.seats_per_row
        )

    def seat_ids(self) -> list[str]:
        return [
            str(SeatId(self.section_name, row, number))
            for row in range(1, self.rows + 1)
            for number in range(1, self.seats_per_row + 1)
        ]


@dataclass(frozen=True)
class Event:
    id: str
    title: str
    date: date
    time: time | None
    location: str
    organizer_id: str
    event_key: str
    price: Decimal
    currency: str
    total_tickets: int
    sold_tickets: int
    status: EventStatus
    created_at: datetime
    sections: tuple[SeatSection, ...] = ()

    @property
    def remaining(self) -> int:
        return self.total_tickets - self.sold_tickets

    @property
    def is_seated(self) -> bool:
        return bool(self.sections)

    def section_for(self, seat: SeatId) -> SeatSection | None:
        for section in self.sections:
            if section.contains(seat):
                return section
        return None


@dataclass(frozen=True)
class PromoCode:
    id: str
    event_id: str
    code: str
    discount_percentage: Decimal
    ticket_limit: int
    used_count: int
    is_active: bool
    expires_at: datetime | None
    created_at: datetime

    @property
    def remaining_uses(self) -> int:
        return max(self.ticket_limit - self.used_count, 0)

    def rejection(self, now: datetime) -> PromoRejection | None:
        """Why this code cannot be applied right now, or None if it can."""
        if not self.is_active:
            return PromoRejection.INACTIVE
        if self.expires_at is not None and self.expires_at <= now:
            return PromoRejection.EXPIRED
        if self.used_count >= self.ticket_limit:
            return PromoRejection.LIMIT_REACHED
        return None


@dataclass(frozen=True)
class GateAccessCode:
    """Credential a gate device presents before it may redeem tickets for one event."""

    id: str
    event_id: str
    code: str
    label: str
    is_active: bool
    expires_at: datetime | None
    created_at: datetime

    def rejection(self, now: datetime) -> GateAccessRejection | None:
        if not self.is_active:
            return GateAccessRejection.INACTIVE
        if self.expires_at is not None and self.expires_at <= now:
            return GateAccessRejection.EXPIRED
        return None


@dataclass(frozen=True)
class CapacityHold:
    id: str
    event_id: str
    quantity: int
    seat_ids: tuple[str, ...]
    status: HoldStatus
    expires_at: datetime
    created_at: datetime


@dataclass(frozen=True)
class Ticket:
    ticket_id: str
    event_id: str
    event_key: str
    owner_email: str
    quantity: int
    seat_ids: tuple[str, ...]
    unit_price: Decimal
    discount_percentage: Decimal
    total_price: Decimal
    currency: str
    promo_code_id: str | None
    status: TicketStatus
    purchased_at: datetime
    used_at: datetime | None = None
    used_by: str | None = None

    @property
    def qr_payload(self) -> str:
        return json.dumps({"ticketId": self.ticket_id, "eventKey": self.event_key}, separators=(",", ":"))


@dataclass(frozen=True)
class ScanRecord:
    id: str
    event_key: str
    ticket_id: str | None
    outcome: ScanOutcome
    session_id: str | None
    scanned_at: datetime
    gate_label: str | None = None


@dataclass(frozen=True)
class ScanStats:
    event_id: str
    total_tickets: int
    sold_tickets: int
    scanned: int
    remaining: int

    @property
    def scan_rate(self) -> float:
        issued = self.scanned + self.remaining
        if issued == 0:
            return 0.0
        return round(self.scanned / issued * 100, 2)
