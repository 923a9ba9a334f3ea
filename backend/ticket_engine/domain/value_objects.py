"""Domain primitives that enforce validity at creation time."""

import re
import secrets
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Self

CENT = Decimal("0.01")
# column widths of tickets.ticket_id and events.event_key
TICKET_ID_MAX_LENGTH = 64
EVENT_KEY_MAX_LENGTH = 60
ACCESS_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
_SEAT_PATTERN = re.compile(r"^(?P<section>[A-Za-z0-9]+)-(?P<row>\d+)-(?P<number>\d+)$")
_SLUG_STRIP = re.compile(r"[^a-z0-9\s-]")
_SLUG_DASHES = re.compile(r"[\s-]+")


@dataclass(frozen=True)
class SeatId:
    """Seat address within a reserved-seating event."""

    section: str
    row: int
    number: int

    @classmethod
    def from_string(cls, value: str) -> Self:
        match = _SEAT_PATTERN.match(value.strip())
        if not match:
            raise ValueError(f"Invalid seat identifier: {value!r}")
        return cls(match["section"], int(match["row"]), int(match["number"]))

    def __str__(self) -> str:
        return f"{self.section}-{self.row}-{self.number}"


def round_money(amount: Decimal) -> Decimal:
    """Single rounding rule for every price the engine emits: 2 places, half up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def generate_ticket_id() -> str:
    # the id is the redemption credential, so it must not be guessable
    return f"TKT-{secrets.token_urlsafe(18)}"


def generate_event_key(title: str) -> str:
    """URL slug from the title plus a random suffix, e.g. summer-fest-2024-a3f2."""
    slug = _SLUG_STRIP.sub("", title.lower())
    slug = _SLUG_DASHES.sub("-", slug).strip("-")[:40].rstrip("-") or "event"
    return f"{slug}-{secrets.token_hex(2)}"


def normalize_code(code: str) -> str:
    return code.strip().upper()


def generate_access_code() -> str:
    """Gate device code, e.g. GATE-7KQ2MX9A. No 0/O or 1/I so it can be typed from a printout."""
    return "GATE-" + "".join(secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(8))
