"""Seat selection checks and pricing for reserved-seating events."""

from decimal import Decimal
from typing import Iterable

from ticket_engine.domain.errors import InvalidPurchase
from ticket_engine.domain.models import Event
from ticket_engine.domain.value_objects import SeatId


def parse_seat_ids(event: Event, raw_seat_ids: Iterable[str]) -> tuple[str, ...]:
    """Canonical seat ids for the request, or InvalidPurchase if any is malformed, unknown or repeated."""
    if not event.is_seated:
        raise InvalidPurchase("This event does not have reserved seating")

    seats: list[str] = []
    for raw in raw_seat_ids:
        try:
            seat = SeatId.from_string(raw)
        except ValueError as e:
            raise InvalidPurchase(str(e)) from e
        if event.section_for(seat) is None:
            raise InvalidPurchase(f"Seat {seat} does not exist for this event")
        seats.append(str(seat))

    if not seats:
        raise InvalidPurchase("At least one seat must be selected")
    if len(set(seats)) != len(seats):
        raise InvalidPurchase("The same seat was selected more than once")
    return tuple(seats)


def price_for_seats(event: Event, seat_ids: Iterable[str]) -> Decimal:
    total = Decimal(0)
    for seat_id in seat_ids:
        total += event.section_for(SeatId.from_string(seat_id)).price
    return total


def seat_map(event: Event, claimed: set[str]) -> list[dict]:
    sections = []
    for section in event.sections:
        seat_ids = section.seat_ids()
        taken = [seat for seat in seat_ids if seat in claimed]
        sections.append(
            {
                "section_name": section.section_name,
                "price": section.price,
                "capacity": section.capacity,
                "available": section.capacity - len(taken),
                "taken_seat_ids": taken,
            }
        )
    return sections
