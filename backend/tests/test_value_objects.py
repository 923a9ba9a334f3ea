"""
Tests for domain primitives.
"""

from decimal import Decimal

import pytest

from ticket_engine.domain.models import ScanOutcome, SeatSection
from ticket_engine.domain.value_objects import SeatId, generate_event_key, generate_ticket_id, round_money


def test_seat_id_parsing():
    seat = SeatId.from_string(" VIP-3-12 ")

    assert (seat.section, seat.row, seat.number) == ("VIP", 3, 12)
    assert str(seat) == "VIP-3-12"


@pytest.mark.parametrize("raw", ["", "A", "A-1", "A-x-1", "A_1_1", "-1-1"])
def test_seat_id_rejects_garbage(raw):
    with pytest.raises(ValueError):
        SeatId.from_string(raw)


def test_section_contains_and_lists_seats():
    section = SeatSection(section_name="B", rows=2, seats_per_row=2, price=Decimal("10"))

    assert section.capacity == 4
    assert section.seat_ids() == ["B-1-1", "B-1-2", "B-2-1", "B-2-2"]
    assert section.contains(SeatId("B", 2, 2))
    assert not section.contains(SeatId("B", 3, 1))
    assert not section.contains(SeatId("A", 1, 1))


def test_event_key_slug():
    key = generate_event_key("  Summer Fest: 2026!! ")

    slug, suffix = key.rsplit("-", 1)
    assert slug == "summer-fest-2026"
    assert len(suffix) == 4


def test_event_key_for_symbol_only_title():
    assert generate_event_key("!!!").startswith("event-")


def test_ticket_ids_are_random():
    assert generate_ticket_id() != generate_ticket_id()


def test_round_money_half_up():
    assert round_money(Decimal("2.345")) == Decimal("2.35")
    assert round_money(Decimal("7")) == Decimal("7.00")


def test_scan_result_collapses_rejections():
    assert ScanOutcome.ADMITTED.result == "admitted"
    assert ScanOutcome.ALREADY_USED.result == "already_used"
    assert {o.result for o in (ScanOutcome.NOT_FOUND, ScanOutcome.EVENT_MISMATCH, ScanOutcome.MALFORMED)} == {
        "invalid"
    }
