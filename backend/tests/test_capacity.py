"""
Tests for the capacity ledger: reservations, releases, expiry and seat claims.
"""

import asyncio
from datetime import timedelta

import pytest

from ticket_engine.db.base import utcnow
from ticket_engine.domain.errors import (
    CapacityExceeded,
    EventNotActive,
    EventNotFound,
    HoldExpired,
    InvalidEvent,
    SeatUnavailable,
)
from ticket_engine.domain.models import EventStatus, HoldStatus
from ticket_engine.services.capacity_ledger import CapacityLedger


@pytest.mark.asyncio
async def test_reserve_and_release(engine, test_event):
    """A reservation takes capacity; releasing gives it back."""
    reservation = await engine.ledger.reserve(test_event.id, 3)
    assert await engine.ledger.remaining(test_event.id) == 97

    assert await engine.ledger.release(reservation) is True
    assert await engine.ledger.remaining(test_event.id) == 100


@pytest.mark.asyncio
async def test_release_twice_is_noop(engine, store, test_event):
    reservation = await engine.ledger.reserve(test_event.id, 2)

    assert await engine.ledger.release(reservation) is True
    assert await engine.ledger.release(reservation) is False
    assert await engine.ledger.remaining(test_event.id) == 100
    assert store.holds[reservation.hold_id].status == HoldStatus.RELEASED


@pytest.mark.asyncio
async def test_reserve_more_than_remaining(engine, small_event):
    await engine.ledger.reserve(small_event.id, 8)

    with pytest.raises(CapacityExceeded) as exc_info:
        await engine.ledger.reserve(small_event.id, 3)

    assert exc_info.value.details == {"requested": 3, "remaining": 2}
    assert await engine.ledger.remaining(small_event.id) == 2


@pytest.mark.asyncio
async def test_failed_reserve_leaves_no_hold(engine, store, small_event):
    with pytest.raises(CapacityExceeded):
        await engine.ledger.reserve(small_event.id, 11)
    assert store.holds == {}


@pytest.mark.asyncio
async def test_concurrent_reservations_never_oversell(engine, store, small_event):
    """50 simultaneous single-ticket reservations against 10 tickets: exactly 10 succeed."""
    results = await asyncio.gather(
        *(engine.ledger.reserve(small_event.id, 1) for _ in range(50)),
        return_exceptions=True,
    )

    succeeded = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, CapacityExceeded)]
    assert len(succeeded) == 10
    assert len(failed) == 40
    assert store.events[small_event.id].sold_tickets == 10
    # all per-entity locks were handed back
    assert len(store.locks) == 0


@pytest.mark.asyncio
async def test_reserve_unknown_event(engine):
    with pytest.raises(EventNotFound):
        await engine.ledger.reserve("missing", 1)


@pytest.mark.asyncio
async def test_reserve_on_cancelled_event(engine, test_event):
    await engine.events.set_status(test_event.id, EventStatus.CANCELLED)

    with pytest.raises(EventNotActive):
        await engine.ledger.reserve(test_event.id, 1)


@pytest.mark.asyncio
async def test_release_expired_holds(engine, store, test_event):
    """The sweeper returns capacity from holds whose purchase never finished."""
    expired = await engine.ledger.reserve(test_event.id, 4, ttl=timedelta(seconds=-1))
    live = await engine.ledger.reserve(test_event.id, 1)

    released = await engine.ledger.release_expired()

    assert released == 1
    assert store.holds[expired.hold_id].status == HoldStatus.RELEASED
    assert store.holds[live.hold_id].status == HoldStatus.HELD
    assert await engine.ledger.remaining(test_event.id) == 99


@pytest.mark.asyncio
async def test_release_expired_skips_committed(engine, store, test_event):
    await engine.issuer.issue(test_event.id, "buyer@example.com", quantity=2)

    released = await engine.ledger.release_expired(utcnow() + timedelta(days=1))

    assert released == 0
    assert await engine.ledger.remaining(test_event.id) == 98


@pytest.mark.asyncio
async def test_zero_hold_ttl_is_honoured(store, test_event):
    ledger = CapacityLedger(store, hold_ttl_seconds=0)

    reservation = await ledger.reserve(test_event.id, 2)

    assert reservation.expires_at <= utcnow()
    assert await ledger.release_expired() == 1
    assert await ledger.remaining(test_event.id) == 100


@pytest.mark.asyncio
async def test_commit_after_sweep_is_hold_expired(engine, store, test_event):
    reservation = await engine.ledger.reserve(test_event.id, 1, ttl=timedelta(seconds=-1))
    await engine.ledger.release_expired()

    with pytest.raises(HoldExpired):
        async with store.transaction() as tx:
            await engine.ledger.commit(tx, reservation, "TKT-late")

    assert store.holds[reservation.hold_id].status == HoldStatus.RELEASED


@pytest.mark.asyncio
async def test_increase_capacity(engine, small_event):
    event = await engine.ledger.increase_capacity(small_event.id, 5)

    assert event.total_tickets == 15
    assert await engine.ledger.remaining(small_event.id) == 15


@pytest.mark.asyncio
async def test_increase_capacity_rejects_seated_event(engine, seated_event):
    with pytest.raises(InvalidEvent):
        await engine.ledger.increase_capacity(seated_event.id, 5)


@pytest.mark.asyncio
async def test_seat_claims_are_exclusive(engine, seated_event):
    await engine.ledger.reserve(seated_event.id, 2, seat_ids=["A-1-1", "A-1-2"])

    with pytest.raises(SeatUnavailable) as exc_info:
        await engine.ledger.reserve(seated_event.id, 2, seat_ids=["A-1-2", "A-1-3"])

    assert exc_info.value.seat_ids == ["A-1-2"]
    assert await engine.ledger.remaining(seated_event.id) == 12


@pytest.mark.asyncio
async def test_released_seats_become_available(engine, seated_event):
    reservation = await engine.ledger.reserve(seated_event.id, 1, seat_ids=["B-1-4"])
    await engine.ledger.release(reservation)

    again = await engine.ledger.reserve(seated_event.id, 1, seat_ids=["B-1-4"])
    assert again.seat_ids == ("B-1-4",)
