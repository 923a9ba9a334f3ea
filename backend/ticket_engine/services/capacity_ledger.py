"""
Capacity ledger: the source of truth for "can N more tickets be issued".

CONCURRENCY STRATEGY: Persisted Holds with a Guarded Counter
============================================================

Problem:
  Payment confirmation can take seconds. Holding the event's row lock for
  that long would serialize every buyer; not holding anything lets two buyers
  both see the last ticket and both pay for it.

Solution:
  reserve() takes capacity up front in its own short transaction:

    UPDATE events SET sold_tickets = sold_tickets + :n
      WHERE id = :id AND status = 'active' AND sold_tickets + :n <= total_tickets

  and writes a capacity hold (with its seat claims) in the same transaction.
  The lock is released at commit, payment runs lock-free, and the hold is
  either committed with the ticket or released, which puts the capacity back.
  Hold transitions are guarded (WHERE status = 'held'), so a hold is released
  or committed at most once even if the purchase path and the expiry sweeper
  race for it.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional
from uuid import uuid4

from ticket_engine.core.config import get_settings
from ticket_engine.core.logging import get_logger
from ticket_engine.core.metrics import record_hold_release
from ticket_engine.db.base import utcnow
from ticket_engine.domain.errors import (
    CapacityExceeded,
    ConsistencyError,
    EventNotActive,
    EventNotFound,
    HoldExpired,
    InvalidEvent,
    InvalidPurchase,
)
from ticket_engine.domain.models import CapacityHold, Event, EventStatus, HoldStatus
from ticket_engine.stores.interfaces import StoreTransaction, TicketStore

logger = get_logger(__name__)

SWEEP_BATCH_SIZE = 100


@dataclass(frozen=True)
class Reservation:
    hold_id: str
    event_id: str
    quantity: int
    seat_ids: tuple[str, ...]
    expires_at: datetime


class CapacityLedger:
    def __init__(self, store: TicketStore, hold_ttl_seconds: Optional[int] = None) -> None:
        self._store = store
        if hold_ttl_seconds is None:
            hold_ttl_seconds = get_settings().HOLD_TTL_SECONDS
        self._hold_ttl = timedelta(seconds=hold_ttl_seconds)

    async def reserve(
        self,
        event_id: str,
        quantity: int,
        seat_ids: Iterable[str] = (),
        ttl: Optional[timedelta] = None,
    ) -> Reservation:
        """
        Take `quantity` tickets (and the given seats) out of the event's inventory.

        Raises EventNotFound, EventNotActive, SeatUnavailable or CapacityExceeded;
        on any of them nothing has been reserved.
        """
        if quantity < 1:
            raise InvalidPurchase("Quantity must be at least 1")
        seat_ids = tuple(seat_ids)
        if seat_ids and len(seat_ids) != quantity:
            raise InvalidPurchase("Quantity must match the number of seats")

        now = utcnow()
        hold = CapacityHold(
            id=str(uuid4()),
            event_id=event_id,
            quantity=quantity,
            seat_ids=seat_ids,
            status=HoldStatus.HELD,
            expires_at=now + (self._hold_ttl if ttl is None else ttl),
            created_at=now,
        )

        async with self._store.transaction() as tx:
            event = await tx.lock_event(event_id)
            if event is None:
                raise EventNotFound(event_id)
            if event.status != EventStatus.ACTIVE:
                raise EventNotActive(event_id, event.status)

            await tx.add_hold(hold)
            if seat_ids:
                await tx.claim_seats(event_id, seat_ids, hold.id)

            if not await tx.try_reserve_capacity(event_id, quantity):
                logger.warning(
                    "capacity_exceeded",
                    event_id=event_id,
                    requested=quantity,
                    remaining=event.remaining,
                )
                raise CapacityExceeded(event_id, quantity, event.remaining)

        logger.info(
            "capacity_reserved",
            event_id=event_id,
            hold_id=hold.id,
            quantity=quantity,
            seats=len(seat_ids),
        )
        return Reservation(
            hold_id=hold.id,
            event_id=event_id,
            quantity=quantity,
            seat_ids=seat_ids,
            expires_at=hold.expires_at,
        )

    async def commit(self, tx: StoreTransaction, reservation: Reservation, ticket_id: str) -> None:
        """
        Turn the hold into a sale inside the caller's issuance transaction.

        Raises HoldExpired if the sweeper released the hold first.
        """
        committed = await tx.transition_hold(reservation.hold_id, HoldStatus.HELD, HoldStatus.COMMITTED)
        if not committed:
            hold = await tx.get_hold(reservation.hold_id)
            if hold is not None and hold.status == HoldStatus.RELEASED:
                raise HoldExpired(reservation.hold_id)
            status = hold.status.value if hold else "missing"
            raise ConsistencyError(f"Capacity hold {reservation.hold_id} is {status}, expected held")
        if reservation.seat_ids:
            await tx.assign_seat_claims(reservation.hold_id, ticket_id)

    async def release(self, reservation: Reservation, reason: str = "failed") -> bool:
        """Give the held capacity back. Returns False if the hold was already settled."""
        return await self._release(reservation.hold_id, reservation.event_id, reservation.quantity, reason)

    async def _release(self, hold_id: str, event_id: str, quantity: int, reason: str) -> bool:
        async with self._store.transaction() as tx:
            if not await tx.transition_hold(hold_id, HoldStatus.HELD, HoldStatus.RELEASED):
                return False
            await tx.drop_seat_claims(hold_id)
            if not await tx.restore_capacity(event_id, quantity):
                raise ConsistencyError(
                    f"Cannot restore {quantity} tickets to event {event_id} for hold {hold_id}"
                )

        record_hold_release(reason)
        logger.info("capacity_released", event_id=event_id, hold_id=hold_id, quantity=quantity, reason=reason)
        return True

    async def release_expired(self, now: Optional[datetime] = None) -> int:
        """Release every hold past its expiry. Returns how many were released."""
        now = now or utcnow()
        async with self._store.transaction() as tx:
            expired = await tx.expired_holds(now, limit=SWEEP_BATCH_SIZE)

        released = 0
        for hold in expired:
            if await self._release(hold.id, hold.event_id, hold.quantity, "expired"):
                released += 1

        if released:
            logger.info("expired_holds_released", count=released)
        return released

    async def increase_capacity(self, event_id: str, additional: int) -> Event:
        if additional < 1:
            raise InvalidEvent("Additional capacity must be at least 1")

        async with self._store.transaction() as tx:
            event = await tx.lock_event(event_id)
            if event is None:
                raise EventNotFound(event_id)
            if event.is_seated:
                raise InvalidEvent("Seated events take their capacity from their sections")
            await tx.add_capacity(event_id, additional)
            updated = await tx.get_event(event_id)

        logger.info(
            "capacity_increased",
            event_id=event_id,
            additional=additional,
            total_tickets=updated.total_tickets,
        )
        return updated

    async def remaining(self, event_id: str) -> int:
        async with self._store.transaction() as tx:
            event = await tx.get_event(event_id)
        if event is None:
            raise EventNotFound(event_id)
        return event.remaining
