"""
In-memory store for single-process deployments and tests.

Concurrency model:
  Each guarded mutation takes the entity's lock (event, promo, hold, ticket)
  and keeps it until the transaction ends, the same way a row lock is held to
  COMMIT. Mutations append to an undo log that is replayed in reverse on
  rollback. Locks are per key, so purchases for different events and scans of
  different tickets never contend.

  Lock order is promo -> hold -> event; redemption only takes the ticket lock.
"""

import asyncio
from collections import Counter, defaultdict
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Hashable, Iterable

from ticket_engine.domain.errors import DuplicatePromoCode, SeatUnavailable
from ticket_engine.domain.models import (
    CapacityHold,
    Event,
    EventStatus,
    GateAccessCode,
    HoldStatus,
    PromoCode,
    ScanRecord,
    Ticket,
    TicketStatus,
)
from ticket_engine.domain.value_objects import normalize_code
from ticket_engine.stores.interfaces import StoreTransaction, TicketStore

_MISSING = object()


class KeyedLocks:
    """asyncio.Lock per key, dropped again once nobody holds or waits for it."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: Counter = Counter()

    async def acquire(self, key: Hashable) -> None:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            await lock.acquire()
        except BaseException:
            self._forget(key)
            raise

    def release(self, key: Hashable) -> None:
        self._locks[key].release()
        self._forget(key)

    def _forget(self, key: Hashable) -> None:
        self._users[key] -= 1
        if self._users[key] <= 0:
            del self._users[key]
            del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class MemoryTicketStore(TicketStore):
    def __init__(self) -> None:
        self.locks = KeyedLocks()
        self.events: dict[str, Event] = {}
        self.event_keys: dict[str, str] = {}
        self.promos: dict[str, PromoCode] = {}
        self.promo_codes: dict[tuple[str, str], str] = {}
        self.holds: dict[str, CapacityHold] = {}
        # (event_id, seat_id) -> (hold_id, ticket_id | None)
        self.seat_claims: dict[tuple[str, str], tuple[str, str | None]] = {}
        self.tickets: dict[str, Ticket] = {}
        self.tickets_by_event: dict[str, list[str]] = defaultdict(list)
        self.scan_records: list[ScanRecord] = []
        self.gate_codes: dict[str, GateAccessCode] = {}
        self.gate_code_index: dict[str, str] = {}

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["MemoryTransaction"]:
        tx = MemoryTransaction(self)
        try:
            yield tx
        except BaseException:
            tx.rollback()
            raise
        finally:
            tx.release_locks()


class MemoryTransaction(StoreTransaction):
    def __init__(self, store: MemoryTicketStore) -> None:
        self._store = store
        self._held: list[Hashable] = []
        self._undo: list[Callable[[], None]] = []

    async def _lock(self, kind: str, key: str) -> None:
        lock_key = (kind, key)
        if lock_key in self._held:
            return
        await self._store.locks.acquire(lock_key)
        self._held.append(lock_key)

    def _put(self, mapping: dict, key: Any, value: Any) -> None:
        previous = mapping.get(key, _MISSING)
        mapping[key] = value

        def undo() -> None:
            if previous is _MISSING:
                mapping.pop(key, None)
            else:
                mapping[key] = previous

        self._undo.append(undo)

    def _delete(self, mapping: dict, key: Any) -> None:
        previous = mapping.pop(key)
        self._undo.append(lambda: mapping.__setitem__(key, previous))

    def rollback(self) -> None:
        while self._undo:
            self._undo.pop()()

    def release_locks(self) -> None:
        while self._held:
            self._store.locks.release(self._held.pop())

    # Events

    async def add_event(self, event: Event) -> None:
        self._put(self._store.events, event.id, event)
        self._put(self._store.event_keys, event.event_key, event.id)

    async def get_event(self, event_id: str) -> Event | None:
        return self._store.events.get(event_id)

    async def get_event_by_key(self, event_key: str) -> Event | None:
        event_id = self._store.event_keys.get(event_key)
        return self._store.events.get(event_id) if event_id else None

    async def lock_event(self, event_id: str) -> Event | None:
        if event_id not in self._store.events:
            return None
        await self._lock("event", event_id)
        return self._store.events.get(event_id)

    async def set_event_status(self, event_id: str, status: EventStatus) -> bool:
        event = await self.lock_event(event_id)
        if event is None:
            return False
        self._put(self._store.events, event_id, replace(event, status=status))
        return True

    async def add_capacity(self, event_id: str, additional: int) -> bool:
        event = await self.lock_event(event_id)
        if event is None:
            return False
        self._put(self._store.events, event_id, replace(event, total_tickets=event.total_tickets + additional))
        return True

    async def try_reserve_capacity(self, event_id: str, quantity: int) -> bool:
        event = await self.lock_event(event_id)
        if event is None or event.status != EventStatus.ACTIVE:
            return False
        if event.sold_tickets + quantity > event.total_tickets:
            return False
        self._put(self._store.events, event_id, replace(event, sold_tickets=event.sold_tickets + quantity))
        return True

    async def restore_capacity(self, event_id: str, quantity: int) -> bool:
        event = await self.lock_event(event_id)
        if event is None or event.sold_tickets < quantity:
            return False
        self._put(self._store.events, event_id, replace(event, sold_tickets=event.sold_tickets - quantity))
        return True

    # Seats

    async def claimed_seats(self, event_id: str, seat_ids: Iterable[str] | None = None) -> set[str]:
        if seat_ids is None:
            return {seat for (claim_event, seat) in self._store.seat_claims if claim_event == event_id}
        return {seat for seat in seat_ids if (event_id, seat) in self._store.seat_claims}

    async def claim_seats(self, event_id: str, seat_ids: Iterable[str], hold_id: str) -> None:
        await self._lock("event", event_id)
        seat_ids = list(seat_ids)
        taken = await self.claimed_seats(event_id, seat_ids)
        if taken:
            raise SeatUnavailable(list(taken))
        for seat in seat_ids:
            self._put(self._store.seat_claims, (event_id, seat), (hold_id, None))

    def _claims_for_hold(self, hold_id: str) -> list[tuple[str, str]]:
        return [key for key, (claim_hold, _) in self._store.seat_claims.items() if claim_hold == hold_id]

    async def drop_seat_claims(self, hold_id: str) -> None:
        for key in self._claims_for_hold(hold_id):
            await self._lock("event", key[0])
            self._delete(self._store.seat_claims, key)

    async def assign_seat_claims(self, hold_id: str, ticket_id: str) -> None:
        for key in self._claims_for_hold(hold_id):
            await self._lock("event", key[0])
            self._put(self._store.seat_claims, key, (hold_id, ticket_id))

    # Capacity holds

    async def add_hold(self, hold: CapacityHold) -> None:
        self._put(self._store.holds, hold.id, hold)

    async def get_hold(self, hold_id: str) -> CapacityHold | None:
        return self._store.holds.get(hold_id)

    async def transition_hold(self, hold_id: str, from_status: HoldStatus, to_status: HoldStatus) -> bool:
        await self._lock("hold", hold_id)
        hold = self._store.holds.get(hold_id)
        if hold is None or hold.status != from_status:
            return False
        self._put(self._store.holds, hold_id, replace(hold, status=to_status))
        return True

    async def expired_holds(self, now: datetime, limit: int = 100) -> list[CapacityHold]:
        expired = [
            hold for hold in self._store.holds.values()
            if hold.status == HoldStatus.HELD and hold.expires_at <= now
        ]
        return sorted(expired, key=lambda hold: hold.expires_at)[:limit]

    # Promo codes

    async def add_promo(self, promo: PromoCode) -> None:
        index_key = (promo.event_id, normalize_code(promo.code))
        if index_key in self._store.promo_codes:
            raise DuplicatePromoCode(promo.code)
        self._put(self._store.promos, promo.id, promo)
        self._put(self._store.promo_codes, index_key, promo.id)

    async def get_promo(self, promo_id: str) -> PromoCode | None:
        return self._store.promos.get(promo_id)

    async def find_promo(self, event_id: str, code: str) -> PromoCode | None:
        promo_id = self._store.promo_codes.get((event_id, normalize_code(code)))
        return self._store.promos.get(promo_id) if promo_id else None

    async def list_promos(self, event_id: str) -> list[PromoCode]:
        promos = [promo for promo in self._store.promos.values() if promo.event_id == event_id]
        return sorted(promos, key=lambda promo: promo.created_at, reverse=True)

    async def set_promo_active(self, promo_id: str, is_active: bool) -> bool:
        await self._lock("promo", promo_id)
        promo = self._store.promos.get(promo_id)
        if promo is None:
            return False
        self._put(self._store.promos, promo_id, replace(promo, is_active=is_active))
        return True

    async def try_consume_promo(self, promo_id: str, now: datetime) -> bool:
        await self._lock("promo", promo_id)
        promo = self._store.promos.get(promo_id)
        if promo is None or promo.rejection(now) is not None:
            return False
        self._put(self._store.promos, promo_id, replace(promo, used_count=promo.used_count + 1))
        return True

    # Tickets

    async def add_ticket(self, ticket: Ticket) -> None:
        self._put(self._store.tickets, ticket.ticket_id, ticket)
        by_event = self._store.tickets_by_event[ticket.event_id]
        by_event.append(ticket.ticket_id)
        self._undo.append(lambda: by_event.remove(ticket.ticket_id))

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        return self._store.tickets.get(ticket_id)

    async def try_mark_used(self, ticket_id: str, used_at: datetime, used_by: str | None) -> bool:
        await self._lock("ticket", ticket_id)
        ticket = self._store.tickets.get(ticket_id)
        if ticket is None or ticket.status != TicketStatus.VALID:
            return False
        self._put(
            self._store.tickets,
            ticket_id,
            replace(ticket, status=TicketStatus.USED, used_at=used_at, used_by=used_by),
        )
        return True

    async def list_tickets_for_event(self, event_id: str) -> list[Ticket]:
        tickets = [self._store.tickets[ticket_id] for ticket_id in self._store.tickets_by_event.get(event_id, [])]
        return sorted(tickets, key=lambda ticket: ticket.purchased_at, reverse=True)

    async def list_tickets_for_owner(self, owner_email: str) -> list[Ticket]:
        owner = owner_email.lower()
        tickets = [ticket for ticket in self._store.tickets.values() if ticket.owner_email.lower() == owner]
        return sorted(tickets, key=lambda ticket: ticket.purchased_at, reverse=True)

    async def owner_has_ticket(self, event_id: str, owner_email: str) -> bool:
        owner = owner_email.lower()
        return any(
            self._store.tickets[ticket_id].owner_email.lower() == owner
            for ticket_id in self._store.tickets_by_event.get(event_id, [])
        )

    async def ticket_totals(self, event_id: str) -> tuple[int, int]:
        used = valid = 0
        for ticket_id in self._store.tickets_by_event.get(event_id, []):
            ticket = self._store.tickets[ticket_id]
            if ticket.status == TicketStatus.USED:
                used += ticket.quantity
            else:
                valid += ticket.quantity
        return used, valid

    # Gate access codes

    async def add_gate_code(self, gate_code: GateAccessCode) -> None:
        self._put(self._store.gate_codes, gate_code.id, gate_code)
        self._put(self._store.gate_code_index, normalize_code(gate_code.code), gate_code.id)

    async def get_gate_code(self, code_id: str) -> GateAccessCode | None:
        return self._store.gate_codes.get(code_id)

    async def find_gate_code(self, code: str) -> GateAccessCode | None:
        code_id = self._store.gate_code_index.get(normalize_code(code))
        return self._store.gate_codes.get(code_id) if code_id else None

    async def list_gate_codes(self, event_id: str) -> list[GateAccessCode]:
        codes = [code for code in self._store.gate_codes.values() if code.event_id == event_id]
        return sorted(codes, key=lambda code: code.created_at, reverse=True)

    async def set_gate_code_active(self, code_id: str, is_active: bool) -> bool:
        await self._lock("gate_code", code_id)
        gate_code = self._store.gate_codes.get(code_id)
        if gate_code is None:
            return False
        self._put(self._store.gate_codes, code_id, replace(gate_code, is_active=is_active))
        return True

    # Audit

    async def add_scan_record(self, record: ScanRecord) -> None:
        self._store.scan_records.append(record)
        self._undo.append(lambda: self._store.scan_records.remove(record))
