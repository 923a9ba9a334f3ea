"""
Store interfaces (repository pattern).

Every mutation of a shared counter (event capacity, promo usage, ticket
status, hold status) is a guarded primitive that reports whether it applied.
Callers never read a counter and write it back.

Implementations:
- SqlTicketStore: SQLAlchemy async; guarded UPDATEs, row locks held to commit
- MemoryTicketStore: single process; per-entity asyncio locks plus an undo log
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Iterable

from ticket_engine.domain.models import (
    CapacityHold,
    Event,
    EventStatus,
    GateAccessCode,
    HoldStatus,
    PromoCode,
    ScanRecord,
    Ticket,
)


class StoreTransaction(ABC):
    """One unit of work. Commits on clean exit, rolls back on any exception."""

    # Events

    @abstractmethod
    async def add_event(self, event: Event) -> None:
        ...

    @abstractmethod
    async def get_event(self, event_id: str) -> Event | None:
        ...

    @abstractmethod
    async def get_event_by_key(self, event_key: str) -> Event | None:
        ...

    @abstractmethod
    async def lock_event(self, event_id: str) -> Event | None:
        """Take the event's exclusive lock for the rest of the transaction."""
        ...

    @abstractmethod
    async def set_event_status(self, event_id: str, status: EventStatus) -> bool:
        ...

    @abstractmethod
    async def add_capacity(self, event_id: str, additional: int) -> bool:
        ...

    @abstractmethod
    async def try_reserve_capacity(self, event_id: str, quantity: int) -> bool:
        """Increment sold_tickets only if the event is active and the result stays within total_tickets."""
        ...

    @abstractmethod
    async def restore_capacity(self, event_id: str, quantity: int) -> bool:
        """Decrement sold_tickets only if at least `quantity` are sold."""
        ...

    # Seats

    @abstractmethod
    async def claimed_seats(self, event_id: str, seat_ids: Iterable[str] | None = None) -> set[str]:
        """Seats with a live claim, optionally restricted to `seat_ids`."""
        ...

    @abstractmethod
    async def claim_seats(self, event_id: str, seat_ids: Iterable[str], hold_id: str) -> None:
        """Raises SeatUnavailable if any seat is already claimed."""
        ...

    @abstractmethod
    async def drop_seat_claims(self, hold_id: str) -> None:
        ...

    @abstractmethod
    async def assign_seat_claims(self, hold_id: str, ticket_id: str) -> None:
        ...

    # Capacity holds

    @abstractmethod
    async def add_hold(self, hold: CapacityHold) -> None:
        ...

    @abstractmethod
    async def get_hold(self, hold_id: str) -> CapacityHold | None:
        ...

    @abstractmethod
    async def transition_hold(self, hold_id: str, from_status: HoldStatus, to_status: HoldStatus) -> bool:
        ...

    @abstractmethod
    async def expired_holds(self, now: datetime, limit: int = 100) -> list[CapacityHold]:
        ...

    # Promo codes

    @abstractmethod
    async def add_promo(self, promo: PromoCode) -> None:
        """Raises DuplicatePromoCode if the code already exists for the event."""
        ...

    @abstractmethod
    async def get_promo(self, promo_id: str) -> PromoCode | None:
        ...

    @abstractmethod
    async def find_promo(self, event_id: str, code: str) -> PromoCode | None:
        """Case-insensitive lookup by (event_id, code)."""
        ...

    @abstractmethod
    async def list_promos(self, event_id: str) -> list[PromoCode]:
        ...

    @abstractmethod
    async def set_promo_active(self, promo_id: str, is_active: bool) -> bool:
        ...

    @abstractmethod
    async def try_consume_promo(self, promo_id: str, now: datetime) -> bool:
        """Increment used_count only if active, unexpired and under ticket_limit."""
        ...

    # Tickets

    @abstractmethod
    async def add_ticket(self, ticket: Ticket) -> None:
        ...

    @abstractmethod
    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        ...

    @abstractmethod
    async def try_mark_used(self, ticket_id: str, used_at: datetime, used_by: str | None) -> bool:
        """The redemption test-and-set: valid -> used, at most once."""
        ...

    @abstractmethod
    async def list_tickets_for_event(self, event_id: str) -> list[Ticket]:
        ...

    @abstractmethod
    async def list_tickets_for_owner(self, owner_email: str) -> list[Ticket]:
        ...

    @abstractmethod
    async def owner_has_ticket(self, event_id: str, owner_email: str) -> bool:
        ...

    @abstractmethod
    async def ticket_totals(self, event_id: str) -> tuple[int, int]:
        """(used quantity, valid quantity) for the event."""
        ...

    # Gate access codes

    @abstractmethod
    async def add_gate_code(self, gate_code: GateAccessCode) -> None:
        ...

    @abstractmethod
    async def get_gate_code(self, code_id: str) -> GateAccessCode | None:
        ...

    @abstractmethod
    async def find_gate_code(self, code: str) -> GateAccessCode | None:
        """Case-insensitive lookup by the code a device presents."""
        ...

    @abstractmethod
    async def list_gate_codes(self, event_id: str) -> list[GateAccessCode]:
        ...

    @abstractmethod
    async def set_gate_code_active(self, code_id: str, is_active: bool) -> bool:
        ...

    # Audit

    @abstractmethod
    async def add_scan_record(self, record: ScanRecord) -> None:
        ...


class TicketStore(ABC):
    """Interface for persistence backends."""

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[StoreTransaction]:
        ...

    async def initialize(self) -> None:
        """Prepare the backend (schema, connections). No-op by default."""

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
