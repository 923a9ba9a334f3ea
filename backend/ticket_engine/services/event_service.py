"""
Event administration: creation, lookup, lifecycle and organizer dashboards.
"""

from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal
from typing import Optional, Sequence
from uuid import uuid4

from ticket_engine.core.config import get_settings
from ticket_engine.core.logging import get_logger
from ticket_engine.db.base import utcnow
from ticket_engine.domain.errors import EventNotFound, InvalidEvent
from ticket_engine.domain.models import Event, EventStatus, SeatSection, Ticket
from ticket_engine.domain.value_objects import generate_event_key, round_money
from ticket_engine.services import seating
from ticket_engine.stores.interfaces import TicketStore

logger = get_logger(__name__)

# Only an active event may change status; completed and cancelled are final
_ALLOWED_TRANSITIONS = {
    EventStatus.ACTIVE: {EventStatus.COMPLETED, EventStatus.CANCELLED},
}


@dataclass(frozen=True)
class NewEvent:
    title: str
    date: date
    location: str
    organizer_id: str
    total_tickets: Optional[int] = None
    price: Decimal = Decimal(0)
    currency: Optional[str] = None
    time: Optional[time] = None
    sections: Sequence[SeatSection] = ()


class EventService:
    def __init__(self, store: TicketStore) -> None:
        self._store = store

    async def create(self, data: NewEvent) -> Event:
        """
        Create an event. Seated events take their capacity from their sections;
        general admission events need total_tickets.
        """
        sections = tuple(data.sections)
        if sections:
            names = [section.section_name for section in sections]
            if len(set(names)) != len(names):
                raise InvalidEvent("Section names must be unique")
            capacity = sum(section.capacity for section in sections)
            if data.total_tickets is not None and data.total_tickets != capacity:
                raise InvalidEvent(
                    f"total_tickets ({data.total_tickets}) does not match seated capacity ({capacity})"
                )
        else:
            if data.total_tickets is None or data.total_tickets < 1:
                raise InvalidEvent("total_tickets must be at least 1")
            capacity = data.total_tickets

        if data.price < 0:
            raise InvalidEvent("Price must not be negative")

        event = Event(
            id=str(uuid4()),
            title=data.title.strip(),
            date=data.date,
            time=data.time,
            location=data.location.strip(),
            organizer_id=data.organizer_id,
            event_key=generate_event_key(data.title),
            price=round_money(Decimal(data.price)),
            currency=(data.currency or get_settings().DEFAULT_CURRENCY).upper(),
            total_tickets=capacity,
            sold_tickets=0,
            status=EventStatus.ACTIVE,
            created_at=utcnow(),
            sections=sections,
        )

        async with self._store.transaction() as tx:
            await tx.add_event(event)

        logger.info(
            "event_created",
            event_id=event.id,
            event_key=event.event_key,
            organizer_id=event.organizer_id,
            total_tickets=event.total_tickets,
            seated=event.is_seated,
        )
        return event

    async def get(self, event_id: str) -> Event:
        async with self._store.transaction() as tx:
            event = await tx.get_event(event_id)
        if event is None:
            raise EventNotFound(event_id)
        return event

    async def get_by_key(self, event_key: str) -> Event:
        async with self._store.transaction() as tx:
            event = await tx.get_event_by_key(event_key)
        if event is None:
            raise EventNotFound(event_key)
        return event

    async def set_status(self, event_id: str, status: EventStatus) -> Event:
        async with self._store.transaction() as tx:
            event = await tx.lock_event(event_id)
            if event is None:
                raise EventNotFound(event_id)
            if status == event.status:
                return event
            if status not in _ALLOWED_TRANSITIONS.get(event.status, set()):
                raise InvalidEvent(f"Cannot change event from {event.status.value} to {status.value}")
            await tx.set_event_status(event_id, status)
            updated = await tx.get_event(event_id)

        logger.info("event_status_changed", event_id=event_id, old=event.status.value, new=status.value)
        return updated

    async def seat_map(self, event_id: str) -> list[dict]:
        async with self._store.transaction() as tx:
            event = await tx.get_event(event_id)
            if event is None:
                raise EventNotFound(event_id)
            claimed = await tx.claimed_seats(event_id)
        if not event.is_seated:
            raise InvalidEvent("This event does not have reserved seating")
        return seating.seat_map(event, claimed)

    async def tickets_for_event(self, event_id: str) -> list[Ticket]:
        async with self._store.transaction() as tx:
            if await tx.get_event(event_id) is None:
                raise EventNotFound(event_id)
            return await tx.list_tickets_for_event(event_id)

    async def tickets_for_owner(self, owner_email: str) -> list[Ticket]:
        async with self._store.transaction() as tx:
            return await tx.list_tickets_for_owner(owner_email)
