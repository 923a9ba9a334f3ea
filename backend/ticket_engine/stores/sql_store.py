"""
SQLAlchemy-backed store.

CONCURRENCY STRATEGY: Guarded Conditional Updates
=================================================

Problem:
  Two gate devices scan the same QR code within milliseconds. Both read
  status='valid', both write status='used', both admit.

Solution:
  Every shared counter is changed by a single UPDATE whose WHERE clause is the
  guard, and the affected-row count says whether it applied:

    UPDATE tickets SET status='used' WHERE ticket_id=:id AND status='valid'
    UPDATE events SET sold_tickets=sold_tickets+:n
      WHERE id=:id AND status='active' AND sold_tickets+:n <= total_tickets
    UPDATE promo_codes SET used_count=used_count+1
      WHERE id=:id AND is_active AND used_count < ticket_limit AND (expires_at IS NULL OR expires_at > :now)

  PostgreSQL takes a row lock for the UPDATE and holds it until COMMIT, so a
  concurrent guard on the same row waits and then re-evaluates against the
  committed value. Locks are per row: different events, promos and tickets
  never contend. CHECK constraints remain the final safety net.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncIterator, Iterable

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from ticket_engine.core.logging import get_logger
from ticket_engine.db.base import Base
from ticket_engine.db.session import create_session_factory
from ticket_engine.domain import models as domain
from ticket_engine.domain.errors import DuplicatePromoCode, SeatUnavailable
from ticket_engine.domain.value_objects import normalize_code
from ticket_engine.models import (
    CapacityHold,
    Event,
    PromoCode,
    ScanLog,
    ScannerAccessCode,
    SeatClaim,
    SeatSection,
    Ticket,
)
from ticket_engine.stores.interfaces import StoreTransaction, TicketStore

logger = get_logger(__name__)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything the engine stores is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _event_to_domain(row: Event) -> domain.Event:
    return domain.Event(
        id=row.id,
        title=row.title,
        date=row.date,
        time=row.time,
        location=row.location,
        organizer_id=row.organizer_id,
        event_key=row.event_key,
        price=Decimal(row.price),
        currency=row.currency,
        total_tickets=row.total_tickets,
        sold_tickets=row.sold_tickets,
        status=domain.EventStatus(row.status),
        created_at=_aware(row.created_at),
        sections=tuple(
            domain.SeatSection(
                section_name=section.section_name,
                rows=section.rows,
                seats_per_row=section.seats_per_row,
                price=Decimal(section.price),
            )
            for section in row.sections
        ),
    )


def _promo_to_domain(row: PromoCode) -> domain.PromoCode:
    return domain.PromoCode(
        id=row.id,
        event_id=row.event_id,
        code=row.code,
        discount_percentage=Decimal(row.discount_percentage),
        ticket_limit=row.ticket_limit,
        used_count=row.used_count,
        is_active=row.is_active,
        expires_at=_aware(row.expires_at),
        created_at=_aware(row.created_at),
    )


def _hold_to_domain(row: CapacityHold) -> domain.CapacityHold:
    return domain.CapacityHold(
        id=row.id,
        event_id=row.event_id,
        quantity=row.quantity,
        seat_ids=tuple(row.seat_ids or ()),
        status=domain.HoldStatus(row.status),
        expires_at=_aware(row.expires_at),
        created_at=_aware(row.created_at),
    )


def _ticket_to_domain(row: Ticket) -> domain.Ticket:
    return domain.Ticket(
        ticket_id=row.ticket_id,
        event_id=row.event_id,
        event_key=row.event_key,
        owner_email=row.owner_email,
        quantity=row.quantity,
        seat_ids=tuple(row.seat_ids or ()),
        unit_price=Decimal(row.unit_price),
        discount_percentage=Decimal(row.discount_percentage),
        total_price=Decimal(row.total_price),
        currency=row.currency,
        promo_code_id=row.promo_code_id,
        status=domain.TicketStatus(row.status),
        purchased_at=_aware(row.purchased_at),
        used_at=_aware(row.used_at),
        used_by=row.used_by,
    )


def _gate_code_to_domain(row: ScannerAccessCode) -> domain.GateAccessCode:
    return domain.GateAccessCode(
        id=row.id,
        event_id=row.event_id,
        code=row.code,
        label=row.label,
        is_active=row.is_active,
        expires_at=_aware(row.expires_at),
        created_at=_aware(row.created_at),
    )


class SqlTicketStore(TicketStore):
    """PostgreSQL-backed store (SQLite works for tests and tooling)."""

    def __init__(self, engine: AsyncEngine, create_schema: bool = False) -> None:
        self._engine = engine
        self._sessions = create_session_factory(engine)
        self._create_schema = create_schema

    async def initialize(self) -> None:
        # Production schema is owned by Alembic; create_all is for tests and local runs
        if self._create_schema:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("sql_store_schema_created")

    async def close(self) -> None:
        await self._engine.dispose()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqlTransaction"]:
        async with self._sessions() as session:
            async with session.begin():
                yield SqlTransaction(session)


class SqlTransaction(StoreTransaction):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _rowcount(self, statement) -> int:
        result = await self._session.execute(statement.execution_options(synchronize_session=False))
        return result.rowcount

    # Events

    async def add_event(self, event: domain.Event) -> None:
        row = Event(
            id=event.id,
            title=event.title,
            date=event.date,
            time=event.time,
            location=event.location,
            organizer_id=event.organizer_id,
            event_key=event.event_key,
            price=event.price,
            currency=event.currency,
            total_tickets=event.total_tickets,
            sold_tickets=event.sold_tickets,
            status=event.status.value,
            created_at=event.created_at,
            updated_at=event.created_at,
        )
        row.sections = [
            SeatSection(
                section_name=section.section_name,
                rows=section.rows,
                seats_per_row=section.seats_per_row,
                price=section.price,
            )
            for section in event.sections
        ]
        self._session.add(row)
        await self._session.flush()

    async def _load_event(self, statement) -> domain.Event | None:
        result = await self._session.execute(statement.execution_options(populate_existing=True))
        row = result.scalar_one_or_none()
        return _event_to_domain(row) if row else None

    async def get_event(self, event_id: str) -> domain.Event | None:
        return await self._load_event(select(Event).where(Event.id == event_id))

    async def get_event_by_key(self, event_key: str) -> domain.Event | None:
        return await self._load_event(select(Event).where(Event.event_key == event_key))

    async def lock_event(self, event_id: str) -> domain.Event | None:
        return await self._load_event(select(Event).where(Event.id == event_id).with_for_update())

    async def set_event_status(self, event_id: str, status: domain.EventStatus) -> bool:
        return await self._rowcount(
            update(Event).where(Event.id == event_id).values(status=status.value)
        ) == 1

    async def add_capacity(self, event_id: str, additional: int) -> bool:
        return await self._rowcount(
            update(Event)
            .where(Event.id == event_id)
            .values(total_tickets=Event.total_tickets + additional)
        ) == 1

    async def try_reserve_capacity(self, event_id: str, quantity: int) -> bool:
        return await self._rowcount(
            update(Event)
            .where(
                Event.id == event_id,
                Event.status == domain.EventStatus.ACTIVE.value,
                Event.sold_tickets + quantity <= Event.total_tickets,
            )
            .values(sold_tickets=Event.sold_tickets + quantity)
        ) == 1

    async def restore_capacity(self, event_id: str, quantity: int) -> bool:
        return await self._rowcount(
            update(Event)
            .where(Event.id == event_id, Event.sold_tickets >= quantity)
            .values(sold_tickets=Event.sold_tickets - quantity)
        ) == 1

    # Seats

    async def claimed_seats(self, event_id: str, seat_ids: Iterable[str] | None = None) -> set[str]:
        query = select(SeatClaim.seat_id).where(SeatClaim.event_id == event_id)
        if seat_ids is not None:
            query = query.where(SeatClaim.seat_id.in_(list(seat_ids)))
        result = await self._session.execute(query)
        return set(result.scalars().all())

    async def claim_seats(self, event_id: str, seat_ids: Iterable[str], hold_id: str) -> None:
        seat_ids = list(seat_ids)
        taken = await self.claimed_seats(event_id, seat_ids)
        if taken:
            raise SeatUnavailable(list(taken))
        self._session.add_all(
            SeatClaim(event_id=event_id, seat_id=seat, hold_id=hold_id) for seat in seat_ids
        )
        try:
            await self._session.flush()
        except IntegrityError as exc:
            # Lost the race on the unique (event_id, seat_id) index after the pre-check
            raise SeatUnavailable(seat_ids) from exc

    async def drop_seat_claims(self, hold_id: str) -> None:
        await self._session.execute(delete(SeatClaim).where(SeatClaim.hold_id == hold_id))

    async def assign_seat_claims(self, hold_id: str, ticket_id: str) -> None:
        await self._session.execute(
            update(SeatClaim).where(SeatClaim.hold_id == hold_id).values(ticket_id=ticket_id)
        )

    # Capacity holds

    async def add_hold(self, hold: domain.CapacityHold) -> None:
        self._session.add(
            CapacityHold(
                id=hold.id,
                event_id=hold.event_id,
                quantity=hold.quantity,
                seat_ids=list(hold.seat_ids),
                status=hold.status.value,
                expires_at=hold.expires_at,
                created_at=hold.created_at,
            )
        )
        await self._session.flush()

    async def get_hold(self, hold_id: str) -> domain.CapacityHold | None:
        result = await self._session.execute(
            select(CapacityHold)
            .where(CapacityHold.id == hold_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _hold_to_domain(row) if row else None

    async def transition_hold(
        self, hold_id: str, from_status: domain.HoldStatus, to_status: domain.HoldStatus
    ) -> bool:
        return await self._rowcount(
            update(CapacityHold)
            .where(CapacityHold.id == hold_id, CapacityHold.status == from_status.value)
            .values(status=to_status.value)
        ) == 1

    async def expired_holds(self, now: datetime, limit: int = 100) -> list[domain.CapacityHold]:
        result = await self._session.execute(
            select(CapacityHold)
            .where(CapacityHold.status == domain.HoldStatus.HELD.value, CapacityHold.expires_at <= now)
            .order_by(CapacityHold.expires_at)
            .limit(limit)
        )
        return [_hold_to_domain(row) for row in result.scalars().all()]

    # Promo codes

    async def add_promo(self, promo: domain.PromoCode) -> None:
        self._session.add(
            PromoCode(
                id=promo.id,
                event_id=promo.event_id,
                code=promo.code,
                code_normalized=normalize_code(promo.code),
                discount_percentage=promo.discount_percentage,
                ticket_limit=promo.ticket_limit,
                used_count=promo.used_count,
                is_active=promo.is_active,
                expires_at=promo.expires_at,
                created_at=promo.created_at,
                updated_at=promo.created_at,
            )
        )
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise DuplicatePromoCode(promo.code) from exc

    async def _load_promo(self, statement) -> domain.PromoCode | None:
        result = await self._session.execute(statement.execution_options(populate_existing=True))
        row = result.scalar_one_or_none()
        return _promo_to_domain(row) if row else None

    async def get_promo(self, promo_id: str) -> domain.PromoCode | None:
        return await self._load_promo(select(PromoCode).where(PromoCode.id == promo_id))

    async def find_promo(self, event_id: str, code: str) -> domain.PromoCode | None:
        return await self._load_promo(
            select(PromoCode).where(
                PromoCode.event_id == event_id,
                PromoCode.code_normalized == normalize_code(code),
            )
        )

    async def list_promos(self, event_id: str) -> list[domain.PromoCode]:
        result = await self._session.execute(
            select(PromoCode).where(PromoCode.event_id == event_id).order_by(PromoCode.created_at.desc())
        )
        return [_promo_to_domain(row) for row in result.scalars().all()]

    async def set_promo_active(self, promo_id: str, is_active: bool) -> bool:
        return await self._rowcount(
            update(PromoCode).where(PromoCode.id == promo_id).values(is_active=is_active)
        ) == 1

    async def try_consume_promo(self, promo_id: str, now: datetime) -> bool:
        return await self._rowcount(
            update(PromoCode)
            .where(
                PromoCode.id == promo_id,
                PromoCode.is_active.is_(True),
                PromoCode.used_count < PromoCode.ticket_limit,
                or_(PromoCode.expires_at.is_(None), PromoCode.expires_at > now),
            )
            .values(used_count=PromoCode.used_count + 1)
        ) == 1

    # Tickets

    async def add_ticket(self, ticket: domain.Ticket) -> None:
        self._session.add(
            Ticket(
                ticket_id=ticket.ticket_id,
                event_id=ticket.event_id,
                event_key=ticket.event_key,
                owner_email=ticket.owner_email,
                quantity=ticket.quantity,
                seat_ids=list(ticket.seat_ids),
                unit_price=ticket.unit_price,
                discount_percentage=ticket.discount_percentage,
                total_price=ticket.total_price,
                currency=ticket.currency,
                promo_code_id=ticket.promo_code_id,
                status=ticket.status.value,
                purchased_at=ticket.purchased_at,
                created_at=ticket.purchased_at,
                updated_at=ticket.purchased_at,
            )
        )
        await self._session.flush()

    async def get_ticket(self, ticket_id: str) -> domain.Ticket | None:
        result = await self._session.execute(
            select(Ticket)
            .where(Ticket.ticket_id == ticket_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _ticket_to_domain(row) if row else None

    async def try_mark_used(self, ticket_id: str, used_at: datetime, used_by: str | None) -> bool:
        return await self._rowcount(
            update(Ticket)
            .where(Ticket.ticket_id == ticket_id, Ticket.status == domain.TicketStatus.VALID.value)
            .values(status=domain.TicketStatus.USED.value, used_at=used_at, used_by=used_by)
        ) == 1

    async def list_tickets_for_event(self, event_id: str) -> list[domain.Ticket]:
        result = await self._session.execute(
            select(Ticket).where(Ticket.event_id == event_id).order_by(Ticket.purchased_at.desc())
        )
        return [_ticket_to_domain(row) for row in result.scalars().all()]

    async def list_tickets_for_owner(self, owner_email: str) -> list[domain.Ticket]:
        result = await self._session.execute(
            select(Ticket)
            .where(func.lower(Ticket.owner_email) == owner_email.lower())
            .order_by(Ticket.purchased_at.desc())
        )
        return [_ticket_to_domain(row) for row in result.scalars().all()]

    async def owner_has_ticket(self, event_id: str, owner_email: str) -> bool:
        result = await self._session.execute(
            select(func.count())
            .select_from(Ticket)
            .where(and_(Ticket.event_id == event_id, func.lower(Ticket.owner_email) == owner_email.lower()))
        )
        return result.scalar_one() > 0

    async def ticket_totals(self, event_id: str) -> tuple[int, int]:
        result = await self._session.execute(
            select(Ticket.status, func.coalesce(func.sum(Ticket.quantity), 0))
            .where(Ticket.event_id == event_id)
            .group_by(Ticket.status)
        )
        totals = {status: int(quantity) for status, quantity in result.all()}
        return totals.get(domain.TicketStatus.USED.value, 0), totals.get(domain.TicketStatus.VALID.value, 0)

    # Audit

    async def add_scan_record(self, record: domain.ScanRecord) -> None:
        self._session.add(
            ScanLog(
                id=record.id,
                event_key=record.event_key,
                ticket_id=record.ticket_id,
                outcome=record.outcome.value,
                session_id=record.session_id,
                gate_label=record.gate_label,
                scanned_at=record.scanned_at,
            )
        )
        await self._session.flush()

    # Gate access codes

    async def add_gate_code(self, gate_code: domain.GateAccessCode) -> None:
        self._session.add(
            ScannerAccessCode(
                id=gate_code.id,
                event_id=gate_code.event_id,
                code=normalize_code(gate_code.code),
                label=gate_code.label,
                is_active=gate_code.is_active,
                expires_at=gate_code.expires_at,
                created_at=gate_code.created_at,
                updated_at=gate_code.created_at,
            )
        )
        await self._session.flush()

    async def _load_gate_code(self, statement) -> domain.GateAccessCode | None:
        result = await self._session.execute(statement.execution_options(populate_existing=True))
        row = result.scalar_one_or_none()
        return _gate_code_to_domain(row) if row else None

    async def get_gate_code(self, code_id: str) -> domain.GateAccessCode | None:
        return await self._load_gate_code(select(ScannerAccessCode).where(ScannerAccessCode.id == code_id))

    async def find_gate_code(self, code: str) -> domain.GateAccessCode | None:
        return await self._load_gate_code(
            select(ScannerAccessCode).where(ScannerAccessCode.code == normalize_code(code))
        )

    async def list_gate_codes(self, event_id: str) -> list[domain.GateAccessCode]:
        result = await self._session.execute(
            select(ScannerAccessCode)
            .where(ScannerAccessCode.event_id == event_id)
            .order_by(ScannerAccessCode.created_at.desc())
        )
        return [_gate_code_to_domain(row) for row in result.scalars().all()]

    async def set_gate_code_active(self, code_id: str, is_active: bool) -> bool:
        return await self._rowcount(
            update(ScannerAccessCode).where(ScannerAccessCode.id == code_id).values(is_active=is_active)
        ) == 1
