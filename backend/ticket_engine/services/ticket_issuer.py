"""
Ticket issuance: the purchase pipeline.

    validate input -> validate promo -> reserve capacity (+ seats)
        -> confirm payment (no locks held)
        -> one transaction: consume promo, persist ticket, commit hold

All-or-nothing: a failure after the reservation releases it, so capacity and
seats go back to the pool and the promo slot is never taken (its increment
rolls back with the rest of the commit transaction).
"""

import asyncio
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from ticket_engine.core.config import get_settings
from ticket_engine.core.logging import get_logger
from ticket_engine.core.metrics import issuance_latency, promo_consumptions, record_issuance
from ticket_engine.db.base import utcnow
from ticket_engine.domain.errors import (
    AlreadyClaimed,
    CapacityExceeded,
    EventNotActive,
    EventNotFound,
    HoldExpired,
    InvalidPurchase,
    PaymentNotConfirmed,
    TicketingError,
    TicketNotFound,
)
from ticket_engine.domain.models import Event, EventStatus, PromoCode, Ticket, TicketStatus
from ticket_engine.domain.value_objects import generate_ticket_id, round_money
from ticket_engine.services import seating
from ticket_engine.services.capacity_ledger import CapacityLedger, Reservation
from ticket_engine.services.event_service import EventService
from ticket_engine.services.payments import AutoConfirm, PaymentConfirmer, PaymentRequest
from ticket_engine.services.promo_validator import PromoValidator, apply_discount
from ticket_engine.services.publisher import LoggingPublisher, Publisher, TicketIssued
from ticket_engine.stores.interfaces import TicketStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class IssuedTicket:
    ticket: Ticket
    promo_code: Optional[str] = None

    @property
    def ticket_id(self) -> str:
        return self.ticket.ticket_id

    @property
    def final_price(self) -> Decimal:
        return self.ticket.total_price

    @property
    def qr_payload(self) -> str:
        return self.ticket.qr_payload


class TicketIssuer:
    def __init__(
        self,
        store: TicketStore,
        ledger: CapacityLedger,
        promos: PromoValidator,
        events: EventService,
        payments: Optional[PaymentConfirmer] = None,
        publisher: Optional[Publisher] = None,
        payment_timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self._store = store
        self._ledger = ledger
        self._promos = promos
        self._events = events
        self._payments = payments or AutoConfirm()
        self._publisher = publisher or LoggingPublisher()
        self._max_quantity = settings.MAX_TICKETS_PER_PURCHASE
        if payment_timeout is None:
            payment_timeout = settings.PAYMENT_CONFIRM_TIMEOUT_SECONDS
        self._payment_timeout = payment_timeout

    async def issue(
        self,
        event_id: str,
        owner_email: str,
        quantity: Optional[int] = None,
        promo_code: Optional[str] = None,
        seat_ids: Optional[Sequence[str]] = None,
    ) -> IssuedTicket:
        start = time.perf_counter()
        try:
            issued = await self._issue(event_id, owner_email, quantity, promo_code, seat_ids)
        except TicketingError as e:
            record_issuance(e.code.value)
            raise
        finally:
            issuance_latency.observe(time.perf_counter() - start)

        record_issuance("issued")
        await self._publish(issued.ticket)
        return issued

    async def _issue(
        self,
        event_id: str,
        owner_email: str,
        quantity: Optional[int],
        promo_code: Optional[str],
        seat_ids: Optional[Sequence[str]],
    ) -> IssuedTicket:
        event = await self._events.get(event_id)
        if event.status != EventStatus.ACTIVE:
            raise EventNotActive(event_id, event.status)

        seats, quantity = self._resolve_quantity(event, quantity, seat_ids)

        promo: Optional[PromoCode] = None
        if promo_code and promo_code.strip():
            promo = await self._promos.validate(event_id, promo_code)

        base = seating.price_for_seats(event, seats) if seats else event.price * quantity
        discount = promo.discount_percentage if promo else Decimal(0)
        total = apply_discount(base, discount)

        reservation = await self._ledger.reserve(event_id, quantity, seats)
        try:
            payment_reference = await self._confirm_payment(reservation, owner_email, total, event.currency)

            ticket = Ticket(
                ticket_id=generate_ticket_id(),
                event_id=event.id,
                event_key=event.event_key,
                owner_email=owner_email,
                quantity=quantity,
                seat_ids=seats,
                unit_price=round_money(base / quantity),
                discount_percentage=discount,
                total_price=total,
                currency=event.currency,
                promo_code_id=promo.id if promo else None,
                status=TicketStatus.VALID,
                purchased_at=utcnow(),
            )
            try:
                async with self._store.transaction() as tx:
                    if promo:
                        await self._promos.consume(tx, promo)
                    await tx.add_ticket(ticket)
                    await self._ledger.commit(tx, reservation, ticket.ticket_id)
            except HoldExpired:
                # the buyer was charged; the reference lets the payment side refund it
                logger.warning(
                    "hold_expired_after_payment",
                    hold_id=reservation.hold_id,
                    event_id=event.id,
                    payment_reference=payment_reference,
                )
                raise PaymentNotConfirmed("hold_expired", reference=payment_reference)
        except BaseException:
            # includes cancellation: the client went away mid-purchase
            await self._ledger.release(reservation, reason="failed")
            raise

        if promo:
            promo_consumptions.inc()
        logger.info(
            "ticket_issued",
            ticket_id=ticket.ticket_id,
            event_id=event.id,
            quantity=quantity,
            seats=list(seats),
            total_price=str(total),
            promo_code_id=ticket.promo_code_id,
        )
        return IssuedTicket(ticket=ticket, promo_code=promo.code if promo else None)

    def _resolve_quantity(
        self, event: Event, quantity: Optional[int], seat_ids: Optional[Sequence[str]]
    ) -> tuple[tuple[str, ...], int]:
        if seat_ids:
            seats = seating.parse_seat_ids(event, seat_ids)
            if quantity is not None and quantity != len(seats):
                raise InvalidPurchase("Quantity must match the number of seats")
            quantity = len(seats)
        elif event.is_seated:
            raise InvalidPurchase("This event requires seat selection")
        else:
            seats = ()
            quantity = 1 if quantity is None else quantity

        if quantity < 1:
            raise InvalidPurchase("Quantity must be at least 1")
        if quantity > self._max_quantity:
            raise InvalidPurchase(f"At most {self._max_quantity} tickets per purchase")
        return seats, quantity

    async def _confirm_payment(
        self, reservation: Reservation, owner_email: str, amount: Decimal, currency: str
    ) -> Optional[str]:
        """Wait for the confirmer. Returns its payment reference, None for free purchases."""
        if amount == 0:
            return None

        request = PaymentRequest(
            hold_id=reservation.hold_id,
            event_id=reservation.event_id,
            owner_email=owner_email,
            amount=amount,
            currency=currency,
        )
        try:
            result = await asyncio.wait_for(self._payments.confirm(request), timeout=self._payment_timeout)
        except asyncio.TimeoutError:
            logger.warning("payment_timeout", hold_id=reservation.hold_id, timeout=self._payment_timeout)
            raise PaymentNotConfirmed("timeout")

        if not result.confirmed:
            logger.warning("payment_declined", hold_id=reservation.hold_id, reason=result.reason)
            raise PaymentNotConfirmed(result.reason or "declined")
        logger.info("payment_confirmed", hold_id=reservation.hold_id, reference=result.reference)
        return result.reference

    async def claim_free(self, event_id: str, owner_email: str) -> IssuedTicket:
        """One free general-admission ticket per owner."""
        async with self._store.transaction() as tx:
            event = await tx.lock_event(event_id)
            if event is None:
                raise EventNotFound(event_id)
            if event.status != EventStatus.ACTIVE:
                raise EventNotActive(event_id, event.status)
            if event.price > 0 or event.is_seated:
                raise InvalidPurchase("Only free general admission events can be claimed")
            if await tx.owner_has_ticket(event_id, owner_email):
                raise AlreadyClaimed(event_id)
            if not await tx.try_reserve_capacity(event_id, 1):
                raise CapacityExceeded(event_id, 1, event.remaining)

            ticket = Ticket(
                ticket_id=generate_ticket_id(),
                event_id=event.id,
                event_key=event.event_key,
                owner_email=owner_email,
                quantity=1,
                seat_ids=(),
                unit_price=round_money(Decimal(0)),
                discount_percentage=Decimal(0),
                total_price=round_money(Decimal(0)),
                currency=event.currency,
                promo_code_id=None,
                status=TicketStatus.VALID,
                purchased_at=utcnow(),
            )
            await tx.add_ticket(ticket)

        record_issuance("claimed")
        logger.info("ticket_claimed", ticket_id=ticket.ticket_id, event_id=event_id)
        await self._publish(ticket)
        return IssuedTicket(ticket=ticket)

    async def get_ticket(self, ticket_id: str) -> Ticket:
        async with self._store.transaction() as tx:
            ticket = await tx.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFound(ticket_id)
        return ticket

    async def _publish(self, ticket: Ticket) -> None:
        await self._publisher.publish(
            TicketIssued(
                ticket_id=ticket.ticket_id,
                event_id=ticket.event_id,
                event_key=ticket.event_key,
                owner_email=ticket.owner_email,
                quantity=ticket.quantity,
                total_price=ticket.total_price,
                currency=ticket.currency,
                promo_code_id=ticket.promo_code_id,
            )
        )
