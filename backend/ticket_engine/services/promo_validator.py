"""
Promo code validation, consumption and organizer administration.

Validation is a read and never uses up a slot. The slot is taken by
consume(), a guarded increment run inside the purchase's commit transaction:

    UPDATE promo_codes SET used_count = used_count + 1
      WHERE id = :id AND is_active AND used_count < ticket_limit
        AND (expires_at IS NULL OR expires_at > :now)

so two buyers racing for the last use cannot both get it, and used_count
never passes ticket_limit. Slots are never handed back.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from ticket_engine.core.logging import get_logger
from ticket_engine.db.base import utcnow
from ticket_engine.domain.errors import (
    ConsistencyError,
    EventNotFound,
    InvalidPromo,
    PromoInvalid,
    PromoNotFound,
)
from ticket_engine.domain.models import PromoCode, PromoRejection
from ticket_engine.domain.value_objects import normalize_code, round_money
from ticket_engine.stores.interfaces import StoreTransaction, TicketStore

logger = get_logger(__name__)

HUNDRED = Decimal(100)


def apply_discount(base: Decimal, discount_percentage: Optional[Decimal]) -> Decimal:
    """base * (1 - pct/100), rounded once."""
    if not discount_percentage:
        return round_money(base)
    return round_money(base * (1 - Decimal(discount_percentage) / HUNDRED))


class PromoValidator:
    def __init__(self, store: TicketStore) -> None:
        self._store = store

    async def validate(self, event_id: str, code: str, now: Optional[datetime] = None) -> PromoCode:
        async with self._store.transaction() as tx:
            promo = await tx.find_promo(event_id, code)
        return self._check(promo, code, now or utcnow())

    @staticmethod
    def _check(promo: Optional[PromoCode], code: str, now: datetime) -> PromoCode:
        if promo is None:
            logger.info("promo_rejected", code=code, reason=PromoRejection.NOT_FOUND.value)
            raise PromoInvalid(code, PromoRejection.NOT_FOUND)
        reason = promo.rejection(now)
        if reason is not None:
            logger.info("promo_rejected", code=promo.code, promo_id=promo.id, reason=reason.value)
            raise PromoInvalid(promo.code, reason)
        return promo

    async def consume(self, tx: StoreTransaction, promo: PromoCode, now: Optional[datetime] = None) -> None:
        """Take one usage slot within the caller's transaction, or raise PromoInvalid."""
        now = now or utcnow()
        if await tx.try_consume_promo(promo.id, now):
            return

        current = await tx.get_promo(promo.id)
        reason = current.rejection(now) if current else PromoRejection.NOT_FOUND
        if reason is None:
            raise ConsistencyError(f"Promo {promo.id} guard failed while the code is still usable")
        logger.warning("promo_lost_race", promo_id=promo.id, code=promo.code, reason=reason.value)
        raise PromoInvalid(promo.code, reason)

    # Organizer administration

    async def create(
        self,
        event_id: str,
        code: str,
        discount_percentage: Decimal,
        ticket_limit: int,
        expires_at: Optional[datetime] = None,
    ) -> PromoCode:
        code = code.strip()
        if not code:
            raise InvalidPromo("Promo code must not be empty")
        discount_percentage = Decimal(discount_percentage)
        if not (0 < discount_percentage <= HUNDRED):
            raise InvalidPromo("Discount percentage must be greater than 0 and at most 100")
        if ticket_limit < 1:
            raise InvalidPromo("Ticket limit must be at least 1")

        promo = PromoCode(
            id=str(uuid4()),
            event_id=event_id,
            code=code,
            discount_percentage=discount_percentage,
            ticket_limit=ticket_limit,
            used_count=0,
            is_active=True,
            expires_at=expires_at,
            created_at=utcnow(),
        )
        async with self._store.transaction() as tx:
            if await tx.get_event(event_id) is None:
                raise EventNotFound(event_id)
            await tx.add_promo(promo)

        logger.info(
            "promo_created",
            promo_id=promo.id,
            event_id=event_id,
            code=normalize_code(code),
            discount=str(discount_percentage),
            ticket_limit=ticket_limit,
        )
        return promo

    async def list_for_event(self, event_id: str) -> list[PromoCode]:
        async with self._store.transaction() as tx:
            if await tx.get_event(event_id) is None:
                raise EventNotFound(event_id)
            return await tx.list_promos(event_id)

    async def set_active(self, promo_id: str, is_active: bool) -> PromoCode:
        async with self._store.transaction() as tx:
            if not await tx.set_promo_active(promo_id, is_active):
                raise PromoNotFound(promo_id)
            promo = await tx.get_promo(promo_id)

        logger.info("promo_toggled", promo_id=promo_id, is_active=is_active)
        return promo
