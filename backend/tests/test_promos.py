"""
Tests for promo code validation, discount maths and guarded consumption.
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from ticket_engine.db.base import utcnow
from ticket_engine.domain.errors import DuplicatePromoCode, EventNotFound, InvalidPromo, PromoInvalid, PromoNotFound
from ticket_engine.domain.models import PromoRejection
from ticket_engine.services.promo_validator import apply_discount


@pytest.mark.parametrize(
    "base, pct, expected",
    [
        (Decimal("10000.00"), Decimal("20"), Decimal("8000.00")),
        (Decimal("10.05"), Decimal("50"), Decimal("5.03")),  # 5.025 rounds half up
        (Decimal("33.33"), Decimal("15"), Decimal("28.33")),
        (Decimal("99.99"), Decimal("100"), Decimal("0.00")),
        (Decimal("12.5"), None, Decimal("12.50")),
    ],
)
def test_apply_discount(base, pct, expected):
    assert apply_discount(base, pct) == expected


@pytest.mark.asyncio
async def test_validate_is_case_insensitive(engine, test_event, promo):
    found = await engine.promos.validate(test_event.id, "  save20 ")

    assert found.id == promo.id
    assert found.used_count == 0


@pytest.mark.asyncio
async def test_validate_does_not_consume(engine, test_event, promo):
    for _ in range(10):
        await engine.promos.validate(test_event.id, "SAVE20")

    assert (await engine.promos.validate(test_event.id, "SAVE20")).used_count == 0


@pytest.mark.asyncio
async def test_validate_unknown_code(engine, test_event):
    with pytest.raises(PromoInvalid) as exc_info:
        await engine.promos.validate(test_event.id, "NOPE")
    assert exc_info.value.reason == PromoRejection.NOT_FOUND


@pytest.mark.asyncio
async def test_code_is_scoped_to_event(engine, promo, small_event):
    with pytest.raises(PromoInvalid) as exc_info:
        await engine.promos.validate(small_event.id, "SAVE20")
    assert exc_info.value.reason == PromoRejection.NOT_FOUND


@pytest.mark.asyncio
async def test_validate_inactive_code(engine, test_event, promo):
    await engine.promos.set_active(promo.id, False)

    with pytest.raises(PromoInvalid) as exc_info:
        await engine.promos.validate(test_event.id, "SAVE20")
    assert exc_info.value.reason == PromoRejection.INACTIVE


@pytest.mark.asyncio
async def test_validate_expired_code(engine, test_event):
    await engine.promos.create(
        test_event.id,
        code="EARLY",
        discount_percentage=Decimal("10"),
        ticket_limit=10,
        expires_at=utcnow() - timedelta(minutes=1),
    )

    with pytest.raises(PromoInvalid) as exc_info:
        await engine.promos.validate(test_event.id, "early")
    assert exc_info.value.reason == PromoRejection.EXPIRED


@pytest.mark.asyncio
async def test_validate_exhausted_code(engine, store, test_event):
    one_shot = await engine.promos.create(
        test_event.id, code="ONCE", discount_percentage=Decimal("50"), ticket_limit=1
    )
    async with store.transaction() as tx:
        await engine.promos.consume(tx, one_shot)

    with pytest.raises(PromoInvalid) as exc_info:
        await engine.promos.validate(test_event.id, "ONCE")
    assert exc_info.value.reason == PromoRejection.LIMIT_REACHED


@pytest.mark.asyncio
async def test_concurrent_consumption_respects_limit(engine, store, test_event):
    """10 transactions race for a 3-use code: exactly 3 get a slot."""
    limited = await engine.promos.create(
        test_event.id, code="FEW", discount_percentage=Decimal("25"), ticket_limit=3
    )

    async def take_slot():
        async with store.transaction() as tx:
            await engine.promos.consume(tx, limited)

    results = await asyncio.gather(*(take_slot() for _ in range(10)), return_exceptions=True)

    assert sum(1 for r in results if r is None) == 3
    rejected = [r for r in results if isinstance(r, PromoInvalid)]
    assert len(rejected) == 7
    assert all(r.reason == PromoRejection.LIMIT_REACHED for r in rejected)
    assert store.promos[limited.id].used_count == 3


@pytest.mark.asyncio
async def test_duplicate_code_differs_only_in_case(engine, test_event, promo):
    with pytest.raises(DuplicatePromoCode):
        await engine.promos.create(
            test_event.id, code="save20", discount_percentage=Decimal("5"), ticket_limit=1
        )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "discount, limit",
    [(Decimal("0"), 5), (Decimal("101"), 5), (Decimal("10"), 0)],
)
async def test_create_rejects_bad_terms(engine, test_event, discount, limit):
    with pytest.raises(InvalidPromo):
        await engine.promos.create(test_event.id, code="BAD", discount_percentage=discount, ticket_limit=limit)


@pytest.mark.asyncio
async def test_create_for_unknown_event(engine):
    with pytest.raises(EventNotFound):
        await engine.promos.create("missing", code="X", discount_percentage=Decimal("10"), ticket_limit=1)


@pytest.mark.asyncio
async def test_list_and_toggle(engine, test_event, promo):
    promos = await engine.promos.list_for_event(test_event.id)
    assert [p.code for p in promos] == ["SAVE20"]

    toggled = await engine.promos.set_active(promo.id, False)
    assert toggled.is_active is False

    with pytest.raises(PromoNotFound):
        await engine.promos.set_active("missing", True)
