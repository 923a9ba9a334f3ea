"""
Promo code endpoints: organizer administration plus the checkout pre-check.
"""

from fastapi import APIRouter, Depends, status

from ticket_engine.api.deps import get_engine
from ticket_engine.schemas.promo import (
    PromoCreate,
    PromoResponse,
    PromoToggle,
    PromoValidateRequest,
    PromoValidateResponse,
)
from ticket_engine.services.engine import TicketEngine

router = APIRouter(tags=["Promos"])


@router.post(
    "/events/{event_id}/promos",
    response_model=PromoResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_promo_endpoint(
    event_id: str,
    promo_data: PromoCreate,
    engine: TicketEngine = Depends(get_engine),
):
    promo = await engine.promos.create(
        event_id,
        code=promo_data.code,
        discount_percentage=promo_data.discount_percentage,
        ticket_limit=promo_data.ticket_limit,
        expires_at=promo_data.expires_at,
    )
    return PromoResponse.model_validate(promo)


@router.get("/events/{event_id}/promos", response_model=list[PromoResponse])
async def list_promos_endpoint(event_id: str, engine: TicketEngine = Depends(get_engine)):
    promos = await engine.promos.list_for_event(event_id)
    return [PromoResponse.model_validate(promo) for promo in promos]


@router.patch("/promos/{promo_id}", response_model=PromoResponse)
async def toggle_promo_endpoint(
    promo_id: str,
    toggle: PromoToggle,
    engine: TicketEngine = Depends(get_engine),
):
    return PromoResponse.model_validate(await engine.promos.set_active(promo_id, toggle.is_active))


@router.post("/promos/validate", response_model=PromoValidateResponse)
async def validate_promo_endpoint(
    request: PromoValidateRequest,
    engine: TicketEngine = Depends(get_engine),
):
    """
    Check a code before checkout. Does not use up a slot: the final check
    happens again when the purchase commits.
    """
    promo = await engine.promos.validate(request.event_id, request.code)
    return PromoValidateResponse(
        code=promo.code,
        discount_percentage=promo.discount_percentage,
        remaining_uses=promo.remaining_uses,
    )
