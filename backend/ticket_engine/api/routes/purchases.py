"""
Purchase endpoint: the ticket issuance pipeline over HTTP.
"""

from fastapi import APIRouter, Depends, status

from ticket_engine.api.deps import get_engine
from ticket_engine.schemas.ticket import PurchaseCreate, PurchaseResponse
from ticket_engine.services.engine import TicketEngine

router = APIRouter(prefix="/purchases", tags=["Purchases"])


@router.post("", response_model=PurchaseResponse, status_code=status.HTTP_201_CREATED)
async def create_purchase(
    purchase: PurchaseCreate,
    engine: TicketEngine = Depends(get_engine),
):
    """
    Buy tickets for an event.

    General admission sends `quantity`; reserved seating sends `seat_ids`.
    Capacity is held while payment is confirmed and given back if anything
    fails, so a failed purchase never leaves tickets or promo uses behind.
    """
    issued = await engine.issuer.issue(
        purchase.event_id,
        purchase.owner_email,
        quantity=purchase.quantity,
        promo_code=purchase.promo_code,
        seat_ids=purchase.seat_ids,
    )
    return PurchaseResponse.from_issued(issued)
