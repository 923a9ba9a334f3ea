"""
Ticket lookup endpoints.
"""

from fastapi import APIRouter, Depends, Query

from ticket_engine.api.deps import get_engine
from ticket_engine.schemas.ticket import TicketResponse
from ticket_engine.services.engine import TicketEngine

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.get("", response_model=list[TicketResponse])
async def list_owner_tickets(
    owner_email: str = Query(..., min_length=3, max_length=255),
    engine: TicketEngine = Depends(get_engine),
):
    """All tickets bought by an owner, newest first."""
    tickets = await engine.events.tickets_for_owner(owner_email)
    return [TicketResponse.model_validate(ticket) for ticket in tickets]


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket_endpoint(ticket_id: str, engine: TicketEngine = Depends(get_engine)):
    return TicketResponse.model_validate(await engine.issuer.get_ticket(ticket_id))
