"""
Event administration and organizer dashboard endpoints.

Organizer identity arrives as a plain field (organizer_id); session login
happens upstream.
"""

from fastapi import APIRouter, Depends, status

from ticket_engine.api.deps import get_engine
from ticket_engine.domain.models import SeatSection
from ticket_engine.schemas.event import (
    CapacityIncrease,
    CapacityResponse,
    EventCreate,
    EventResponse,
    EventStatusUpdate,
    ScanStatsResponse,
    SeatMapResponse,
)
from ticket_engine.schemas.ticket import ClaimRequest, PurchaseResponse, TicketResponse
from ticket_engine.services.engine import TicketEngine
from ticket_engine.services.event_service import NewEvent

router = APIRouter(prefix="/events", tags=["Events"])


def _capacity(event) -> CapacityResponse:
    return CapacityResponse(
        event_id=event.id,
        total_tickets=event.total_tickets,
        sold_tickets=event.sold_tickets,
        remaining=event.remaining,
    )


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    engine: TicketEngine = Depends(get_engine),
):
    """Create an event. Reserved-seating events pass `sections` and get their capacity from them."""
    event = await engine.events.create(
        NewEvent(
            title=event_data.title,
            date=event_data.date,
            time=event_data.time,
            location=event_data.location,
            organizer_id=event_data.organizer_id,
            total_tickets=event_data.total_tickets,
            price=event_data.price,
            currency=event_data.currency,
            sections=[
                SeatSection(
                    section_name=section.section_name,
                    rows=section.rows,
                    seats_per_row=section.seats_per_row,
                    price=section.price,
                )
                for section in event_data.sections
            ],
        )
    )
    return EventResponse.model_validate(event)


@router.get("/by-key/{event_key}", response_model=EventResponse)
async def get_event_by_key_endpoint(event_key: str, engine: TicketEngine = Depends(get_engine)):
    return EventResponse.model_validate(await engine.events.get_by_key(event_key))


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(event_id: str, engine: TicketEngine = Depends(get_engine)):
    """Get a single event with live inventory counts."""
    return EventResponse.model_validate(await engine.events.get(event_id))


@router.patch("/{event_id}/status", response_model=EventResponse)
async def update_event_status_endpoint(
    event_id: str,
    update: EventStatusUpdate,
    engine: TicketEngine = Depends(get_engine),
):
    """Complete or cancel an event. Inactive events stop selling immediately."""
    return EventResponse.model_validate(await engine.events.set_status(event_id, update.status))


@router.get("/{event_id}/capacity", response_model=CapacityResponse)
async def get_capacity_endpoint(event_id: str, engine: TicketEngine = Depends(get_engine)):
    return _capacity(await engine.events.get(event_id))


@router.post("/{event_id}/capacity", response_model=CapacityResponse)
async def increase_capacity_endpoint(
    event_id: str,
    increase: CapacityIncrease,
    engine: TicketEngine = Depends(get_engine),
):
    return _capacity(await engine.ledger.increase_capacity(event_id, increase.additional))


@router.get("/{event_id}/seats", response_model=SeatMapResponse)
async def seat_map_endpoint(event_id: str, engine: TicketEngine = Depends(get_engine)):
    """Seat availability per section."""
    sections = await engine.events.seat_map(event_id)
    return SeatMapResponse(event_id=event_id, sections=sections)


@router.get("/{event_id}/tickets", response_model=list[TicketResponse])
async def list_event_tickets_endpoint(event_id: str, engine: TicketEngine = Depends(get_engine)):
    tickets = await engine.events.tickets_for_event(event_id)
    return [TicketResponse.model_validate(ticket) for ticket in tickets]


@router.get("/{event_id}/stats", response_model=ScanStatsResponse)
async def scan_stats_endpoint(event_id: str, engine: TicketEngine = Depends(get_engine)):
    """Entry dashboard: tickets scanned vs still outstanding."""
    return ScanStatsResponse.model_validate(await engine.redemption.stats(event_id))


@router.post("/{event_id}/claim", response_model=PurchaseResponse, status_code=status.HTTP_201_CREATED)
async def claim_free_ticket_endpoint(
    event_id: str,
    claim: ClaimRequest,
    engine: TicketEngine = Depends(get_engine),
):
    """Claim one ticket for a free event. One per owner."""
    issued = await engine.issuer.claim_free(event_id, claim.owner_email)
    return PurchaseResponse.from_issued(issued)
