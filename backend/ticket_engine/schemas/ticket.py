"""
Pydantic schemas for tickets and purchases.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from ticket_engine.domain.models import TicketStatus
from ticket_engine.services.ticket_issuer import IssuedTicket


class PurchaseCreate(BaseModel):
    event_id: str
    owner_email: EmailStr
    # bounds are enforced by the issuer so they surface as INVALID_PURCHASE
    quantity: Optional[int] = None
    seat_ids: Optional[list[str]] = Field(None, max_length=100)
    promo_code: Optional[str] = Field(None, max_length=50)


class ClaimRequest(BaseModel):
    owner_email: EmailStr


class TicketResponse(BaseModel):
    ticket_id: str
    event_id: str
    event_key: str
    owner_email: str
    quantity: int
    seat_ids: list[str]
    unit_price: Decimal
    discount_percentage: Decimal
    total_price: Decimal
    currency: str
    promo_code_id: Optional[str]
    status: TicketStatus
    purchased_at: datetime
    used_at: Optional[datetime]
    used_by: Optional[str]
    qr_payload: str

    model_config = {"from_attributes": True}


class PurchaseResponse(BaseModel):
    ticket_id: str
    event_id: str
    event_key: str
    owner_email: str
    quantity: int
    seat_ids: list[str]
    unit_price: Decimal
    discount_percentage: Decimal
    final_price: Decimal
    currency: str
    promo_code: Optional[str]
    qr_payload: str
    purchased_at: datetime

    @classmethod
    def from_issued(cls, issued: IssuedTicket) -> "PurchaseResponse":
        ticket = issued.ticket
        return cls(
            ticket_id=ticket.ticket_id,
            event_id=ticket.event_id,
            event_key=ticket.event_key,
            owner_email=ticket.owner_email,
            quantity=ticket.quantity,
            seat_ids=list(ticket.seat_ids),
            unit_price=ticket.unit_price,
            discount_percentage=ticket.discount_percentage,
            final_price=issued.final_price,
            currency=ticket.currency,
            promo_code=issued.promo_code,
            qr_payload=issued.qr_payload,
            purchased_at=ticket.purchased_at,
        )
