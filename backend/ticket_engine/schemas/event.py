"""
Pydantic schemas for event administration and organizer dashboards.
"""

import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ticket_engine.domain.models import EventStatus


class SeatSectionCreate(BaseModel):
    section_name: str = Field(..., min_length=1, max_length=20, pattern=r"^[A-Za-z0-9]+$")
    rows: int = Field(..., gt=0, le=500)
    seats_per_row: int = Field(..., gt=0, le=500)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    date: dt.date
    time: Optional[dt.time] = None
    location: str = Field(..., min_length=1, max_length=500)
    organizer_id: str = Field(..., min_length=1, max_length=64)
    total_tickets: Optional[int] = Field(None, gt=0, le=1_000_000)
    price: Decimal = Field(Decimal(0), ge=0, max_digits=12, decimal_places=2)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    sections: list[SeatSectionCreate] = Field(default_factory=list)


class SeatSectionResponse(BaseModel):
    section_name: str
    rows: int
    seats_per_row: int
    price: Decimal
    capacity: int

    model_config = {"from_attributes": True}


class EventResponse(BaseModel):
    id: str
    title: str
    date: dt.date
    time: Optional[dt.time]
    location: str
    organizer_id: str
    event_key: str
    price: Decimal
    currency: str
    total_tickets: int
    sold_tickets: int
    remaining: int
    status: EventStatus
    created_at: dt.datetime
    sections: list[SeatSectionResponse]

    model_config = {"from_attributes": True}


class EventStatusUpdate(BaseModel):
    status: EventStatus


class CapacityIncrease(BaseModel):
    additional: int = Field(..., gt=0, le=1_000_000)


class CapacityResponse(BaseModel):
    event_id: str
    total_tickets: int
    sold_tickets: int
    remaining: int


class SectionAvailability(BaseModel):
    section_name: str
    price: Decimal
    capacity: int
    available: int
    taken_seat_ids: list[str]


class SeatMapResponse(BaseModel):
    event_id: str
    sections: list[SectionAvailability]


class ScanStatsResponse(BaseModel):
    event_id: str
    total_tickets: int
    sold_tickets: int
    scanned: int
    remaining: int
    scan_rate: float

    model_config = {"from_attributes": True}
