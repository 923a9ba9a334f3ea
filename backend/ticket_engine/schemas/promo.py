"""
Pydantic schemas for promo code administration and checkout validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class PromoCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    discount_percentage: Decimal = Field(..., gt=0, le=100, max_digits=5, decimal_places=2)
    ticket_limit: int = Field(..., ge=1)
    expires_at: Optional[datetime] = None


class PromoResponse(BaseModel):
    id: str
    event_id: str
    code: str
    discount_percentage: Decimal
    ticket_limit: int
    used_count: int
    remaining_uses: int
    is_active: bool
    expires_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class PromoToggle(BaseModel):
    is_active: bool


class PromoValidateRequest(BaseModel):
    event_id: str
    code: str = Field(..., min_length=1, max_length=50)


class PromoValidateResponse(BaseModel):
    valid: bool = True
    code: str
    discount_percentage: Decimal
    remaining_uses: int
