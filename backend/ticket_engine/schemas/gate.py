"""
Pydantic schemas for gate access code administration.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class GateCodeCreate(BaseModel):
    label: str = Field(..., min_length=1, max_length=100)
    expires_at: Optional[datetime] = None


class GateCodeResponse(BaseModel):
    id: str
    event_id: str
    code: str
    label: str
    is_active: bool
    expires_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}
