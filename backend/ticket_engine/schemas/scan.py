"""
Pydantic schemas for gate scans.

Scan outcomes are always 200 responses; `result` is what the scanner shows,
`reason` is the precise outcome.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ticket_engine.schemas.ticket import TicketResponse
from ticket_engine.services.redemption_service import RedemptionResult


# Scanned values are not length-checked here: an over-long id or key is a
# forged code and gets a 200 "invalid", not a 422.


class ScanRequest(BaseModel):
    ticket_id: str
    event_key: str
    session_id: Optional[str] = Field(None, max_length=100)
    access_code: Optional[str] = None


class QrScanRequest(BaseModel):
    payload: str
    event_key: Optional[str] = None
    session_id: Optional[str] = Field(None, max_length=100)
    access_code: Optional[str] = None


class GateAccessRequest(BaseModel):
    access_code: str
    event_key: Optional[str] = None


class GateAccessResponse(BaseModel):
    verified: bool
    event_id: Optional[str] = None
    event_key: Optional[str] = None
    event_title: Optional[str] = None
    gate_label: Optional[str] = None


class ScanTallyResponse(BaseModel):
    admitted: int = 0
    already_used: int = 0
    invalid: int = 0


class ScanResponse(BaseModel):
    result: Literal["admitted", "already_used", "invalid"]
    reason: str
    used_at: Optional[datetime]
    ticket: Optional[TicketResponse]
    tally: ScanTallyResponse
    gate_label: Optional[str] = None

    @classmethod
    def from_result(cls, result: RedemptionResult) -> "ScanResponse":
        return cls(
            result=result.result,
            reason=result.reason,
            used_at=result.used_at,
            ticket=TicketResponse.model_validate(result.ticket) if result.ticket else None,
            tally=ScanTallyResponse(**result.tally),
            gate_label=result.gate_label,
        )


class SessionTallyResponse(BaseModel):
    session_id: str
    tally: ScanTallyResponse
