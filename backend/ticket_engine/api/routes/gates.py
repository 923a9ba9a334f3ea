"""
Gate access code endpoints: organizers issue and revoke scanner device codes.
"""

from fastapi import APIRouter, Depends, status

from ticket_engine.api.deps import get_engine
from ticket_engine.schemas.gate import GateCodeCreate, GateCodeResponse
from ticket_engine.services.engine import TicketEngine

router = APIRouter(tags=["Gates"])


@router.post(
    "/events/{event_id}/gate-codes",
    response_model=GateCodeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_gate_code_endpoint(
    event_id: str,
    gate_data: GateCodeCreate,
    engine: TicketEngine = Depends(get_engine),
):
    gate_code = await engine.gate_access.create(event_id, gate_data.label, gate_data.expires_at)
    return GateCodeResponse.model_validate(gate_code)


@router.get("/events/{event_id}/gate-codes", response_model=list[GateCodeResponse])
async def list_gate_codes_endpoint(event_id: str, engine: TicketEngine = Depends(get_engine)):
    gate_codes = await engine.gate_access.list_for_event(event_id)
    return [GateCodeResponse.model_validate(gate_code) for gate_code in gate_codes]


@router.delete("/gate-codes/{code_id}", response_model=GateCodeResponse)
async def revoke_gate_code_endpoint(code_id: str, engine: TicketEngine = Depends(get_engine)):
    """Deactivate a code. The row stays so past scans keep their gate label."""
    return GateCodeResponse.model_validate(await engine.gate_access.revoke(code_id))
