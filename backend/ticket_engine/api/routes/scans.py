"""
Gate scan endpoints.

Every scan outcome, including rejections, is a 200 with a `result` the
scanner shows and a `reason` for the operator log. A device whose gate access
code does not verify gets a 403 instead and nothing is scanned.
"""

from fastapi import APIRouter, Depends

from ticket_engine.api.deps import get_engine
from ticket_engine.schemas.scan import (
    GateAccessRequest,
    GateAccessResponse,
    QrScanRequest,
    ScanRequest,
    ScanResponse,
    ScanTallyResponse,
    SessionTallyResponse,
)
from ticket_engine.services.engine import TicketEngine

router = APIRouter(prefix="/scans", tags=["Scans"])


@router.post("/validate", response_model=ScanResponse)
async def validate_ticket(scan: ScanRequest, engine: TicketEngine = Depends(get_engine)):
    """Redeem by ticket id (decoded QR or manual entry)."""
    result = await engine.redemption.redeem(
        scan.ticket_id, scan.event_key, scan.session_id, access_code=scan.access_code
    )
    return ScanResponse.from_result(result)


@router.post("/qr", response_model=ScanResponse)
async def validate_qr(scan: QrScanRequest, engine: TicketEngine = Depends(get_engine)):
    """Redeem from the raw QR text."""
    result = await engine.redemption.redeem_payload(
        scan.payload, scan.event_key, scan.session_id, access_code=scan.access_code
    )
    return ScanResponse.from_result(result)


@router.get("/sessions/{session_id}", response_model=SessionTallyResponse)
async def session_tally(session_id: str, engine: TicketEngine = Depends(get_engine)):
    tally = await engine.redemption.session_tally(session_id)
    return SessionTallyResponse(session_id=session_id, tally=ScanTallyResponse(**tally))


@router.post("/access", response_model=GateAccessResponse)
async def verify_gate_access(request: GateAccessRequest, engine: TicketEngine = Depends(get_engine)):
    """Scanner login: check a gate access code before the device starts scanning."""
    access = await engine.gate_access.check(request.access_code, request.event_key)
    if access is None:
        return GateAccessResponse(verified=False)
    return GateAccessResponse(
        verified=True,
        event_id=access.event_id,
        event_key=access.event_key,
        event_title=access.event_title,
        gate_label=access.label,
    )
