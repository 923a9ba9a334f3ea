"""
Tests for gate access codes: issuing, verifying and signing admissions.
"""

from datetime import timedelta

import pytest
import pytest_asyncio

from ticket_engine.db.base import utcnow
from ticket_engine.domain.errors import EventNotFound, GateAccessDenied, GateCodeNotFound, InvalidGateCode
from ticket_engine.domain.models import GateAccessRejection, TicketStatus
from ticket_engine.services.engine import build_engine


@pytest_asyncio.fixture
async def north_gate(engine, test_event):
    return await engine.gate_access.create(test_event.id, "North Gate")


@pytest_asyncio.fixture
async def sold_ticket(engine, test_event):
    return (await engine.issuer.issue(test_event.id, "holder@example.com")).ticket


@pytest.mark.asyncio
async def test_create_and_list(engine, test_event, north_gate):
    south_gate = await engine.gate_access.create(test_event.id, "  South Gate ")

    assert north_gate.code.startswith("GATE-")
    assert len(north_gate.code) == 13
    assert north_gate.code != south_gate.code
    assert south_gate.label == "South Gate"
    listed = await engine.gate_access.list_for_event(test_event.id)
    assert {g.id for g in listed} == {north_gate.id, south_gate.id}


@pytest.mark.asyncio
async def test_create_validation(engine, test_event):
    with pytest.raises(InvalidGateCode):
        await engine.gate_access.create(test_event.id, "   ")
    with pytest.raises(EventNotFound):
        await engine.gate_access.create("missing", "North Gate")


@pytest.mark.asyncio
async def test_verify_is_case_insensitive(engine, test_event, north_gate):
    access = await engine.gate_access.verify(f" {north_gate.code.lower()} ", test_event.event_key)

    assert access.label == "North Gate"
    assert access.event_id == test_event.id
    assert access.event_key == test_event.event_key
    assert access.code_id == north_gate.id


@pytest.mark.asyncio
async def test_verify_rejections(engine, small_event, north_gate):
    with pytest.raises(GateAccessDenied) as wrong_event:
        await engine.gate_access.verify(north_gate.code, small_event.event_key)
    with pytest.raises(GateAccessDenied) as unknown:
        await engine.gate_access.verify("GATE-NOPE1234")
    with pytest.raises(GateAccessDenied) as missing:
        await engine.gate_access.verify(None)

    assert wrong_event.value.reason == GateAccessRejection.WRONG_EVENT
    assert unknown.value.reason == GateAccessRejection.NOT_FOUND
    assert missing.value.reason == GateAccessRejection.MISSING
    assert missing.value.details == {"reason": "missing"}


@pytest.mark.asyncio
async def test_revoked_code_is_refused(engine, north_gate):
    revoked = await engine.gate_access.revoke(north_gate.id)

    assert revoked.is_active is False
    assert await engine.gate_access.check(north_gate.code) is None
    with pytest.raises(GateAccessDenied) as exc_info:
        await engine.gate_access.verify(north_gate.code)
    assert exc_info.value.reason == GateAccessRejection.INACTIVE


@pytest.mark.asyncio
async def test_revoke_unknown_code(engine):
    with pytest.raises(GateCodeNotFound):
        await engine.gate_access.revoke("missing")


@pytest.mark.asyncio
async def test_expired_code_is_refused(engine, test_event):
    stale = await engine.gate_access.create(
        test_event.id, "Day One Gate", expires_at=utcnow() - timedelta(minutes=1)
    )

    with pytest.raises(GateAccessDenied) as exc_info:
        await engine.gate_access.verify(stale.code, test_event.event_key)
    assert exc_info.value.reason == GateAccessRejection.EXPIRED


@pytest.mark.asyncio
async def test_verified_gate_signs_admission(engine, store, publisher, test_event, north_gate, sold_ticket):
    result = await engine.redemption.redeem(
        sold_ticket.ticket_id, test_event.event_key, session_id="device-7", access_code=north_gate.code
    )

    assert result.admitted
    assert result.gate_label == "North Gate"
    assert store.tickets[sold_ticket.ticket_id].used_by == "North Gate"
    record = store.scan_records[-1]
    assert (record.session_id, record.gate_label) == ("device-7", "North Gate")
    assert publisher.of_type("ticket_redeemed")[0].gate_label == "North Gate"
    assert (await engine.redemption.session_tally("device-7"))["admitted"] == 1


@pytest.mark.asyncio
async def test_gate_label_names_the_tally_without_a_session(engine, test_event, north_gate, sold_ticket):
    await engine.redemption.redeem(sold_ticket.ticket_id, test_event.event_key, access_code=north_gate.code)

    assert (await engine.redemption.session_tally("North Gate"))["admitted"] == 1


@pytest.mark.asyncio
async def test_refused_gate_scans_nothing(engine, store, small_event, north_gate, sold_ticket):
    with pytest.raises(GateAccessDenied):
        await engine.redemption.redeem(
            sold_ticket.ticket_id, small_event.event_key, access_code=north_gate.code
        )

    assert store.tickets[sold_ticket.ticket_id].status == TicketStatus.VALID
    assert store.scan_records == []


@pytest.mark.asyncio
async def test_qr_scan_uses_the_gates_event(engine, small_event, north_gate, sold_ticket):
    other = (await engine.issuer.issue(small_event.id, "other@example.com")).ticket

    admitted = await engine.redemption.redeem_payload(sold_ticket.qr_payload, access_code=north_gate.code)
    foreign = await engine.redemption.redeem_payload(other.qr_payload, access_code=north_gate.code)

    assert admitted.admitted
    assert foreign.reason == "event_mismatch"


@pytest.mark.asyncio
async def test_required_access(store, test_event, sold_ticket):
    gated = build_engine(store, require_gate_access=True)
    gate = await gated.gate_access.create(test_event.id, "Main Entrance")

    with pytest.raises(GateAccessDenied) as exc_info:
        await gated.redemption.redeem(sold_ticket.ticket_id, test_event.event_key)
    assert exc_info.value.reason == GateAccessRejection.MISSING

    result = await gated.redemption.redeem(sold_ticket.ticket_id, test_event.event_key, access_code=gate.code)
    assert result.admitted
