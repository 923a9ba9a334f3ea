"""
Tests for the HTTP API: status codes, error bodies and response shapes.
"""

from datetime import date, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ticket_engine.main import create_app
from ticket_engine.services.engine import build_engine
from ticket_engine.stores.memory_store import MemoryTransaction


def event_payload(**overrides) -> dict:
    payload = {
        "title": "Summer Fest 2026",
        "date": (date.today() + timedelta(days=30)).isoformat(),
        "location": "Tafawa Balewa Square",
        "organizer_id": "org-1",
        "total_tickets": 50,
        "price": "2500.00",
    }
    payload.update(overrides)
    return payload


async def buy(client: AsyncClient, event_id: str, **fields):
    return await client.post(
        "/api/v1/purchases",
        json={"event_id": event_id, "owner_email": "buyer@example.com", **fields},
    )


# Events


@pytest.mark.asyncio
async def test_create_event(client: AsyncClient):
    response = await client.post("/api/v1/events", json=event_payload())

    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Summer Fest 2026"
    assert data["event_key"].startswith("summer-fest-2026-")
    assert data["total_tickets"] == 50
    assert data["remaining"] == 50
    assert data["price"] == "2500.00"
    assert data["currency"] == "NGN"
    assert data["status"] == "active"


@pytest.mark.asyncio
async def test_create_seated_event(client: AsyncClient):
    response = await client.post(
        "/api/v1/events",
        json=event_payload(
            total_tickets=None,
            sections=[
                {"section_name": "VIP", "rows": 2, "seats_per_row": 10, "price": "10000.00"},
                {"section_name": "GEN", "rows": 5, "seats_per_row": 20, "price": "3000.00"},
            ],
        ),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["total_tickets"] == 120
    assert [s["capacity"] for s in data["sections"]] == [20, 100]


@pytest.mark.asyncio
async def test_create_event_needs_capacity(client: AsyncClient):
    response = await client.post("/api/v1/events", json=event_payload(total_tickets=None))

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INVALID_EVENT"


@pytest.mark.asyncio
async def test_create_event_rejects_zero_tickets(client: AsyncClient):
    response = await client.post("/api/v1/events", json=event_payload(total_tickets=0))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_event_and_by_key(client: AsyncClient, test_event):
    by_id = await client.get(f"/api/v1/events/{test_event.id}")
    by_key = await client.get(f"/api/v1/events/by-key/{test_event.event_key}")

    assert by_id.status_code == 200
    assert by_key.status_code == 200
    assert by_id.json()["id"] == by_key.json()["id"] == test_event.id


@pytest.mark.asyncio
async def test_get_missing_event(client: AsyncClient):
    response = await client.get("/api/v1/events/nope")

    assert response.status_code == 404
    assert response.json() == {"error": {"code": "EVENT_NOT_FOUND", "message": "Event not found"}}


@pytest.mark.asyncio
async def test_cancel_event_stops_sales(client: AsyncClient, test_event):
    response = await client.patch(f"/api/v1/events/{test_event.id}/status", json={"status": "cancelled"})
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    purchase = await buy(client, test_event.id)
    assert purchase.status_code == 409
    assert purchase.json()["error"]["code"] == "EVENT_NOT_ACTIVE"

    reopen = await client.patch(f"/api/v1/events/{test_event.id}/status", json={"status": "active"})
    assert reopen.status_code == 422


@pytest.mark.asyncio
async def test_capacity_endpoints(client: AsyncClient, small_event):
    await buy(client, small_event.id, quantity=4)

    response = await client.post(f"/api/v1/events/{small_event.id}/capacity", json={"additional": 5})

    assert response.status_code == 200
    assert response.json() == {
        "event_id": small_event.id,
        "total_tickets": 15,
        "sold_tickets": 4,
        "remaining": 11,
    }
    assert (await client.get(f"/api/v1/events/{small_event.id}/capacity")).json()["remaining"] == 11


@pytest.mark.asyncio
async def test_seat_map(client: AsyncClient, seated_event):
    await buy(client, seated_event.id, seat_ids=["B-1-1", "B-1-3"])

    response = await client.get(f"/api/v1/events/{seated_event.id}/seats")

    assert response.status_code == 200
    section_b = response.json()["sections"][1]
    assert section_b["section_name"] == "B"
    assert section_b["available"] == 2
    assert section_b["taken_seat_ids"] == ["B-1-1", "B-1-3"]


@pytest.mark.asyncio
async def test_seat_map_for_general_admission(client: AsyncClient, test_event):
    response = await client.get(f"/api/v1/events/{test_event.id}/seats")
    assert response.status_code == 422


# Purchases


@pytest.mark.asyncio
async def test_purchase(client: AsyncClient, test_event, promo):
    response = await buy(client, test_event.id, quantity=2, promo_code="SAVE20")

    assert response.status_code == 201
    data = response.json()
    assert data["final_price"] == "8000.00"
    assert data["promo_code"] == "SAVE20"
    assert data["quantity"] == 2
    assert data["ticket_id"].startswith("TKT-")
    assert data["event_key"] == test_event.event_key


@pytest.mark.asyncio
async def test_purchase_default_quantity(client: AsyncClient, test_event):
    response = await buy(client, test_event.id)

    assert response.status_code == 201
    assert response.json()["quantity"] == 1
    assert response.json()["final_price"] == "5000.00"


@pytest.mark.asyncio
async def test_purchase_sold_out(client: AsyncClient, small_event):
    response = await buy(client, small_event.id, quantity=10)
    assert response.status_code == 201

    response = await buy(client, small_event.id, quantity=1)

    assert response.status_code == 409
    assert response.json()["error"] == {
        "code": "CAPACITY_EXCEEDED",
        "message": "Not enough tickets. Requested: 1, Available: 0",
        "requested": 1,
        "remaining": 0,
    }


@pytest.mark.asyncio
async def test_purchase_bad_promo(client: AsyncClient, test_event):
    response = await buy(client, test_event.id, promo_code="NOPE")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "PROMO_INVALID"
    assert response.json()["error"]["reason"] == "not_found"


@pytest.mark.asyncio
async def test_purchase_taken_seat(client: AsyncClient, seated_event):
    await buy(client, seated_event.id, seat_ids=["A-1-1"])

    response = await buy(client, seated_event.id, seat_ids=["A-1-1"])

    assert response.status_code == 409
    assert response.json()["error"]["seat_ids"] == ["A-1-1"]


@pytest.mark.asyncio
async def test_purchase_too_many(client: AsyncClient, test_event):
    response = await buy(client, test_event.id, quantity=11)

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INVALID_PURCHASE"


@pytest.mark.asyncio
async def test_purchase_bad_email(client: AsyncClient, test_event):
    response = await client.post(
        "/api/v1/purchases",
        json={"event_id": test_event.id, "owner_email": "not-an-email"},
    )
    assert response.status_code == 422


@pytest_asyncio.fixture
async def declining_client(store, declining_payments):
    app = create_app(engine=build_engine(store, payments=declining_payments))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_purchase_payment_declined(declining_client: AsyncClient, store, test_event):
    response = await buy(declining_client, test_event.id, quantity=3)

    assert response.status_code == 402
    assert response.json()["error"]["reason"] == "card_declined"
    assert store.events[test_event.id].sold_tickets == 0


@pytest.mark.asyncio
async def test_claim_free_ticket(client: AsyncClient, free_event):
    url = f"/api/v1/events/{free_event.id}/claim"

    first = await client.post(url, json={"owner_email": "guest@example.com"})
    second = await client.post(url, json={"owner_email": "guest@example.com"})

    assert first.status_code == 201
    assert first.json()["final_price"] == "0.00"
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "ALREADY_CLAIMED"


# Tickets


@pytest.mark.asyncio
async def test_ticket_lookup(client: AsyncClient, test_event):
    ticket_id = (await buy(client, test_event.id)).json()["ticket_id"]

    response = await client.get(f"/api/v1/tickets/{ticket_id}")
    assert response.status_code == 200
    assert response.json()["status"] == "valid"

    owned = await client.get("/api/v1/tickets", params={"owner_email": "BUYER@example.com"})
    assert [t["ticket_id"] for t in owned.json()] == [ticket_id]

    listed = await client.get(f"/api/v1/events/{test_event.id}/tickets")
    assert len(listed.json()) == 1

    missing = await client.get("/api/v1/tickets/TKT-missing")
    assert missing.status_code == 404


# Promos


@pytest.mark.asyncio
async def test_promo_admin(client: AsyncClient, test_event):
    created = await client.post(
        f"/api/v1/events/{test_event.id}/promos",
        json={"code": "earlybird", "discount_percentage": "15", "ticket_limit": 3},
    )
    assert created.status_code == 201
    promo = created.json()
    assert promo["code"] == "earlybird"
    assert promo["remaining_uses"] == 3

    duplicate = await client.post(
        f"/api/v1/events/{test_event.id}/promos",
        json={"code": "EarlyBird", "discount_percentage": "5", "ticket_limit": 1},
    )
    assert duplicate.status_code == 409

    listed = await client.get(f"/api/v1/events/{test_event.id}/promos")
    assert [p["code"] for p in listed.json()] == ["earlybird"]

    disabled = await client.patch(f"/api/v1/promos/{promo['id']}", json={"is_active": False})
    assert disabled.json()["is_active"] is False


@pytest.mark.asyncio
async def test_promo_validate_endpoint(client: AsyncClient, test_event, promo):
    ok = await client.post("/api/v1/promos/validate", json={"event_id": test_event.id, "code": "save20"})

    assert ok.status_code == 200
    assert ok.json() == {"valid": True, "code": "SAVE20", "discount_percentage": "20", "remaining_uses": 5}

    bad = await client.post("/api/v1/promos/validate", json={"event_id": test_event.id, "code": "XYZ"})
    assert bad.status_code == 400


# Scans


@pytest.mark.asyncio
async def test_scan_flow(client: AsyncClient, test_event):
    ticket_id = (await buy(client, test_event.id)).json()["ticket_id"]
    scan = {"ticket_id": ticket_id, "event_key": test_event.event_key, "session_id": "gate-A"}

    first = await client.post("/api/v1/scans/validate", json=scan)
    second = await client.post("/api/v1/scans/validate", json=scan)

    assert first.status_code == 200
    assert first.json()["result"] == "admitted"
    assert first.json()["ticket"]["status"] == "used"
    assert second.status_code == 200
    assert second.json()["result"] == "already_used"
    assert second.json()["used_at"] == first.json()["used_at"]
    assert second.json()["tally"] == {"admitted": 1, "already_used": 1, "invalid": 0}

    tally = await client.get("/api/v1/scans/sessions/gate-A")
    assert tally.json() == {"session_id": "gate-A", "tally": {"admitted": 1, "already_used": 1, "invalid": 0}}


@pytest.mark.asyncio
async def test_scan_rejections_are_200(client: AsyncClient, test_event, small_event):
    ticket_id = (await buy(client, test_event.id)).json()["ticket_id"]

    mismatch = await client.post(
        "/api/v1/scans/validate", json={"ticket_id": ticket_id, "event_key": small_event.event_key}
    )
    unknown = await client.post(
        "/api/v1/scans/validate", json={"ticket_id": "TKT-nope", "event_key": test_event.event_key}
    )

    assert mismatch.status_code == unknown.status_code == 200
    assert mismatch.json()["result"] == unknown.json()["result"] == "invalid"
    assert mismatch.json()["reason"] == "event_mismatch"
    assert mismatch.json()["ticket"] is None
    assert unknown.json()["reason"] == "not_found"


@pytest.mark.asyncio
async def test_qr_scan(client: AsyncClient, test_event):
    qr = (await buy(client, test_event.id)).json()["qr_payload"]

    admitted = await client.post("/api/v1/scans/qr", json={"payload": qr, "event_key": test_event.event_key})
    garbage = await client.post("/api/v1/scans/qr", json={"payload": "{broken", "event_key": test_event.event_key})

    assert admitted.json()["result"] == "admitted"
    assert garbage.status_code == 200
    assert garbage.json()["reason"] == "malformed"


@pytest.mark.asyncio
async def test_deeply_nested_qr_is_invalid(client: AsyncClient, test_event):
    response = await client.post(
        "/api/v1/scans/qr",
        json={"payload": "[" * 1000 + "]" * 1000, "event_key": test_event.event_key},
    )

    assert response.status_code == 200
    assert response.json()["result"] == "invalid"
    assert response.json()["reason"] == "malformed"


@pytest.mark.asyncio
async def test_overlong_ticket_id_is_invalid(client: AsyncClient, store, test_event):
    response = await client.post(
        "/api/v1/scans/validate",
        json={"ticket_id": "X" * 80, "event_key": test_event.event_key, "session_id": "gate-B"},
    )

    assert response.status_code == 200
    assert response.json()["result"] == "invalid"
    assert response.json()["reason"] == "not_found"
    assert response.json()["tally"]["invalid"] == 1
    assert store.scan_records[-1].ticket_id is None


@pytest.mark.asyncio
async def test_consistency_error_is_500(client: AsyncClient, test_event, monkeypatch):
    ticket_id = (await buy(client, test_event.id)).json()["ticket_id"]

    async def broken_mark_used(self, ticket_id, used_at, used_by):
        return False

    monkeypatch.setattr(MemoryTransaction, "try_mark_used", broken_mark_used)
    response = await client.post(
        "/api/v1/scans/validate", json={"ticket_id": ticket_id, "event_key": test_event.event_key}
    )

    assert response.status_code == 500
    assert response.json() == {
        "error": {"code": "CONSISTENCY_VIOLATION", "message": "Internal consistency error"}
    }


# Gates


@pytest.mark.asyncio
async def test_gate_code_admin(client: AsyncClient, test_event):
    created = await client.post(f"/api/v1/events/{test_event.id}/gate-codes", json={"label": "North Gate"})

    assert created.status_code == 201
    gate = created.json()
    assert gate["code"].startswith("GATE-")
    assert gate["label"] == "North Gate"
    assert gate["is_active"] is True

    listed = await client.get(f"/api/v1/events/{test_event.id}/gate-codes")
    assert [g["id"] for g in listed.json()] == [gate["id"]]

    revoked = await client.delete(f"/api/v1/gate-codes/{gate['id']}")
    assert revoked.status_code == 200
    assert revoked.json()["is_active"] is False

    missing = await client.delete("/api/v1/gate-codes/nope")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "GATE_CODE_NOT_FOUND"


@pytest.mark.asyncio
async def test_gate_code_needs_label(client: AsyncClient, test_event):
    response = await client.post(f"/api/v1/events/{test_event.id}/gate-codes", json={"label": ""})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_gate_access_check(client: AsyncClient, test_event, small_event):
    code = (
        await client.post(f"/api/v1/events/{test_event.id}/gate-codes", json={"label": "North Gate"})
    ).json()["code"]

    ok = await client.post("/api/v1/scans/access", json={"access_code": code.lower()})
    wrong_event = await client.post(
        "/api/v1/scans/access", json={"access_code": code, "event_key": small_event.event_key}
    )
    unknown = await client.post("/api/v1/scans/access", json={"access_code": "GATE-NOPE"})

    assert ok.json() == {
        "verified": True,
        "event_id": test_event.id,
        "event_key": test_event.event_key,
        "event_title": test_event.title,
        "gate_label": "North Gate",
    }
    assert wrong_event.status_code == unknown.status_code == 200
    assert wrong_event.json()["verified"] is False
    assert unknown.json()["verified"] is False


@pytest.mark.asyncio
async def test_scan_with_gate_code(client: AsyncClient, test_event, small_event):
    code = (
        await client.post(f"/api/v1/events/{test_event.id}/gate-codes", json={"label": "North Gate"})
    ).json()["code"]
    ticket_id = (await buy(client, test_event.id)).json()["ticket_id"]

    admitted = await client.post(
        "/api/v1/scans/validate",
        json={"ticket_id": ticket_id, "event_key": test_event.event_key, "access_code": code},
    )
    denied = await client.post(
        "/api/v1/scans/validate",
        json={"ticket_id": ticket_id, "event_key": small_event.event_key, "access_code": code},
    )

    assert admitted.status_code == 200
    assert admitted.json()["gate_label"] == "North Gate"
    assert admitted.json()["ticket"]["used_by"] == "North Gate"
    assert denied.status_code == 403
    assert denied.json()["error"] == {
        "code": "GATE_ACCESS_DENIED",
        "message": "Scanner is not authorized for this gate",
        "reason": "wrong_event",
    }


@pytest.mark.asyncio
async def test_scan_stats_endpoint(client: AsyncClient, test_event):
    ticket_id = (await buy(client, test_event.id, quantity=2)).json()["ticket_id"]
    await buy(client, test_event.id, quantity=2)
    await client.post("/api/v1/scans/validate", json={"ticket_id": ticket_id, "event_key": test_event.event_key})

    response = await client.get(f"/api/v1/events/{test_event.id}/stats")

    assert response.json() == {
        "event_id": test_event.id,
        "total_tickets": 100,
        "sold_tickets": 4,
        "scanned": 2,
        "remaining": 2,
        "scan_rate": 50.0,
    }


# Operational


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["redis"] == {"status": "disabled"}


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "gate-req-1"})
    assert response.headers["X-Request-ID"] == "gate-req-1"


@pytest.mark.asyncio
async def test_metrics(client: AsyncClient, test_event):
    await buy(client, test_event.id)

    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "ticket_issuance_attempts_total" in response.text
