"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags storm    # Purchase storm against a small event
  locust -f locustfile.py --tags promo    # Promo exhaustion race
  locust -f locustfile.py --tags gate     # Gate race: many scanners, few tickets
  locust -f locustfile.py --tags edge     # Bad input
  locust -f locustfile.py                 # All tests
"""

import json
import random
from datetime import date, timedelta

from locust import HttpUser, between, events, tag, task

STORM_CAPACITY = 10
PROMO_LIMIT = 5

# Shared state, filled by the first user of each class
STORM_EVENT = {}
PROMO_EVENT = {}
GATE_EVENT = {}
GATE_TICKETS = []


def random_email():
    return f"load_{random.randint(100000, 999999)}@test.com"


def future_date():
    return (date.today() + timedelta(days=30)).isoformat()


def create_event(client, title, total_tickets, price="25.00"):
    resp = client.post(
        "/api/v1/events",
        json={
            "title": title,
            "date": future_date(),
            "location": "Load Test Arena",
            "organizer_id": "load-organizer",
            "total_tickets": total_tickets,
            "price": price,
        },
        name="/api/v1/events [setup]",
    )
    if resp.status_code == 201:
        return resp.json()
    return None


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print("Ticket engine load test starting")
    print("=" * 60)


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    if STORM_EVENT:
        print(f"\nStorm event {STORM_EVENT['id']}: verify sold_tickets <= {STORM_CAPACITY} via "
              f"GET /api/v1/events/{STORM_EVENT['id']}/capacity")
    if PROMO_EVENT:
        print(f"Promo event {PROMO_EVENT['id']}: verify used_count <= {PROMO_LIMIT} via "
              f"GET /api/v1/events/{PROMO_EVENT['id']}/promos")


class PurchaseStormUser(HttpUser):
    """
    TEST 1: Capacity - 100 buyers -> 10 tickets

    Run: locust -f locustfile.py --tags storm -u 100 -r 50 --run-time 30s

    Every 201 is a sale, every 409 CAPACITY_EXCEEDED is expected. Afterwards
    sold_tickets must be <= 10 and equal the number of tickets listed.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        if not STORM_EVENT:
            event = create_event(self.client, "Purchase Storm", STORM_CAPACITY)
            if event:
                STORM_EVENT.update(event)

    @tag("storm")
    @task
    def buy_last_tickets(self):
        if not STORM_EVENT:
            return

        with self.client.post(
            "/api/v1/purchases",
            json={"event_id": STORM_EVENT["id"], "owner_email": random_email(), "quantity": 1},
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409 and resp.json()["error"]["code"] == "CAPACITY_EXCEEDED":
                resp.success()  # Expected: sold out
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class PromoRaceUser(HttpUser):
    """
    TEST 2: Promo usage bound - 50 buyers race for a 5-use code

    Run: locust -f locustfile.py --tags promo -u 50 -r 50 --run-time 20s
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        if not PROMO_EVENT:
            event = create_event(self.client, "Promo Race", 1000)
            if event:
                self.client.post(
                    f"/api/v1/events/{event['id']}/promos",
                    json={"code": "RACE50", "discount_percentage": "50", "ticket_limit": PROMO_LIMIT},
                    name="/api/v1/events/{id}/promos [setup]",
                )
                PROMO_EVENT.update(event)

    @tag("promo")
    @task
    def buy_with_code(self):
        if not PROMO_EVENT:
            return

        with self.client.post(
            "/api/v1/purchases",
            json={
                "event_id": PROMO_EVENT["id"],
                "owner_email": random_email(),
                "quantity": 1,
                "promo_code": "race50",
            },
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 400 and resp.json()["error"]["code"] == "PROMO_INVALID":
                resp.success()  # Expected once the code is exhausted
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class GateScannerUser(HttpUser):
    """
    TEST 3: Exactly-once redemption - many gates scanning the same few tickets

    Run: locust -f locustfile.py --tags gate -u 40 -r 40 --run-time 20s

    Each ticket must produce exactly one "admitted" across all scanners; the
    session tallies at /api/v1/scans/sessions/{id} add up the rest.
    """
    wait_time = between(0, 0.05)

    def on_start(self):
        self.session_id = f"gate-{random.randint(1, 4)}"
        if not GATE_EVENT:
            event = create_event(self.client, "Gate Race", 50, price="0")
            if event:
                GATE_EVENT.update(event)
                for _ in range(20):
                    resp = self.client.post(
                        "/api/v1/purchases",
                        json={"event_id": event["id"], "owner_email": random_email(), "quantity": 1},
                        name="/api/v1/purchases [setup]",
                    )
                    if resp.status_code == 201:
                        GATE_TICKETS.append(resp.json()["qr_payload"])

    @tag("gate")
    @task(5)
    def scan_qr(self):
        if not GATE_TICKETS:
            return

        with self.client.post(
            "/api/v1/scans/qr",
            json={
                "payload": random.choice(GATE_TICKETS),
                "event_key": GATE_EVENT["event_key"],
                "session_id": self.session_id,
            },
            headers={"X-Gate-Session": self.session_id},
            catch_response=True,
        ) as resp:
            if resp.status_code == 200 and resp.json()["result"] in ("admitted", "already_used"):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("gate")
    @task(1)
    def scan_forged(self):
        if not GATE_EVENT:
            return

        forged = json.dumps({"ticketId": "TKT-forged", "eventKey": GATE_EVENT["event_key"]})
        with self.client.post(
            "/api/v1/scans/qr",
            json={"payload": forged, "event_key": GATE_EVENT["event_key"], "session_id": self.session_id},
            catch_response=True,
        ) as resp:
            if resp.status_code == 200 and resp.json()["result"] == "invalid":
                resp.success()
            else:
                resp.failure(f"Forged ticket not rejected: {resp.status_code}")


class EdgeCaseUser(HttpUser):
    """
    TEST 4: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def _expect(self, payload, allowed, path="/api/v1/purchases"):
        with self.client.post(path, json=payload, catch_response=True) as resp:
            if resp.status_code in allowed:
                resp.success()
            else:
                resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_event(self):
        self._expect({"event_id": "missing", "owner_email": random_email(), "quantity": 1}, [404])

    @tag("edge")
    @task
    def zero_quantity(self):
        event_id = STORM_EVENT.get("id", "missing")
        self._expect({"event_id": event_id, "owner_email": random_email(), "quantity": 0}, [404, 409, 422])

    @tag("edge")
    @task
    def huge_quantity(self):
        event_id = STORM_EVENT.get("id", "missing")
        self._expect({"event_id": event_id, "owner_email": random_email(), "quantity": 999999}, [404, 409, 422])

    @tag("edge")
    @task
    def garbage_qr(self):
        with self.client.post(
            "/api/v1/scans/qr",
            json={"payload": "not json at all", "event_key": "nothing"},
            catch_response=True,
        ) as resp:
            if resp.status_code == 200 and resp.json()["reason"] == "malformed":
                resp.success()
            else:
                resp.failure(f"Expected malformed, got {resp.status_code}")

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/purchases", data="not json at all", catch_response=True) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")
