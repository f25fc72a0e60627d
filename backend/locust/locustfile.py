"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags contention   # Many sessions, few seats
  locust -f locustfile.py --tags throughput   # Seat map cache
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests

Set ADMIN_API_TOKEN if the API is configured with one; the first user
provisions the test show through the admin endpoint.
"""

import os
import random
import uuid
from datetime import datetime, timezone, timedelta
from locust import HttpUser, task, between, tag, events

CONTENTION_SEATS = 10

# Shared state
SHOW_ID = None
ADMIN_HEADERS = (
    {"Authorization": f"Bearer {os.environ['ADMIN_API_TOKEN']}"} if os.environ.get("ADMIN_API_TOKEN") else {}
)


def contention_layout() -> dict:
    """One row of CONTENTION_SEATS seats: house-1-1 .. house-1-10."""
    return {
        "title": f"Load Test Show {random.randint(1, 10000)}",
        "venue_name": "Load Test Theatre",
        "starts_at": (datetime.now(timezone.utc) + timedelta(days=30)).isoformat(),
        "sections": [{
            "name": "House",
            "slug": "house",
            "rows": [{
                "label": "A",
                "seats": [{"number": n, "price_pence": 2500} for n in range(1, CONTENTION_SEATS + 1)],
            }],
        }],
    }


def random_seats(count: int) -> list[str]:
    return [f"house-1-{n}" for n in random.sample(range(1, CONTENTION_SEATS + 1), count)]


def ensure_show(client) -> None:
    global SHOW_ID
    if SHOW_ID:
        return
    resp = client.post("/api/v1/shows/", json=contention_layout(), headers=ADMIN_HEADERS)
    if resp.status_code == 201:
        SHOW_ID = resp.json()["id"]
        print(f"\n✓ Created show {SHOW_ID} with {CONTENTION_SEATS} seats\n")


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print("SETUP: first user provisions the contention show")
    print("="*60)


class ContentionUser(HttpUser):
    """
    TEST 1: Contention - 100 sessions -> 10 seats

    Run: locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    After test, verify no seat was sold twice:
      SELECT seat_id, COUNT(*) FROM booking_seats GROUP BY seat_id HAVING COUNT(*) > 1;
    Should return no rows.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.session_token = f"load-{uuid.uuid4().hex}"
        ensure_show(self.client)

    @tag("contention")
    @task
    def hold_and_buy(self):
        """Hold one or two random seats; pay for them if the hold is won."""
        if not SHOW_ID:
            return

        with self.client.post(f"/api/v1/shows/{SHOW_ID}/holds",
            json={"seats": random_seats(random.randint(1, 2)), "session_token": self.session_token},
            name="/api/v1/shows/{id}/holds",
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
                hold_id = resp.json()["id"]
            elif resp.status_code == 409:
                resp.success()  # Expected: someone else has the seat
                return
            else:
                resp.failure(f"Unexpected: {resp.status_code}")
                return

        with self.client.post(f"/api/v1/holds/{hold_id}/finalize",
            json={
                "session_token": self.session_token,
                "customer_ref": self.session_token,
                "payment_confirmation": f"pay-{uuid.uuid4().hex[:12]}",
            },
            name="/api/v1/holds/{id}/finalize",
            catch_response=True
        ) as resp:
            if resp.status_code in (201, 410):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Seat map cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        ensure_show(self.client)

    @tag("throughput", "read")
    @task(10)
    def seat_map(self):
        if SHOW_ID:
            self.client.get(f"/api/v1/shows/{SHOW_ID}/seats", name="/api/v1/shows/{id}/seats")

    @tag("throughput", "read")
    @task(3)
    def show_summary(self):
        if SHOW_ID:
            self.client.get(f"/api/v1/shows/{SHOW_ID}", name="/api/v1/shows/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        ensure_show(self.client)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_show(self):
        with self.client.post(f"/api/v1/shows/{uuid.uuid4()}/holds",
            json={"seats": ["house-1-1"], "session_token": "edge"},
            name="/api/v1/shows/{id}/holds [unknown show]",
            catch_response=True
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def unknown_seat(self):
        if not SHOW_ID:
            return
        with self.client.post(f"/api/v1/shows/{SHOW_ID}/holds",
            json={"seats": ["balcony-9-99"], "session_token": "edge"},
            name="/api/v1/shows/{id}/holds [unknown seat]",
            catch_response=True
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def no_seats(self):
        if not SHOW_ID:
            return
        with self.client.post(f"/api/v1/shows/{SHOW_ID}/holds",
            json={"seats": [], "session_token": "edge"},
            name="/api/v1/shows/{id}/holds [empty]",
            catch_response=True
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def too_many_seats(self):
        if not SHOW_ID:
            return
        with self.client.post(f"/api/v1/shows/{SHOW_ID}/holds",
            json={"seats": random_seats(CONTENTION_SEATS), "session_token": "edge"},
            name="/api/v1/shows/{id}/holds [too many]",
            catch_response=True
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def malformed_json(self):
        if not SHOW_ID:
            return
        with self.client.post(f"/api/v1/shows/{SHOW_ID}/holds",
            data="not json at all",
            name="/api/v1/shows/{id}/holds [malformed]",
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def finalize_unknown_hold(self):
        with self.client.post(f"/api/v1/holds/{uuid.uuid4()}/finalize",
            json={"session_token": "edge", "customer_ref": "edge", "payment_confirmation": "edge"},
            name="/api/v1/holds/{id}/finalize [unknown]",
            catch_response=True
        ) as resp:
            self._expect(resp, [404])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly looking at the seat map
      - Some holds, most of them abandoned or released
      - Few purchases
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.session_token = f"real-{uuid.uuid4().hex}"
        self.hold_id = None
        ensure_show(self.client)

    @task(50)
    def browse_seat_map(self):
        if SHOW_ID:
            self.client.get(f"/api/v1/shows/{SHOW_ID}/seats", name="/api/v1/shows/{id}/seats")

    @task(10)
    def hold_seat(self):
        if SHOW_ID and not self.hold_id:
            resp = self.client.post(f"/api/v1/shows/{SHOW_ID}/holds",
                json={"seats": random_seats(1), "session_token": self.session_token},
                name="/api/v1/shows/{id}/holds")
            if resp.status_code == 201:
                self.hold_id = resp.json()["id"]

    @task(5)
    def release_hold(self):
        if self.hold_id:
            self.client.delete(f"/api/v1/holds/{self.hold_id}",
                params={"session_token": self.session_token},
                name="/api/v1/holds/{id}")
            self.hold_id = None

    @task(2)
    def buy(self):
        if self.hold_id:
            self.client.post(f"/api/v1/holds/{self.hold_id}/finalize",
                json={
                    "session_token": self.session_token,
                    "customer_ref": self.session_token,
                    "payment_confirmation": f"pay-{uuid.uuid4().hex[:12]}",
                },
                name="/api/v1/holds/{id}/finalize")
            self.hold_id = None
