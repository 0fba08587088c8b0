"""
Locust Load Test Suite

There are no endpoints for creating libraries, so seed one first and
point the suite at it:
  SEAT_ID=1 TIME_SLOT_ID=1 locust -f locustfile.py

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test double booking
  locust -f locustfile.py --tags throughput   # Test read paths
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
import string
from datetime import date, timedelta

from locust import HttpUser, task, between, tag, events

SEAT_ID = int(os.getenv("SEAT_ID", "1"))
TIME_SLOT_ID = int(os.getenv("TIME_SLOT_ID", "1"))
# Far enough ahead that cancellation deadlines never interfere
CONTESTED_DATE = (date.today() + timedelta(days=30)).isoformat()
PASSWORD = "loadtest123"
TOP_UP_AMOUNT = 10_000


def random_email():
    return f"load_{random.randint(10000, 99999)}_{random.randint(0, 999)}@test.com"


def random_username():
    return "u_" + "".join(random.choices(string.ascii_lowercase, k=8))


def register_and_login(client):
    email = random_email()
    client.post("/api/v1/auth/register", json={
        "email": email,
        "username": random_username(),
        "password": PASSWORD,
    })
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    if resp.status_code != 200:
        return {}
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Contended seat {SEAT_ID}, slot {TIME_SLOT_ID}, date {CONTESTED_DATE}")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many students, one seat, one slot, one date

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM bookings
      WHERE seat_id = X AND time_slot_id = Y AND date = 'D'
        AND status IN ('pending', 'confirmed');
    Should be <= 1
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = register_and_login(self.client)
        if self.headers:
            self.client.post("/api/v1/wallet/top-up",
                json={"amount": TOP_UP_AMOUNT, "description": "load test"},
                headers=self.headers)

    @tag("concurrency")
    @task
    def book_contested_seat(self):
        """All users fight for the same seat and slot."""
        if not self.headers:
            return

        with self.client.post("/api/v1/bookings",
            json={"seat_id": SEAT_ID, "time_slot_id": TIME_SLOT_ID, "start_date": CONTESTED_DATE},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code in (201, 409):
                # 409: someone else got there first
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - authenticated read paths

    Run: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.headers = register_and_login(self.client)

    @tag("throughput", "read")
    @task(10)
    def list_my_bookings(self):
        if self.headers:
            self.client.get("/api/v1/bookings", headers=self.headers)

    @tag("throughput", "read")
    @task(3)
    def wallet_transactions(self):
        if self.headers:
            # 404 until the first top-up
            with self.client.get("/api/v1/wallet/transactions",
                headers=self.headers,
                catch_response=True
            ) as resp:
                if resp.status_code in (200, 404):
                    resp.success()

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
        self.headers = register_and_login(self.client)
        if self.headers:
            self.client.post("/api/v1/wallet/top-up", json={"amount": 500}, headers=self.headers)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_seat(self):
        with self.client.post("/api/v1/bookings",
            json={"seat_id": 999999, "time_slot_id": TIME_SLOT_ID, "start_date": CONTESTED_DATE},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, (404, 400))

    @tag("edge")
    @task
    def reversed_range(self):
        end = (date.today() + timedelta(days=1)).isoformat()
        with self.client.post("/api/v1/bookings",
            json={"seat_id": SEAT_ID, "time_slot_id": TIME_SLOT_ID, "start_date": CONTESTED_DATE, "end_date": end},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, (400, 422))

    @tag("edge")
    @task
    def negative_top_up(self):
        with self.client.post("/api/v1/wallet/top-up",
            json={"amount": -5},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, (400, 422))

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/bookings",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, (400, 422))

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/v1/bookings",
            json={"seat_id": SEAT_ID, "time_slot_id": TIME_SLOT_ID, "start_date": CONTESTED_DATE},
            catch_response=True
        ) as resp:
            self._expect(resp, (401,))


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Mostly reading bookings, some booking and cancelling across the
    next few weeks.
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = register_and_login(self.client)
        self.booking_ids = []
        if self.headers:
            self.client.post("/api/v1/wallet/top-up", json={"amount": TOP_UP_AMOUNT}, headers=self.headers)

    @task(50)
    def browse_bookings(self):
        if self.headers:
            self.client.get("/api/v1/bookings", headers=self.headers)

    @task(10)
    def book_some_day(self):
        if not self.headers:
            return
        day = (date.today() + timedelta(days=random.randint(2, 60))).isoformat()
        with self.client.post("/api/v1/bookings",
            json={"seat_id": SEAT_ID, "time_slot_id": TIME_SLOT_ID, "start_date": day},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                self.booking_ids.extend(b["id"] for b in resp.json()["bookings"])
                resp.success()
            elif resp.status_code == 409:
                resp.success()

    @task(3)
    def cancel_one(self):
        if self.booking_ids:
            booking_id = self.booking_ids.pop()
            self.client.post(f"/api/v1/bookings/{booking_id}/cancel",
                headers=self.headers,
                name="/api/v1/bookings/{id}/cancel")
