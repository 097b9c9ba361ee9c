"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Slot race: many guests, one slot
  locust -f locustfile.py --tags gate         # Simultaneous entry scans on one ticket
  locust -f locustfile.py --tags throughput   # Cached slot listing
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests
"""

import random
from datetime import date, timedelta

from locust import HttpUser, task, between, tag, events

# Shared state
RACE_DATE = (date.today() + timedelta(days=7)).isoformat()
RACE_SLOT = "15:00 - 16:00"
GATE_TICKET_NUMBERS = []


def random_phone():
    return "01" + random.choice("3456789") + "".join(random.choices("0123456789", k=8))


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: slot race on {RACE_DATE} {RACE_SLOT}")
    print("=" * 60)


class SlotRaceUser(HttpUser):
    """
    TEST 1: Concurrency - every user books the same slot

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM bookings
      WHERE slot_date = '<RACE_DATE>' AND time_slot = '15:00 - 16:00' AND status = 'confirmed';
    Should be exactly 1
    """
    wait_time = between(0, 0.1)

    @tag("concurrency")
    @task
    def book_contested_slot(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={
                "parent_name": "Load Test",
                "parent_phone": random_phone(),
                "date": RACE_DATE,
                "time_slot": RACE_SLOT,
                "child_count": 1,
            },
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: slot taken
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class GateScanUser(HttpUser):
    """
    TEST 2: Gate - several gates scan the same tickets at once

    Run: locust -f locustfile.py --tags gate -u 30 -r 30 --run-time 30s

    After test, verify no ticket has two entries:
      SELECT ticket_id FROM gate_logs WHERE entry_type = 'entry'
      GROUP BY ticket_id HAVING COUNT(*) > 1;
    Should return no rows
    """
    wait_time = between(0, 0.2)

    def on_start(self):
        if len(GATE_TICKET_NUMBERS) < 20:
            resp = self.client.post(
                "/api/v1/tickets/",
                json={"guardian_phone": random_phone(), "date": date.today().isoformat()},
                name="/api/v1/tickets/ [setup]",
            )
            if resp.status_code == 201:
                GATE_TICKET_NUMBERS.append(resp.json()["ticket_number"])

    @tag("gate")
    @task
    def scan_entry(self):
        if not GATE_TICKET_NUMBERS:
            return
        with self.client.post(
            "/api/v1/gate/scan",
            json={
                "ticket_number": random.choice(GATE_TICKET_NUMBERS),
                "action": random.choice(["entry", "entry", "exit"]),
                "gate_id": random.choice(["north_gate", "south_gate"]),
            },
            name="/api/v1/gate/scan",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 409):
                resp.success()  # 409: ALREADY_INSIDE / NOT_INSIDE / TICKET_COMPLETED
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 3: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: Stop Redis, run again

    Compare avg response time, requests/sec and P95/P99 latency.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_slots_cached(self):
        day = date.today() + timedelta(days=random.randint(0, 6))
        self.client.get(f"/api/v1/slots/?date={day.isoformat()}", name="/api/v1/slots/ [cached]")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 4: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    Every request should be rejected with 400/404/422, never 500.
    """
    wait_time = between(0.1, 0.3)

    def _expect_rejection(self, resp):
        if resp.status_code in (400, 404, 409, 422):
            resp.success()
        else:
            resp.failure(f"Unexpected: {resp.status_code}")

    @tag("edge")
    @task
    def bad_phone(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"parent_name": "Edge", "parent_phone": "12345", "date": RACE_DATE, "time_slot": RACE_SLOT},
            name="/api/v1/bookings/ [bad phone]",
            catch_response=True,
        ) as resp:
            self._expect_rejection(resp)

    @tag("edge")
    @task
    def bad_time_slot(self):
        with self.client.post(
            "/api/v1/slots/reserve",
            json={"date": RACE_DATE, "time_slot": "lunchtime"},
            name="/api/v1/slots/reserve [bad label]",
            catch_response=True,
        ) as resp:
            self._expect_rejection(resp)

    @tag("edge")
    @task
    def unknown_ticket_scan(self):
        with self.client.post(
            "/api/v1/gate/scan",
            json={"ticket_number": "TKNOTREAL", "action": "entry"},
            name="/api/v1/gate/scan [unknown]",
            catch_response=True,
        ) as resp:
            self._expect_rejection(resp)

    @tag("edge")
    @task
    def zero_children(self):
        with self.client.post(
            "/api/v1/tickets/",
            json={"guardian_phone": random_phone(), "date": date.today().isoformat(), "child_count": 0},
            name="/api/v1/tickets/ [zero children]",
            catch_response=True,
        ) as resp:
            self._expect_rejection(resp)
