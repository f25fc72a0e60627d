#!/usr/bin/env python3
"""
Simple stress test for the Box Office Reservations API.
Many sessions race for the same few seats at once; afterwards the seat
map and the bookings must agree that no seat was held or sold twice.
"""

import asyncio
import os
import random
import time
import uuid
from datetime import datetime, timezone, timedelta

import aiohttp

API_URL = os.environ.get("API_URL", "http://localhost:8000")
ADMIN_API_TOKEN = os.environ.get("ADMIN_API_TOKEN")
CONCURRENT_SESSIONS = 50
SEATS_AVAILABLE = 10


class StressTest:
    def __init__(self):
        self.results = {
            "holds": 0,
            "conflicts": 0,
            "bookings": 0,
            "expired": 0,
            "errors": 0,
            "response_times": []
        }
        self.show_id = None
        self.sold: list[str] = []

    def admin_headers(self) -> dict:
        return {"Authorization": f"Bearer {ADMIN_API_TOKEN}"} if ADMIN_API_TOKEN else {}

    async def create_test_show(self, session: aiohttp.ClientSession):
        """Provision a show with one row of SEATS_AVAILABLE seats."""
        layout = {
            "title": f"Stress Test Show {int(time.time())}",
            "starts_at": (datetime.now(timezone.utc) + timedelta(days=30)).isoformat(),
            "sections": [{
                "name": "House",
                "slug": "house",
                "rows": [{
                    "label": "A",
                    "seats": [{"number": n, "price_pence": 2500} for n in range(1, SEATS_AVAILABLE + 1)],
                }],
            }],
        }
        async with session.post(f"{API_URL}/api/v1/shows/", json=layout, headers=self.admin_headers()) as resp:
            if resp.status == 201:
                data = await resp.json()
                self.show_id = data["id"]
                print(f"✓ Created show {self.show_id} with {SEATS_AVAILABLE} seats")
            else:
                print(f"✗ Show provisioning failed: {resp.status} {await resp.text()}")

    async def hold_and_buy(self, session: aiohttp.ClientSession, session_num: int):
        """Hold two random seats and pay for them if the hold is won."""
        token = f"stress-{session_num}-{uuid.uuid4().hex[:8]}"
        seats = [f"house-1-{n}" for n in random.sample(range(1, SEATS_AVAILABLE + 1), 2)]
        start = time.time()

        try:
            async with session.post(f"{API_URL}/api/v1/shows/{self.show_id}/holds",
                json={"seats": seats, "session_token": token}
            ) as resp:
                elapsed = (time.time() - start) * 1000
                self.results["response_times"].append(elapsed)

                if resp.status == 409:
                    self.results["conflicts"] += 1
                    print(f"✗ Session {session_num} lost {seats} ({elapsed:.0f}ms)")
                    return
                if resp.status != 201:
                    self.results["errors"] += 1
                    print(f"✗ Session {session_num} failed: {resp.status} ({elapsed:.0f}ms)")
                    return
                hold = await resp.json()
                self.results["holds"] += 1
                print(f"✓ Session {session_num} holds {hold['seats']} ({elapsed:.0f}ms)")

            async with session.post(f"{API_URL}/api/v1/holds/{hold['id']}/finalize",
                json={"session_token": token, "customer_ref": token, "payment_confirmation": "stress"}
            ) as resp:
                if resp.status == 201:
                    booking = await resp.json()
                    self.results["bookings"] += 1
                    self.sold.extend(booking["seats"])
                elif resp.status == 410:
                    self.results["expired"] += 1
                else:
                    self.results["errors"] += 1
        except aiohttp.ClientError as e:
            self.results["errors"] += 1
            print(f"✗ Session {session_num} error: {e}")

    async def run(self):
        """Execute the stress test."""
        print(f"\n{'='*60}")
        print(f"STRESS TEST: {CONCURRENT_SESSIONS} sessions → {SEATS_AVAILABLE} seats")
        print(f"{'='*60}\n")

        async with aiohttp.ClientSession() as session:
            print("Phase 1: Creating test show...")
            await self.create_test_show(session)
            if not self.show_id:
                return
            print()

            print(f"Phase 2: {CONCURRENT_SESSIONS} sessions holding simultaneously...")
            print("-" * 60)
            start_time = time.time()
            await asyncio.gather(*[self.hold_and_buy(session, i) for i in range(CONCURRENT_SESSIONS)])
            total_time = time.time() - start_time

            async with session.get(f"{API_URL}/api/v1/shows/{self.show_id}") as resp:
                counts = (await resp.json())["seat_counts"]

            print("\n" + "="*60)
            print("RESULTS")
            print("="*60)
            print(f"Total time:          {total_time:.2f}s")
            print(f"Holds won:           {self.results['holds']}")
            print(f"Conflicts (409):     {self.results['conflicts']}")
            print(f"Bookings:            {self.results['bookings']}")
            print(f"Expired (410):       {self.results['expired']}")
            print(f"Errors:              {self.results['errors']}")
            print(f"Seat counts:         {counts}")

            if self.results["response_times"]:
                times = sorted(self.results["response_times"])
                print("\nHold response times:")
                print(f"  Avg: {sum(times)/len(times):.0f}ms")
                print(f"  P50: {times[len(times)//2]:.0f}ms")
                print(f"  P95: {times[int(len(times)*0.95)]:.0f}ms")
                print(f"  P99: {times[int(len(times)*0.99)]:.0f}ms")

            print("\n" + "="*60)
            double_sold = len(self.sold) != len(set(self.sold))
            if not double_sold and counts["booked"] == len(self.sold) <= SEATS_AVAILABLE:
                print("✓ PASS: No seat held or sold twice!")
                print(f"  {len(self.sold)} seats sold ≤ {SEATS_AVAILABLE} seats")
            else:
                print("✗ FAIL: DOUBLE BOOKING DETECTED!")
                print(f"  sold={sorted(self.sold)} booked_count={counts['booked']}")
            print("="*60 + "\n")


if __name__ == "__main__":
    test = StressTest()
    asyncio.run(test.run())
