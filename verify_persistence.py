"""
Persistence smoke check.

Seeds demo users, creates a booking through a running server, restarts the
server and verifies the booking is still found by its tracking number.
Uses a local SQLite file unless DATABASE_URL is set.
"""

import asyncio
import os
import signal
import subprocess
import sys
import time

import httpx

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./logiflow_smoke.db")

from logiflow.app.core.config import Settings  # noqa: E402
from logiflow.app.core.jwt import create_access_token  # noqa: E402
from logiflow.app.db.session import Database  # noqa: E402
from logiflow.seed_users import seed_users  # noqa: E402

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"
SERVER_CMD = [sys.executable, "-m", "uvicorn", "logiflow.app.main:app", "--host", "127.0.0.1", "--port", "8000"]


def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for _ in range(retries):
        try:
            if httpx.get(url).status_code == 200:
                print("✅ Server is up!")
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    print("❌ Server failed to start.")
    return False


def stop(proc):
    proc.send_signal(signal.SIGTERM)
    proc.wait()


async def seed_tokens():
    database = Database(Settings())
    await database.connect()
    try:
        users = await seed_users(database)
    finally:
        await database.dispose()
    return {
        user.role.value: create_access_token({"sub": user.email, "user_id": user.id, "role": user.role.value})
        for user in users
    }


def run_verification():
    print("\n--- [Step 1] Seeding users ---")
    tokens = asyncio.run(seed_tokens())

    print("\n--- [Step 2] Starting Server (Initial) ---")
    proc = subprocess.Popen(SERVER_CMD, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    try:
        if not wait_for_server():
            raise Exception("Server start failed")

        print("\n--- [Step 3] Creating Booking ---")
        payload = {
            "pickup": {"address": "1 Warehouse Road"},
            "delivery": {"address": "22 Harbour Street"},
            "items": [{"description": "Smoke test parcel", "weight": 10, "value": 100, "quantity": 1}],
            "service_type": "standard",
        }
        resp = httpx.post(
            f"{BASE_URL}{API_PREFIX}/bookings",
            json=payload,
            headers={"Authorization": f"Bearer {tokens['customer']}"},
        )
        if resp.status_code != 201:
            raise Exception(f"Booking creation failed: {resp.status_code} {resp.text}")
        tracking_number = resp.json()["tracking_number"]
        print(f"✅ Booking {tracking_number} created (total {resp.json()['total_amount']})")
    finally:
        print("\n--- [Step 4] Stopping Server ---")
        stop(proc)

    time.sleep(2)  # port release

    print("\n--- [Step 5] Restarting Server (Verification) ---")
    proc2 = subprocess.Popen(SERVER_CMD, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    try:
        if not wait_for_server():
            raise Exception("Server restart failed")

        print("\n--- [Step 6] Tracking Lookup (Post-Restart) ---")
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/bookings/track/{tracking_number}")
        if resp.status_code != 200:
            raise Exception(f"Booking lost after restart: {resp.status_code} {resp.text}")
        print("✅ Booking Persisted")
        print([update["status"] for update in resp.json()["tracking_updates"]])
    finally:
        print("\n--- [Step 7] Stopping Server ---")
        stop(proc2)


if __name__ == "__main__":
    run_verification()
