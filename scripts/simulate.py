"""
Driver Race Simulation Script

Seeds an owner, a restaurant with a dish, and a client order through the
HTTP API, moves the order to "cooking", then lets many drivers try to
take it at the same time. Exactly one should win; the rest get 409.

Run from project root against a running server:
    python scripts/simulate.py --drivers 20
"""

import argparse
import asyncio
import sys
import time
import uuid
from typing import Any

import httpx

API_BASE_URL = "http://localhost:8001"

# Seoul, Gangnam station
RESTAURANT_POSITION = {"latitude": 37.4979, "longitude": 127.0276}
DRIVER_POSITION = {"lat": 37.5000, "lng": 127.0300}


def _email(role: str) -> str:
    return f"{role}-{uuid.uuid4().hex[:8]}@example.com"


async def create_user(client: httpx.AsyncClient, role: str) -> int:
    response = await client.post(
        f"{API_BASE_URL}/api/users",
        json={"email": _email(role), "password": "secret123", "role": role},
    )
    response.raise_for_status()
    return response.json()["id"]


async def seed_order(client: httpx.AsyncClient) -> int:
    """Create owner, restaurant, dish and a cooking order; return the order id."""
    owner_id = await create_user(client, "owner")
    client_id = await create_user(client, "client")

    response = await client.post(
        f"{API_BASE_URL}/api/restaurants",
        json={"name": "Simulation Pizza", "address": "Gangnam", **RESTAURANT_POSITION},
        headers={"X-User-Id": str(owner_id)},
    )
    response.raise_for_status()
    restaurant_id = response.json()["id"]

    response = await client.post(
        f"{API_BASE_URL}/api/restaurants/{restaurant_id}/dishes",
        json={
            "name": "Margherita",
            "price": 10,
            "options": [
                {"name": "Extra cheese", "price": 2},
                {"name": "Size", "choices": [{"name": "L", "price": 3}, {"name": "M"}]},
            ],
        },
        headers={"X-User-Id": str(owner_id)},
    )
    response.raise_for_status()
    dish_id = response.json()["id"]

    response = await client.post(
        f"{API_BASE_URL}/api/orders",
        json={
            "restaurant_id": restaurant_id,
            "items": [{"dish_id": dish_id, "options": [{"name": "Size", "choice": "L"}]}],
        },
        headers={"X-User-Id": str(client_id)},
    )
    response.raise_for_status()
    order_id = response.json()["order_id"]

    response = await client.patch(
        f"{API_BASE_URL}/api/orders/{order_id}",
        json={"status": "cooking"},
        headers={"X-User-Id": str(owner_id)},
    )
    response.raise_for_status()
    return order_id


async def try_take(client: httpx.AsyncClient, driver_id: int, order_id: int) -> dict[str, Any]:
    start_time = time.time()
    response = await client.post(
        f"{API_BASE_URL}/api/orders/{order_id}/take",
        headers={"X-User-Id": str(driver_id)},
    )
    return {
        "driver_id": driver_id,
        "status_code": response.status_code,
        "time": round(time.time() - start_time, 3),
    }


async def run_simulation(total_drivers: int) -> bool:
    print("=" * 60)
    print("DRIVER RACE SIMULATION")
    print("=" * 60)

    async with httpx.AsyncClient(timeout=30.0) as client:
        order_id = await seed_order(client)
        print(f"Order #{order_id} is cooking")

        response = await client.get(
            f"{API_BASE_URL}/api/driver/orders",
            params=DRIVER_POSITION,
            headers={"X-User-Id": str(await create_user(client, "delivery"))},
        )
        response.raise_for_status()
        nearby = {order["id"]: order["distance"] for order in response.json()["orders"]}
        if order_id in nearby:
            print(f"Order visible to nearby drivers ({nearby[order_id]:.0f} m away)")
        else:
            print("Order NOT visible to nearby drivers")

        drivers = [await create_user(client, "delivery") for _ in range(total_drivers)]
        results = await asyncio.gather(*(try_take(client, d, order_id) for d in drivers))

    winners = [r for r in results if r["status_code"] == 200]
    conflicts = [r for r in results if r["status_code"] == 409]
    others = [r for r in results if r["status_code"] not in (200, 409)]

    print(f"\nDrivers: {total_drivers}")
    print(f"   Won:       {len(winners)}")
    print(f"   Conflict:  {len(conflicts)}")
    print(f"   Other:     {len(others)}")
    if winners:
        print(f"   Winner:    driver #{winners[0]['driver_id']}")

    ok = len(winners) == 1 and not others
    print("\n" + ("RACE RESOLVED CORRECTLY" if ok else "RACE CHECK FAILED"))
    return ok


def main() -> None:
    global API_BASE_URL

    parser = argparse.ArgumentParser(description="Simulate drivers racing for one order")
    parser.add_argument("--drivers", type=int, default=10, help="Number of competing drivers")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")

    ok = asyncio.run(run_simulation(args.drivers))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
