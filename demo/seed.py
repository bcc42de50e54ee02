#!/usr/bin/env python3
"""
Demo seed script — populates the database with sample tours for demos.

!! NOT FOR PRODUCTION !!
This script creates users with known passwords, tours, reviews and
bookings. It is intended ONLY for local demos and frontend development.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000

Login credentials after seeding:
    ┌──────────────────────────────┬───────────────────┬────────────┐
    │ Email                        │ Password          │ Role       │
    ├──────────────────────────────┼───────────────────┼────────────┤
    │ admin@toursdemo.com          │ AdminDemo123!     │ admin      │
    │ lead@toursdemo.com           │ LeadDemo123!      │ lead-guide │
    │ guide@toursdemo.com          │ GuideDemo123!     │ guide      │
    │ alice.chen@example.com       │ AliceDemo123!     │ user       │
    │ bob.martinez@example.com     │ BobDemo123!       │ user       │
    │ carol.nguyen@example.com     │ CarolDemo123!     │ user       │
    └──────────────────────────────┴───────────────────┴────────────┘
"""

import argparse
import asyncio
import random
import sys

import httpx

BASE_URL = "http://localhost:8000"
API = "/api/v1"

# ---------------------------------------------------------------------------
# Demo users
# ---------------------------------------------------------------------------

STAFF = [
    {"name": "Admin User", "email": "admin@toursdemo.com", "password": "AdminDemo123!", "role": "admin"},
    {"name": "Leo Gillespie", "email": "lead@toursdemo.com", "password": "LeadDemo123!", "role": "lead-guide"},
    {"name": "Kate Morrison", "email": "guide@toursdemo.com", "password": "GuideDemo123!", "role": "guide"},
]

CUSTOMERS = [
    {"name": "Alice Chen", "email": "alice.chen@example.com", "password": "AliceDemo123!"},
    {"name": "Bob Martinez", "email": "bob.martinez@example.com", "password": "BobDemo123!"},
    {"name": "Carol Nguyen", "email": "carol.nguyen@example.com", "password": "CarolDemo123!"},
]

# ---------------------------------------------------------------------------
# Demo tours
# ---------------------------------------------------------------------------

TOURS = [
    {
        "name": "The Forest Hiker",
        "duration": 5,
        "max_group_size": 25,
        "difficulty": "easy",
        "price": 397,
        "summary": "Breathtaking hike through the Canadian Banff National Park",
        "image_cover": "tour-1-cover.jpg",
        "start_dates": ["2026-04-25T09:00:00", "2026-07-20T09:00:00", "2026-10-05T09:00:00"],
        "start_location": {"type": "Point", "coordinates": [-115.570154, 51.178456], "address": "Banff, CAN"},
    },
    {
        "name": "The Sea Explorer",
        "duration": 7,
        "max_group_size": 15,
        "difficulty": "medium",
        "price": 497,
        "price_discount": 450,
        "summary": "Exploring the jaw-dropping US east coast by foot and by boat",
        "image_cover": "tour-2-cover.jpg",
        "start_dates": ["2026-06-19T09:00:00", "2026-07-20T09:00:00"],
        "start_location": {"type": "Point", "coordinates": [-80.185942, 25.774772], "address": "Miami, USA"},
    },
    {
        "name": "The Snow Adventurer",
        "duration": 4,
        "max_group_size": 10,
        "difficulty": "difficult",
        "price": 997,
        "summary": "Exciting adventure in the snow with snowboarding and skiing",
        "image_cover": "tour-3-cover.jpg",
        "start_dates": ["2027-01-05T10:00:00", "2027-02-12T10:00:00"],
        "start_location": {"type": "Point", "coordinates": [-106.822318, 39.190872], "address": "Aspen, USA"},
    },
    {
        "name": "The City Wanderer",
        "duration": 9,
        "max_group_size": 20,
        "difficulty": "easy",
        "price": 1197,
        "summary": "Living the life of Wanderlust in the US' most beautiful cities",
        "image_cover": "tour-4-cover.jpg",
        "start_dates": ["2026-03-11T10:00:00", "2026-05-02T10:00:00", "2026-06-09T10:00:00"],
        "start_location": {"type": "Point", "coordinates": [-73.985141, 40.75894], "address": "NYC, USA"},
    },
    {
        "name": "The Hidden Valley",
        "duration": 3,
        "max_group_size": 6,
        "difficulty": "medium",
        "price": 1497,
        "summary": "An invitation-only trip to a valley that is not on any map",
        "image_cover": "tour-5-cover.jpg",
        "secret_tour": True,
    },
]

REVIEW_TEXTS = [
    "Absolutely unforgettable, the guides were fantastic!",
    "Great value for money, would book again.",
    "Beautiful scenery but the days were long.",
    "Well organized from start to finish.",
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def signup(client: httpx.AsyncClient, user: dict) -> dict:
    """Sign up a user, return {"id", "token"}."""
    resp = await client.post(f"{BASE_URL}{API}/users/signup", json={
        "name": user["name"],
        "email": user["email"],
        "password": user["password"],
        "password_confirm": user["password"],
    })
    resp.raise_for_status()
    data = resp.json()
    return {"id": data["data"]["user"]["id"], "token": data["token"]}


async def set_role(client: httpx.AsyncClient, admin_token: str, user_id: str, role: str) -> None:
    resp = await client.patch(
        f"{BASE_URL}{API}/users/{user_id}",
        json={"role": role},
        headers=auth_header(admin_token),
    )
    resp.raise_for_status()


async def promote_to_admin(admin_email: str) -> None:
    """
    Directly update the first admin's role in the database.

    This bypasses the API since signup always creates plain users (admin
    provisioning is an operator action, not self-service). Every other role
    is then granted through the admin endpoint.
    """
    from sqlalchemy import update
    from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

    from tourbook.config import settings
    from tourbook.models.user import User, UserRole

    engine = create_async_engine(settings.DATABASE_URL)
    session_factory = async_sessionmaker(engine, class_=AsyncSession)
    async with session_factory() as session:
        await session.execute(
            update(User)
            .where(User.email == admin_email)
            .values(role=UserRole.ADMIN)
        )
        await session.commit()
    await engine.dispose()


async def create_tour(client: httpx.AsyncClient, token: str, tour: dict, guide_ids: list[str]) -> dict:
    resp = await client.post(
        f"{BASE_URL}{API}/tours",
        json={**tour, "guides": guide_ids},
        headers=auth_header(token),
    )
    resp.raise_for_status()
    return resp.json()["data"]["tour"]


# ---------------------------------------------------------------------------
# Seed logic
# ---------------------------------------------------------------------------

async def seed(base_url: str) -> None:
    global BASE_URL
    BASE_URL = base_url

    print("\n========================================")
    print("  DEMO SEED — NOT FOR PRODUCTION")
    print("========================================\n")

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            health = await client.get(f"{BASE_URL}/health")
            health.raise_for_status()
        except (httpx.ConnectError, httpx.HTTPStatusError):
            print(f"  ERROR: Cannot connect to {BASE_URL}")
            print("  Start the server first: uvicorn tourbook.main:app --reload\n")
            sys.exit(1)

        # --- Staff ---
        print("Creating staff...")
        admin = STAFF[0]
        admin_account = await signup(client, admin)
        await promote_to_admin(admin["email"])
        log(f"admin: {admin['email']} / {admin['password']}")

        guide_ids = []
        for member in STAFF[1:]:
            account = await signup(client, member)
            await set_role(client, admin_account["token"], account["id"], member["role"])
            guide_ids.append(account["id"])
            log(f"{member['role']}: {member['email']} / {member['password']}")

        # --- Tours ---
        print("\nCreating tours...")
        tours = []
        for tour in TOURS:
            created = await create_tour(client, admin_account["token"], tour, guide_ids)
            tours.append(created)
            log(f"{created['name']} ({created['difficulty']}, ${created['price']:.0f})")
        public_tours = [t for t in tours if not t["secret_tour"]]

        # --- Customers, reviews and bookings ---
        for customer in CUSTOMERS:
            print(f"\nCreating {customer['name']}...")
            account = await signup(client, customer)
            log(f"Login: {customer['email']} / {customer['password']}")

            for tour in random.sample(public_tours, k=2):
                resp = await client.post(
                    f"{BASE_URL}{API}/tours/{tour['id']}/reviews",
                    json={"review": random.choice(REVIEW_TEXTS), "rating": random.randint(3, 5)},
                    headers=auth_header(account["token"]),
                )
                resp.raise_for_status()

                resp = await client.post(
                    f"{BASE_URL}{API}/bookings",
                    json={"tour_id": tour["id"], "user_id": account["id"]},
                    headers=auth_header(admin_account["token"]),
                )
                resp.raise_for_status()
                log(f"  Reviewed and booked {tour['name']}")

        # --- Summary ---
        print("\nTour ratings after seeding:")
        resp = await client.get(f"{BASE_URL}{API}/tours", params={"sort": "-ratings_average"})
        for tour in resp.json()["data"]["tours"]:
            log(f"{tour['name']:<24} {tour['ratings_average']:.1f} ({tour['ratings_quantity']} ratings)")

    print("\nDone.\n")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the Tours API with demo data")
    parser.add_argument("--base-url", default=BASE_URL, help="API base URL")
    args = parser.parse_args()
    asyncio.run(seed(args.base_url))


if __name__ == "__main__":
    main()
