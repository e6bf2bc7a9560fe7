"""Seed script for development data.

Run against a local server with:  python -m leave_ledger.seed [BASE_URL]

Registers a few well-known persons in the directory stub, tops up their
leave, files requests, and approves or rejects some of them. Safe to re-run:
persons are upserted and requests carry idempotency keys; grants are skipped
once a category already holds the seeded amount.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import date
from typing import Any

import httpx

BASE_URL = "http://localhost:8000"
OFFICER_ID = "00000000-0000-0000-0000-0000000000f1"

OFFICER_HEADERS = {
    "Content-Type": "application/json",
    "X-User-Id": OFFICER_ID,
    "X-Role": "officer",
}

# Well-known person UUIDs
DANA_ID = "00000000-0000-0000-0000-000000000101"
NOA_ID = "00000000-0000-0000-0000-000000000102"
YOSSI_ID = "00000000-0000-0000-0000-000000000103"

PERSONS = [
    {
        "id": OFFICER_ID,
        "name": "Avi Mor",
        "rank": "Captain",
        "unit": "Alpha",
        "person_type": "officer",
        "enlistment_date": "2018-08-01",
    },
    {
        "id": DANA_ID,
        "name": "Dana Levi",
        "rank": "Sergeant",
        "unit": "Alpha",
        "enlistment_date": "2024-01-15",
    },
    {
        "id": NOA_ID,
        "name": "Noa Cohen",
        "rank": "Corporal",
        "unit": "Alpha",
        "enlistment_date": "2024-07-01",
    },
    {
        "id": YOSSI_ID,
        "name": "Yossi Katz",
        "rank": "Private",
        "unit": "Bravo",
    },
]

# Grants: (person_id, category_name, days, reason)
GRANTS = [
    (DANA_ID, "reward", 2, "Outstanding soldier of the month"),
    (NOA_ID, "petition", 1, "Family event petition"),
    (YOSSI_ID, "medical", 3, "Medical recommendation"),
]

# Requests: (person_id, category_name, start, end, destination, decision, idempotency_key)
REQUESTS = [
    (DANA_ID, "annual", "2025-03-02", "2025-03-06", "Haifa", "use", "seed-dana-march"),
    (DANA_ID, "reward", "2025-04-10", "2025-04-11", "Tel Aviv", None, "seed-dana-april"),
    (NOA_ID, "annual", "2025-05-01", "2025-05-09", "Eilat", "reject", "seed-noa-may"),
    (YOSSI_ID, "medical", "2025-02-03", "2025-02-04", "Home", "use", "seed-yossi-feb"),
]


def _person_headers(person_id: str) -> dict[str, str]:
    return {"Content-Type": "application/json", "X-User-Id": person_id, "X-Role": "member"}


async def _safe_post(
    client: httpx.AsyncClient,
    url: str,
    json: dict[str, Any],
    label: str,
    headers: dict[str, str] = OFFICER_HEADERS,
) -> dict[str, Any] | None:
    """POST with 409-conflict tolerance for idempotency."""
    resp = await client.post(url, json=json, headers=headers)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()
    if resp.status_code == 409:
        print(f"  [SKIP] {label} ({resp.json().get('kind')})")
        return None
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


async def _safe_put(client: httpx.AsyncClient, url: str, json: dict[str, Any], label: str) -> dict[str, Any] | None:
    """PUT (upsert), naturally idempotent."""
    resp = await client.put(url, json=json, headers=OFFICER_HEADERS)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


async def _get_categories(client: httpx.AsyncClient, person_id: str) -> dict[str, dict[str, Any]]:
    """Current categories of a person keyed by name (seeds defaults on first read)."""
    resp = await client.get(
        f"{BASE_URL}/persons/{person_id}/balance",
        params={"refresh": "true"},
        headers=OFFICER_HEADERS,
    )
    if resp.status_code != 200:
        return {}
    return {c["name"]: c for c in resp.json()["categories"]}


async def seed_persons(client: httpx.AsyncClient) -> None:
    """Seed persons via PUT (upsert)."""
    print("\n--- Seeding persons ---")
    for person in PERSONS:
        body = {k: v for k, v in person.items() if k != "id"}
        await _safe_put(client, f"{BASE_URL}/persons/{person['id']}", body, str(person["name"]))


async def seed_grants(client: httpx.AsyncClient) -> None:
    """Seed grants (skip if the category already holds the seeded amount)."""
    print("\n--- Seeding grants ---")
    for person_id, category_name, days, reason in GRANTS:
        existing = (await _get_categories(client, person_id)).get(category_name)
        label = f"Grant {person_id[-3:]} {category_name} +{days}d"
        if existing is not None and existing["total_days"] >= days:
            print(f"  [SKIP] {label} (already {existing['total_days']}d)")
            continue
        await _safe_post(
            client,
            f"{BASE_URL}/persons/{person_id}/grants",
            {"category_name": category_name, "days": days, "reason": reason},
            label,
        )


async def seed_requests(client: httpx.AsyncClient) -> None:
    """Submit requests, then approve (use) or reject the ones with a decision."""
    print("\n--- Seeding requests ---")
    for person_id, category_name, start, end, destination, decision, key in REQUESTS:
        categories = await _get_categories(client, person_id)
        category = categories.get(category_name)
        if category is None:
            print(f"  [ERROR] {key}: category {category_name} missing")
            continue

        days = (date.fromisoformat(end) - date.fromisoformat(start)).days + 1
        submitted = await _safe_post(
            client,
            f"{BASE_URL}/requests",
            {
                "allocations": [{"category_id": category["id"], "days_requested": days}],
                "start_date": start,
                "end_date": end,
                "destination": destination,
                "contact": "050-0000000",
                "idempotency_key": key,
            },
            f"Request {key} ({days}d {category_name})",
            headers=_person_headers(person_id),
        )
        if submitted is None or decision is None:
            continue

        request_id = submitted["request_id"]
        if submitted["request"]["status"] != "pending":
            print(f"  [SKIP] {key} already {submitted['request']['status']}")
            continue
        if decision == "use":
            await _safe_post(
                client,
                f"{BASE_URL}/requests/{request_id}/use",
                {"person_id": person_id, "note": "Approved by seed"},
                f"Approve {key}",
            )
        else:
            await _safe_post(
                client,
                f"{BASE_URL}/requests/{request_id}/reject",
                {"note": "Rejected by seed"},
                f"Reject {key}",
            )


async def main() -> None:
    global BASE_URL
    if len(sys.argv) > 1:
        BASE_URL = sys.argv[1].rstrip("/")

    print("=" * 60)
    print("  Leave Ledger - Development Seed Script")
    print("=" * 60)

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            resp = await client.get(f"{BASE_URL}/health")
            if resp.status_code != 200:
                print(f"API health check failed: {resp.status_code}")
                sys.exit(1)
            print("\n[OK] API is healthy")
        except httpx.ConnectError:
            print("ERROR: Cannot connect to API at", BASE_URL)
            print("Make sure the API is running (uvicorn leave_ledger.main:app)")
            sys.exit(1)

        await seed_persons(client)
        await seed_grants(client)
        await seed_requests(client)

    print("\n" + "=" * 60)
    print("  Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
