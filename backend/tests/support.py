"""Shared identities and HTTP helpers for the test suite."""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

from leave_ledger.schemas.auth import AuthContext

if TYPE_CHECKING:
    from httpx import AsyncClient, Response

SOLDIER_ID = uuid.UUID("00000000-0000-0000-0000-00000000a001")
OTHER_SOLDIER_ID = uuid.UUID("00000000-0000-0000-0000-00000000a002")
OFFICER_ID = uuid.UUID("00000000-0000-0000-0000-00000000b001")
UNKNOWN_PERSON_ID = uuid.UUID("00000000-0000-0000-0000-00000000dead")

ENLISTMENT_DATE = date(2024, 1, 15)

SOLDIER_HEADERS = {"X-User-Id": str(SOLDIER_ID), "X-Role": "member"}
OTHER_SOLDIER_HEADERS = {"X-User-Id": str(OTHER_SOLDIER_ID), "X-Role": "member"}
OFFICER_HEADERS = {"X-User-Id": str(OFFICER_ID), "X-Role": "officer"}

SOLDIER_AUTH = AuthContext(user_id=SOLDIER_ID, role="member")
OFFICER_AUTH = AuthContext(user_id=OFFICER_ID, role="officer")


def balance_url(person_id: uuid.UUID) -> str:
    return f"/persons/{person_id}/balance"


def category_by_name(balance: dict[str, Any], name: str) -> dict[str, Any]:
    return next(c for c in balance["categories"] if c["name"] == name)


async def grant(
    client: AsyncClient,
    person_id: uuid.UUID,
    category_name: str,
    days: int,
    reason: str | None = None,
) -> dict[str, Any]:
    response = await client.post(
        f"/persons/{person_id}/grants",
        json={"category_name": category_name, "days": days, "reason": reason},
        headers=OFFICER_HEADERS,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def get_balance(client: AsyncClient, person_id: uuid.UUID, *, refresh: bool = False) -> dict[str, Any]:
    response = await client.get(
        balance_url(person_id),
        params={"refresh": "true"} if refresh else None,
        headers=OFFICER_HEADERS,
    )
    assert response.status_code == 200, response.text
    return response.json()


async def submit(
    client: AsyncClient,
    allocations: list[tuple[str, int]],
    start: date,
    end: date,
    *,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> Response:
    """Submit a request; ``allocations`` are ``(category_id, days)`` pairs."""
    body: dict[str, Any] = {
        "allocations": [{"category_id": cid, "days_requested": days} for cid, days in allocations],
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "destination": "Home",
        "contact": "050-0000000",
        **extra,
    }
    return await client.post("/requests", json=body, headers=headers or SOLDIER_HEADERS)


async def use(
    client: AsyncClient,
    request_id: str,
    person_id: uuid.UUID,
    allocations: list[tuple[str, int]] | None = None,
) -> Response:
    body: dict[str, Any] = {"person_id": str(person_id)}
    if allocations is not None:
        body["allocations"] = [{"category_id": cid, "days_used": days} for cid, days in allocations]
    return await client.post(f"/requests/{request_id}/use", json=body, headers=OFFICER_HEADERS)
