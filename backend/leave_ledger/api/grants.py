# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, status

from leave_ledger.api.deps import AdminDep
from leave_ledger.db import SessionDep
from leave_ledger.schemas.balance import GrantLeavePayload, GrantLeaveResponse
from leave_ledger.services import grant as grant_service

grants_router = APIRouter(
    prefix="/persons/{person_id}/grants",
    tags=["grants"],
)


@grants_router.post("", response_model=GrantLeaveResponse, status_code=status.HTTP_201_CREATED)
async def grant_leave(
    person_id: uuid.UUID,
    payload: GrantLeavePayload,
    session: SessionDep,
    auth: AdminDep,
) -> GrantLeaveResponse:
    """Grant days to a person's leave category (admin only)."""
    return await grant_service.grant_leave(session, auth, person_id, payload)
