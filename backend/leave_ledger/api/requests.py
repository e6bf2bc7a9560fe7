# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from leave_ledger.api.deps import AdminDep, AuthDep
from leave_ledger.db import SessionDep
from leave_ledger.models.enums import RequestStatus
from leave_ledger.schemas.request import (
    DecisionPayload,
    RequestListResponse,
    RequestResponse,
    SubmitRequestPayload,
    SubmitRequestResponse,
    UseLeavePayload,
    UseLeaveResponse,
)
from leave_ledger.services import request as request_service
from leave_ledger.services import usage as usage_service

requests_router = APIRouter(
    prefix="/requests",
    tags=["requests"],
)


@requests_router.post("", response_model=SubmitRequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_request(
    payload: SubmitRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> SubmitRequestResponse:
    """Submit a new leave request."""
    return await request_service.submit_request(session, auth, payload)


@requests_router.get("", response_model=RequestListResponse)
async def list_requests(
    session: SessionDep,
    auth: AuthDep,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    person_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> RequestListResponse:
    """List leave requests with optional filters."""
    return await request_service.list_requests(session, auth, status_filter, person_id, offset, limit)


@requests_router.get("/{request_id}", response_model=RequestResponse)
async def get_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Get a single leave request."""
    return await request_service.get_request(session, auth, request_id)


@requests_router.post("/{request_id}/use", response_model=UseLeaveResponse)
async def use_leave(
    request_id: uuid.UUID,
    payload: UseLeavePayload,
    session: SessionDep,
    auth: AdminDep,
) -> UseLeaveResponse:
    """Approve a pending request and deduct its days (admin only)."""
    return await usage_service.use_leave(session, auth, request_id, payload)


@requests_router.post("/{request_id}/reject", response_model=RequestResponse)
async def reject_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    payload: DecisionPayload | None = None,
) -> RequestResponse:
    """Reject a pending request (admin only)."""
    return await request_service.reject_request(session, auth, request_id, payload)
