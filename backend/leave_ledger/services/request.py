# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from leave_ledger.exceptions import AppError, ErrorKind
from leave_ledger.models.base import now_utc
from leave_ledger.models.enums import AuditAction, AuditEntityType, RequestStatus
from leave_ledger.models.request import LeaveRequest
from leave_ledger.schemas.request import (
    AllocationInput,
    RequestListResponse,
    RequestResponse,
    SubmitRequestResponse,
    UsageAllocation,
)
from leave_ledger.services.audit import model_to_audit_dict, write_audit_log
from leave_ledger.services.balance import list_categories, require_person
from leave_ledger.services.cache import get_balance_reader
from leave_ledger.services.duration import calculate_duration_days, ensure_allocations_match
from leave_ledger.services.reconcile import ensure_balance
from leave_ledger.services.transaction import with_transaction

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.auth import AuthContext
    from leave_ledger.schemas.request import DecisionPayload, SubmitRequestPayload

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def build_request_response(request: LeaveRequest) -> RequestResponse:
    """Map a request model to its response schema."""
    return RequestResponse(
        id=request.id,
        person_id=request.person_id,
        allocations=[AllocationInput.model_validate(a) for a in request.allocations_json],
        start_date=request.start_date,
        end_date=request.end_date,
        duration_days=request.duration_days,
        status=RequestStatus(request.status),
        destination=request.destination,
        contact=request.contact,
        reason=request.reason,
        processed_at=request.processed_at,
        processed_by=request.processed_by,
        decision_note=request.decision_note,
        usage=[UsageAllocation.model_validate(u) for u in request.usage_json] if request.usage_json else None,
        idempotency_key=request.idempotency_key,
        created_at=request.created_at,
    )


async def get_request_or_404(
    session: AsyncSession,
    request_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> LeaveRequest:
    """Fetch a request by ID. Raises not-found if absent."""
    query = select(LeaveRequest).where(col(LeaveRequest.id) == request_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    request = result.scalar_one_or_none()
    if request is None:
        raise AppError(f"Leave request {request_id} not found", kind=ErrorKind.NOT_FOUND)
    return request


async def _find_by_idempotency_key(
    session: AsyncSession,
    person_id: uuid.UUID,
    idempotency_key: str,
) -> LeaveRequest | None:
    result = await session.execute(
        select(LeaveRequest).where(
            col(LeaveRequest.person_id) == person_id,
            col(LeaveRequest.idempotency_key) == idempotency_key,
        )
    )
    return result.scalar_one_or_none()


def _matches_submission(request: LeaveRequest, payload: SubmitRequestPayload) -> bool:
    return (
        request.allocations_json == [a.model_dump(mode="json") for a in payload.allocations]
        and request.start_date == payload.start_date
        and request.end_date == payload.end_date
        and request.destination == payload.destination
        and request.contact == payload.contact
        and request.reason == payload.reason
    )


def _ensure_can_view(auth: AuthContext, request: LeaveRequest) -> None:
    if request.person_id != auth.user_id and not auth.is_admin:
        raise AppError("Not authorized to view this request", kind=ErrorKind.PERMISSION_DENIED)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def submit_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: SubmitRequestPayload,
) -> SubmitRequestResponse:
    """Create a pending leave request.

    The balance is neither checked for sufficiency nor modified here; days are
    deducted only when the request is approved.

    Flow:
    1. Resolve the person (caller, or anyone for admins)
    2. Derive duration from the date range and match it against allocations
    3. Seed the person's balance if they have none yet
    4. Verify every allocated category belongs to the person
    5. Create the request (PENDING) and audit it, honouring idempotency keys
    """
    # 1. Person.
    person_id = payload.person_id or auth.user_id
    if person_id != auth.user_id and not auth.is_admin:
        raise AppError("Only admins can submit requests for another person", kind=ErrorKind.PERMISSION_DENIED)
    await require_person(person_id)

    # 2. Duration.
    duration_days = calculate_duration_days(payload.start_date, payload.end_date)
    ensure_allocations_match(payload.requested_days, duration_days)

    # 3. Balance document.
    await ensure_balance(session, person_id)

    # 4. Categories.
    known = {c.id for c in await list_categories(session, person_id)}
    for allocation in payload.allocations:
        if allocation.category_id not in known:
            raise AppError(
                f"Leave category {allocation.category_id} not found for person {person_id}",
                kind=ErrorKind.NOT_FOUND,
            )

    # 5. Create.
    async def _create(tx: AsyncSession) -> tuple[LeaveRequest, bool]:
        if payload.idempotency_key is not None:
            existing = await _find_by_idempotency_key(tx, person_id, payload.idempotency_key)
            if existing is not None:
                if not _matches_submission(existing, payload):
                    raise AppError(
                        f"Idempotency key {payload.idempotency_key!r} was already used for a different request",
                        kind=ErrorKind.ALREADY_EXISTS,
                        context={"request_id": str(existing.id)},
                    )
                return existing, False

        leave_request = LeaveRequest(
            person_id=person_id,
            allocations_json=[a.model_dump(mode="json") for a in payload.allocations],
            start_date=payload.start_date,
            end_date=payload.end_date,
            duration_days=duration_days,
            status=RequestStatus.PENDING.value,
            destination=payload.destination,
            contact=payload.contact,
            reason=payload.reason,
            idempotency_key=payload.idempotency_key,
        )
        tx.add(leave_request)
        await tx.flush()

        await write_audit_log(
            tx,
            actor_id=auth.user_id,
            entity_type=AuditEntityType.REQUEST,
            entity_id=leave_request.id,
            action=AuditAction.SUBMIT,
            after_json=model_to_audit_dict(leave_request),
        )
        return leave_request, True

    leave_request, created = await with_transaction(session, _create, label="submit_request")
    if created:
        logger.info(
            "Leave request %s submitted for person=%s (%d day(s), %s..%s)",
            leave_request.id,
            person_id,
            duration_days,
            payload.start_date,
            payload.end_date,
        )
    return SubmitRequestResponse(
        success=True,
        request_id=leave_request.id,
        request=build_request_response(leave_request),
    )


async def reject_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: DecisionPayload | None = None,
) -> RequestResponse:
    """Reject a pending request. Balances are untouched."""
    if not auth.is_admin:
        raise AppError("Only admins and officers can reject requests", kind=ErrorKind.PERMISSION_DENIED)

    async def _apply(tx: AsyncSession) -> LeaveRequest:
        leave_request = await get_request_or_404(tx, request_id, for_update=True)
        if leave_request.status != RequestStatus.PENDING.value:
            raise AppError(
                f"Leave request {request_id} already {leave_request.status}",
                kind=ErrorKind.ALREADY_EXISTS,
            )
        before = model_to_audit_dict(leave_request)

        leave_request.status = RequestStatus.REJECTED.value
        leave_request.processed_at = now_utc()
        leave_request.processed_by = auth.user_id
        leave_request.decision_note = payload.note if payload else None
        await tx.flush()

        await write_audit_log(
            tx,
            actor_id=auth.user_id,
            entity_type=AuditEntityType.REQUEST,
            entity_id=leave_request.id,
            action=AuditAction.REJECT,
            before_json=before,
            after_json=model_to_audit_dict(leave_request),
        )
        return leave_request

    leave_request = await with_transaction(session, _apply, label="reject_request")
    get_balance_reader().invalidate(leave_request.person_id)
    logger.info("Leave request %s rejected by %s", request_id, auth.user_id)
    return build_request_response(leave_request)


async def get_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> RequestResponse:
    """Get a single request by ID. Members may only see their own."""
    leave_request = await get_request_or_404(session, request_id)
    _ensure_can_view(auth, leave_request)
    return build_request_response(leave_request)


async def list_requests(
    session: AsyncSession,
    auth: AuthContext,
    status_filter: RequestStatus | None = None,
    person_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> RequestListResponse:
    """List requests with optional filters, newest first. Members only see their own."""
    if not auth.is_admin:
        if person_id is not None and person_id != auth.user_id:
            raise AppError("Not authorized to list requests of another person", kind=ErrorKind.PERMISSION_DENIED)
        person_id = auth.user_id

    base_filters = []
    if status_filter is not None:
        base_filters.append(col(LeaveRequest.status) == status_filter.value)
    if person_id is not None:
        base_filters.append(col(LeaveRequest.person_id) == person_id)

    count_result = await session.execute(select(func.count()).select_from(LeaveRequest).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveRequest)
        .where(*base_filters)
        .order_by(col(LeaveRequest.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    requests = list(result.scalars().all())

    return RequestListResponse(
        items=[build_request_response(r) for r in requests],
        total=total,
    )
