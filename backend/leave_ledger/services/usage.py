# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from leave_ledger.exceptions import AppError, ErrorKind
from leave_ledger.models.base import now_utc
from leave_ledger.models.enums import AuditAction, AuditEntityType, LedgerEntryType, RequestStatus
from leave_ledger.models.ledger import LeaveLedgerEntry
from leave_ledger.schemas.request import UsageAllocation, UseLeaveResponse
from leave_ledger.services.audit import categories_to_audit_dict, model_to_audit_dict, write_audit_log
from leave_ledger.services.balance import get_balance_header, list_categories
from leave_ledger.services.cache import get_balance_reader
from leave_ledger.services.duration import ensure_allocations_match
from leave_ledger.services.request import build_request_response, get_request_or_404
from leave_ledger.services.transaction import with_transaction

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.models.request import LeaveRequest
    from leave_ledger.schemas.auth import AuthContext
    from leave_ledger.schemas.request import UseLeavePayload

logger = logging.getLogger(__name__)


async def use_leave(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: UseLeavePayload,
) -> UseLeaveResponse:
    """Approve a pending request and deduct its days, all or nothing.

    Flow (one transaction spanning the request and the balance document):
    1. Lock the request; it must belong to the person and still be PENDING
    2. Check the allocations cover exactly the request duration
    3. Lock the balance header and read the categories
    4. Validate every allocation against its category's remaining days
    5. Deduct, append one used ledger entry per allocation
    6. Mark the request APPROVED and audit
    7. Commit, retrying on concurrent writes
    """
    if not auth.is_admin:
        raise AppError("Only admins and officers can approve leave", kind=ErrorKind.PERMISSION_DENIED)

    async def _apply(tx: AsyncSession) -> LeaveRequest:
        # 1. Request state.
        leave_request = await get_request_or_404(tx, request_id, for_update=True)
        if leave_request.person_id != payload.person_id:
            raise AppError(
                f"Leave request {request_id} does not belong to person {payload.person_id}",
                kind=ErrorKind.INVALID_ARGUMENT,
            )
        if leave_request.status != RequestStatus.PENDING.value:
            raise AppError(
                f"Leave request {request_id} already {leave_request.status}",
                kind=ErrorKind.ALREADY_EXISTS,
            )

        # 2. Allocations.
        allocations = payload.allocations
        if allocations is None:
            allocations = [
                UsageAllocation(category_id=a["category_id"], days_used=a["days_requested"])
                for a in leave_request.allocations_json
            ]
        ensure_allocations_match(sum(a.days_used for a in allocations), leave_request.duration_days)

        # 3. Balance document.
        balance = await get_balance_header(tx, leave_request.person_id, for_update=True)
        if balance is None:
            raise AppError(
                f"No leave balance for person {leave_request.person_id}",
                kind=ErrorKind.NOT_FOUND,
            )
        categories = {c.id: c for c in await list_categories(tx, leave_request.person_id)}

        # 4. Validate everything before touching anything.
        for allocation in allocations:
            category = categories.get(allocation.category_id)
            if category is None:
                raise AppError(
                    f"Leave category {allocation.category_id} not found",
                    kind=ErrorKind.NOT_FOUND,
                )
            if category.remaining_days < allocation.days_used:
                raise AppError(
                    f"Not enough days remaining for {category.name}: "
                    f"requested {allocation.days_used}, available {category.remaining_days}",
                    kind=ErrorKind.OUT_OF_RANGE,
                    context={
                        "category_id": str(category.id),
                        "category_name": category.name,
                        "requested": allocation.days_used,
                        "available": category.remaining_days,
                    },
                )

        request_before = model_to_audit_dict(leave_request)
        balance_before = categories_to_audit_dict(categories.values())
        now = now_utc()

        # 5. Deduct and record.
        for allocation in allocations:
            category = categories[allocation.category_id]
            category.remaining_days -= allocation.days_used
            category.updated_at = now
            tx.add(
                LeaveLedgerEntry(
                    person_id=leave_request.person_id,
                    entry_type=LedgerEntryType.USED.value,
                    category_id=category.id,
                    category_name=category.name,
                    days=allocation.days_used,
                    effective_date=leave_request.start_date,
                    reason=leave_request.reason,
                    request_id=leave_request.id,
                    created_by=auth.user_id,
                )
            )
        balance.updated_at = now

        # 6. Request state.
        leave_request.status = RequestStatus.APPROVED.value
        leave_request.processed_at = now
        leave_request.processed_by = auth.user_id
        leave_request.decision_note = payload.note
        leave_request.usage_json = [a.model_dump(mode="json") for a in allocations]
        await tx.flush()

        await write_audit_log(
            tx,
            actor_id=auth.user_id,
            entity_type=AuditEntityType.REQUEST,
            entity_id=leave_request.id,
            action=AuditAction.APPROVE,
            before_json={"request": request_before, "balance": balance_before},
            after_json={
                "request": model_to_audit_dict(leave_request),
                "balance": categories_to_audit_dict(categories.values()),
            },
        )
        return leave_request

    # 7. Commit.
    leave_request = await with_transaction(session, _apply, label="use_leave")
    get_balance_reader().invalidate(leave_request.person_id)

    logger.info(
        "Leave request %s approved by %s: %d day(s) deducted for person=%s",
        request_id,
        auth.user_id,
        leave_request.duration_days,
        leave_request.person_id,
    )
    return UseLeaveResponse(
        success=True,
        message="Leave approved and deducted",
        request=build_request_response(leave_request),
    )
