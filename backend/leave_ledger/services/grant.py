# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING

from leave_ledger.exceptions import AppError, ErrorKind
from leave_ledger.models.base import now_utc
from leave_ledger.models.category import LeaveCategory
from leave_ledger.models.enums import AuditAction, AuditEntityType, LedgerEntryType
from leave_ledger.models.ledger import LeaveLedgerEntry
from leave_ledger.schemas.balance import GrantLeaveResponse
from leave_ledger.services.audit import categories_to_audit_dict, write_audit_log
from leave_ledger.services.balance import (
    build_category_response,
    get_or_create_balance_for_update,
    list_categories,
    require_person,
)
from leave_ledger.services.cache import get_balance_reader
from leave_ledger.services.transaction import with_transaction

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.auth import AuthContext
    from leave_ledger.schemas.balance import GrantLeavePayload

logger = logging.getLogger(__name__)

DEFAULT_GRANT_REASON = "Regular grant"


async def grant_leave(
    session: AsyncSession,
    auth: AuthContext,
    person_id: uuid.UUID,
    payload: GrantLeavePayload,
) -> GrantLeaveResponse:
    """Add days to one of a person's leave categories.

    Flow:
    1. Require an administrative caller
    2. Verify the person exists
    3. Lock (or create) the balance header
    4. Add days to the named category, or create it
    5. Append a granted ledger entry
    6. Write audit log
    7. Commit, retrying on concurrent writes
    """
    # 1. Privilege is checked before any transaction starts.
    if not auth.is_admin:
        raise AppError("Only admins and officers can grant leave", kind=ErrorKind.PERMISSION_DENIED)

    # 2. Person must exist.
    await require_person(person_id)

    today = date.today()
    reason = payload.reason or DEFAULT_GRANT_REASON

    async def _apply(tx: AsyncSession) -> tuple[LeaveCategory, LeaveLedgerEntry]:
        # 3. Lock header; categories are read after the lock.
        balance = await get_or_create_balance_for_update(tx, person_id)
        categories = await list_categories(tx, person_id)
        before = categories_to_audit_dict(categories)
        now = now_utc()

        # 4. Increase an existing category or create a new one.
        category = next((c for c in categories if c.name == payload.category_name), None)
        if category is None:
            category = LeaveCategory(
                person_id=person_id,
                name=payload.category_name,
                total_days=payload.days,
                remaining_days=payload.days,
                is_default=False,
            )
            tx.add(category)
            categories.append(category)
        else:
            category.total_days += payload.days
            category.remaining_days += payload.days
            category.updated_at = now
        balance.updated_at = now

        # 5. Ledger entry.
        entry = LeaveLedgerEntry(
            person_id=person_id,
            entry_type=LedgerEntryType.GRANTED.value,
            category_id=category.id,
            category_name=category.name,
            days=payload.days,
            effective_date=today,
            reason=reason,
            created_by=auth.user_id,
        )
        tx.add(entry)
        await tx.flush()

        # 6. Audit log.
        await write_audit_log(
            tx,
            actor_id=auth.user_id,
            entity_type=AuditEntityType.BALANCE,
            entity_id=person_id,
            action=AuditAction.GRANT,
            before_json=before,
            after_json=categories_to_audit_dict(categories),
        )
        return category, entry

    # 7. Commit.
    category, entry = await with_transaction(session, _apply, label="grant_leave")
    get_balance_reader().invalidate(person_id)

    logger.info(
        "Granted %d day(s) of %s to person=%s by=%s (remaining %d/%d)",
        payload.days,
        category.name,
        person_id,
        auth.user_id,
        category.remaining_days,
        category.total_days,
    )
    return GrantLeaveResponse(
        success=True,
        message=f"Granted {payload.days} day(s) of {category.name}",
        category=build_category_response(category),
        ledger_entry_id=entry.id,
    )
