from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from leave_ledger.exceptions import AppError, ErrorKind
from leave_ledger.models.balance import LeaveBalance
from leave_ledger.models.category import LeaveCategory
from leave_ledger.models.enums import LedgerEntryType
from leave_ledger.models.ledger import LeaveLedgerEntry
from leave_ledger.schemas.balance import CategoryResponse, LedgerEntryResponse, LedgerListResponse
from leave_ledger.services.person import get_person_directory

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.services.person import PersonInfo


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------


def build_category_response(category: LeaveCategory) -> CategoryResponse:
    """Map a category row to its response schema."""
    return CategoryResponse(
        id=category.id,
        name=category.name,
        total_days=category.total_days,
        remaining_days=category.remaining_days,
        is_default=category.is_default,
        created_at=category.created_at,
        updated_at=category.updated_at,
    )


def build_ledger_entry_response(entry: LeaveLedgerEntry) -> LedgerEntryResponse:
    """Map a ledger entry model to its response schema."""
    return LedgerEntryResponse(
        id=entry.id,
        person_id=entry.person_id,
        entry_type=LedgerEntryType(entry.entry_type),
        category_id=entry.category_id,
        category_name=entry.category_name,
        days=entry.days,
        effective_date=entry.effective_date,
        reason=entry.reason,
        request_id=entry.request_id,
        created_by=entry.created_by,
        created_at=entry.created_at,
    )


# ---------------------------------------------------------------------------
# Balance store access
# ---------------------------------------------------------------------------


async def require_person(person_id: uuid.UUID) -> PersonInfo:
    """Look the person up in the directory. Raises not-found if unknown."""
    person = await get_person_directory().get_person(person_id)
    if person is None:
        raise AppError(f"Person {person_id} not found", kind=ErrorKind.NOT_FOUND)
    return person


async def get_balance_header(
    session: AsyncSession,
    person_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> LeaveBalance | None:
    """Fetch a person's balance header, optionally locking it for the rest of the transaction."""
    query = select(LeaveBalance).where(col(LeaveBalance.person_id) == person_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def get_or_create_balance_for_update(session: AsyncSession, person_id: uuid.UUID) -> LeaveBalance:
    """Lock the balance header, creating an empty one if the person has none yet."""
    balance = await get_balance_header(session, person_id, for_update=True)
    if balance is None:
        balance = LeaveBalance(person_id=person_id)
        session.add(balance)
        await session.flush()
    return balance


async def list_categories(session: AsyncSession, person_id: uuid.UUID) -> list[LeaveCategory]:
    """All categories of a person, oldest first.

    Always re-reads rows so callers holding the header lock see committed values.
    """
    result = await session.execute(
        select(LeaveCategory)
        .where(col(LeaveCategory.person_id) == person_id)
        .order_by(col(LeaveCategory.created_at), col(LeaveCategory.name))
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_ledger_entries(session: AsyncSession, person_id: uuid.UUID) -> list[LeaveLedgerEntry]:
    """Full ledger history of a person in chronological order."""
    result = await session.execute(
        select(LeaveLedgerEntry)
        .where(col(LeaveLedgerEntry.person_id) == person_id)
        .order_by(col(LeaveLedgerEntry.effective_date), col(LeaveLedgerEntry.created_at))
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_person_ledger(
    session: AsyncSession,
    person_id: uuid.UUID,
    entry_type: LedgerEntryType | None = None,
    offset: int = 0,
    limit: int = 50,
) -> LedgerListResponse:
    """Get paginated ledger entries for a person, newest first."""
    base_filter = [col(LeaveLedgerEntry.person_id) == person_id]
    if entry_type is not None:
        base_filter.append(col(LeaveLedgerEntry.entry_type) == entry_type.value)

    count_result = await session.execute(select(func.count()).select_from(LeaveLedgerEntry).where(*base_filter))
    total = count_result.scalar_one()

    entries_result = await session.execute(
        select(LeaveLedgerEntry)
        .where(*base_filter)
        .order_by(
            col(LeaveLedgerEntry.effective_date).desc(),
            col(LeaveLedgerEntry.created_at).desc(),
        )
        .offset(offset)
        .limit(limit)
    )
    entries = list(entries_result.scalars().all())

    return LedgerListResponse(
        items=[build_ledger_entry_response(e) for e in entries],
        total=total,
    )
