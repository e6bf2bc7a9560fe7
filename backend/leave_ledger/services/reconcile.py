"""Rebuild balances from the ledger.

The ledger is the source of truth; stored categories are a derived cache of it.
Reads recompute from the ledger and only *report* drift. Stored rows are
rewritten only when a repair is explicitly requested.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import select, union
from sqlmodel import col

from leave_ledger.config import get_settings
from leave_ledger.exceptions import AppError, ErrorKind
from leave_ledger.models.balance import LeaveBalance
from leave_ledger.models.base import now_utc
from leave_ledger.models.category import LeaveCategory
from leave_ledger.models.enums import AuditAction, AuditEntityType, LedgerEntryType
from leave_ledger.models.ledger import LeaveLedgerEntry
from leave_ledger.schemas.balance import (
    BalanceResponse,
    CategoryDiscrepancy,
    CategoryResponse,
    ReconciliationResponse,
)
from leave_ledger.services.audit import categories_to_audit_dict, write_audit_log
from leave_ledger.services.balance import (
    build_category_response,
    build_ledger_entry_response,
    get_balance_header,
    get_or_create_balance_for_update,
    list_categories,
    list_ledger_entries,
    require_person,
)
from leave_ledger.services.transaction import with_transaction

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

DEFAULT_ENTITLEMENT_REASON = "Default entitlement"


@dataclass
class CategoryTotals:
    """Granted and used days for one category, folded from the ledger."""

    category_id: uuid.UUID
    name: str
    granted: int = 0
    used: int = 0

    @property
    def remaining(self) -> int:
        return self.granted - self.used


@dataclass
class SweepResult:
    """Summary of a reconciliation sweep across all persons."""

    processed: int = 0
    drifted: int = 0
    repaired: int = 0
    errors: int = 0


# ---------------------------------------------------------------------------
# Pure computation
# ---------------------------------------------------------------------------


def compute_category_totals(entries: Iterable[LeaveLedgerEntry]) -> dict[uuid.UUID, CategoryTotals]:
    """Fold ledger entries into per-category granted/used totals."""
    totals: dict[uuid.UUID, CategoryTotals] = {}
    for entry in entries:
        bucket = totals.get(entry.category_id)
        if bucket is None:
            bucket = CategoryTotals(category_id=entry.category_id, name=entry.category_name)
            totals[entry.category_id] = bucket
        if entry.entry_type == LedgerEntryType.GRANTED.value:
            bucket.granted += entry.days
        elif entry.entry_type == LedgerEntryType.USED.value:
            bucket.used += entry.days
    return totals


def _match_totals(
    categories: list[LeaveCategory],
    totals: dict[uuid.UUID, CategoryTotals],
) -> tuple[dict[uuid.UUID, CategoryTotals], list[CategoryTotals]]:
    """Pair ledger totals with stored categories.

    Ledger buckets are matched by category id first, then by name for ids the
    store does not know. Returns the expected totals per stored category and
    the buckets that have no stored counterpart at all.
    """
    pending = dict(totals)
    by_category: dict[uuid.UUID, CategoryTotals] = {}
    for category in categories:
        expected = CategoryTotals(category_id=category.id, name=category.name)
        bucket = pending.pop(category.id, None)
        if bucket is not None:
            expected.granted += bucket.granted
            expected.used += bucket.used
        by_category[category.id] = expected

    by_name = {c.name: c.id for c in categories}
    missing: list[CategoryTotals] = []
    for bucket in pending.values():
        owner = by_name.get(bucket.name)
        if owner is None:
            missing.append(bucket)
        else:
            by_category[owner].granted += bucket.granted
            by_category[owner].used += bucket.used
    return by_category, missing


def find_discrepancies(
    categories: list[LeaveCategory],
    totals: dict[uuid.UUID, CategoryTotals],
) -> list[CategoryDiscrepancy]:
    """Compare stored categories against ledger totals."""
    expected_by_category, missing = _match_totals(categories, totals)

    discrepancies: list[CategoryDiscrepancy] = []
    for category in categories:
        expected = expected_by_category[category.id]
        if category.total_days != expected.granted or category.remaining_days != expected.remaining:
            discrepancies.append(
                CategoryDiscrepancy(
                    category_id=category.id,
                    category_name=category.name,
                    stored_total_days=category.total_days,
                    stored_remaining_days=category.remaining_days,
                    expected_total_days=expected.granted,
                    expected_remaining_days=expected.remaining,
                )
            )
    for bucket in missing:
        discrepancies.append(
            CategoryDiscrepancy(
                category_id=bucket.category_id,
                category_name=bucket.name,
                missing=True,
                stored_total_days=None,
                stored_remaining_days=None,
                expected_total_days=bucket.granted,
                expected_remaining_days=bucket.remaining,
            )
        )
    return discrepancies


def derive_categories(
    categories: list[LeaveCategory],
    totals: dict[uuid.UUID, CategoryTotals],
) -> list[CategoryResponse]:
    """Category balances as implied by the ledger, keeping stored metadata where present."""
    expected_by_category, missing = _match_totals(categories, totals)
    derived = [
        CategoryResponse(
            id=category.id,
            name=category.name,
            total_days=expected_by_category[category.id].granted,
            remaining_days=expected_by_category[category.id].remaining,
            is_default=category.is_default,
            created_at=category.created_at,
            updated_at=category.updated_at,
        )
        for category in categories
    ]
    derived.extend(
        CategoryResponse(
            id=bucket.category_id,
            name=bucket.name,
            total_days=bucket.granted,
            remaining_days=bucket.remaining,
            is_default=False,
        )
        for bucket in missing
    )
    return derived


# ---------------------------------------------------------------------------
# Seeding and repair
# ---------------------------------------------------------------------------


async def _seed_default_categories(tx: AsyncSession, person_id: uuid.UUID, effective_date: date) -> None:
    settings = get_settings()
    balance = LeaveBalance(person_id=person_id)
    tx.add(balance)
    await tx.flush()

    baseline = LeaveCategory(
        person_id=person_id,
        name=settings.default_category_name,
        total_days=settings.default_entitlement_days,
        remaining_days=settings.default_entitlement_days,
        is_default=True,
    )
    seeded = [baseline]
    seeded.extend(
        LeaveCategory(person_id=person_id, name=name, is_default=True)
        for name in settings.default_placeholder_categories
        if name != settings.default_category_name
    )
    tx.add_all(seeded)

    if settings.default_entitlement_days > 0:
        tx.add(
            LeaveLedgerEntry(
                person_id=person_id,
                entry_type=LedgerEntryType.GRANTED.value,
                category_id=baseline.id,
                category_name=baseline.name,
                days=settings.default_entitlement_days,
                effective_date=effective_date,
                reason=DEFAULT_ENTITLEMENT_REASON,
            )
        )
    await tx.flush()

    await write_audit_log(
        tx,
        actor_id=None,
        entity_type=AuditEntityType.BALANCE,
        entity_id=person_id,
        action=AuditAction.SEED,
        after_json=categories_to_audit_dict(seeded),
    )


async def _repair_categories(
    tx: AsyncSession,
    person_id: uuid.UUID,
    actor_id: uuid.UUID | None,
) -> list[LeaveCategory]:
    """Rewrite stored categories to match the ledger. Caller owns the transaction."""
    balance = await get_or_create_balance_for_update(tx, person_id)
    categories = await list_categories(tx, person_id)
    totals = compute_category_totals(await list_ledger_entries(tx, person_id))
    expected_by_category, missing = _match_totals(categories, totals)

    for bucket in [*expected_by_category.values(), *missing]:
        if bucket.remaining < 0:
            raise AppError(
                f"Ledger for category {bucket.name} implies a negative balance "
                f"(granted {bucket.granted}, used {bucket.used}); manual review required",
                kind=ErrorKind.INTERNAL,
                context={"category_id": str(bucket.category_id), "granted": bucket.granted, "used": bucket.used},
            )

    before = categories_to_audit_dict(categories)
    now = now_utc()
    for category in categories:
        expected = expected_by_category[category.id]
        if category.total_days != expected.granted or category.remaining_days != expected.remaining:
            category.total_days = expected.granted
            category.remaining_days = expected.remaining
            category.updated_at = now
    for bucket in missing:
        restored = LeaveCategory(
            id=bucket.category_id,
            person_id=person_id,
            name=bucket.name,
            total_days=bucket.granted,
            remaining_days=bucket.remaining,
            is_default=False,
        )
        tx.add(restored)
        categories.append(restored)
    balance.updated_at = now
    await tx.flush()

    await write_audit_log(
        tx,
        actor_id=actor_id,
        entity_type=AuditEntityType.BALANCE,
        entity_id=person_id,
        action=AuditAction.REPAIR,
        before_json=before,
        after_json=categories_to_audit_dict(categories),
    )
    return categories


async def ensure_balance(session: AsyncSession, person_id: uuid.UUID) -> bool:
    """Make sure a person has a balance document. Returns True if one was created.

    A person without any ledger history gets the default categories and a
    matching granted entry for the baseline entitlement. A person whose ledger
    exists but whose balance document is missing is rebuilt from the ledger.
    Raises not-found for a person unknown to the directory.
    """
    if await get_balance_header(session, person_id) is not None:
        return False

    person = await require_person(person_id)
    effective_date = person.enlistment_date or date.today()

    async def _create(tx: AsyncSession) -> bool:
        if await get_balance_header(tx, person_id, for_update=True) is not None:
            return False
        if await list_ledger_entries(tx, person_id):
            logger.warning("Balance document missing for person=%s; rebuilding from ledger", person_id)
            await _repair_categories(tx, person_id, actor_id=None)
        else:
            await _seed_default_categories(tx, person_id, effective_date)
        return True

    created = await with_transaction(session, _create, label="ensure_balance")
    if created:
        logger.info("Created balance document for person=%s", person_id)
    return created


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def reconcile_person(
    session: AsyncSession,
    person_id: uuid.UUID,
    *,
    repair: bool = False,
    actor_id: uuid.UUID | None = None,
) -> ReconciliationResponse:
    """Recompute a person's categories from the ledger and report (or repair) drift."""
    balance = await get_balance_header(session, person_id)
    categories = await list_categories(session, person_id)
    entries = await list_ledger_entries(session, person_id)
    if balance is None and not categories and not entries:
        raise AppError(f"No leave balance or history for person {person_id}", kind=ErrorKind.NOT_FOUND)

    totals = compute_category_totals(entries)
    discrepancies = find_discrepancies(categories, totals)
    if discrepancies:
        logger.warning(
            "Balance drift for person=%s: %s",
            person_id,
            ", ".join(
                f"{d.category_name} stored={d.stored_remaining_days}/{d.stored_total_days} "
                f"expected={d.expected_remaining_days}/{d.expected_total_days}"
                for d in discrepancies
            ),
        )

    repaired = False
    if repair and (discrepancies or balance is None):

        async def _repair(tx: AsyncSession) -> list[LeaveCategory]:
            return await _repair_categories(tx, person_id, actor_id)

        categories = await with_transaction(session, _repair, label="reconcile_repair")
        repaired = True
        # Imported here: the cache module depends on this one.
        from leave_ledger.services.cache import get_balance_reader

        get_balance_reader().invalidate(person_id)
        logger.info("Repaired balance for person=%s (%d discrepancies)", person_id, len(discrepancies))

    return ReconciliationResponse(
        person_id=person_id,
        balance_exists=balance is not None or repaired,
        discrepancies=discrepancies,
        repaired=repaired,
        categories=[build_category_response(c) for c in categories],
    )


async def get_full_balance(
    session: AsyncSession,
    person_id: uuid.UUID,
    *,
    recent_limit: int | None = None,
) -> BalanceResponse:
    """Uncached read: categories recomputed from the ledger plus the recent ledger slice."""
    settings = get_settings()
    limit = recent_limit if recent_limit is not None else settings.recent_ledger_limit

    if settings.seed_defaults_on_read:
        await ensure_balance(session, person_id)

    balance = await get_balance_header(session, person_id)
    categories = await list_categories(session, person_id)
    entries = await list_ledger_entries(session, person_id)
    if balance is None and not entries:
        raise AppError(f"No leave balance for person {person_id}", kind=ErrorKind.NOT_FOUND)

    totals = compute_category_totals(entries)
    discrepancies = find_discrepancies(categories, totals)
    if discrepancies:
        logger.warning("Balance drift reported on read for person=%s (%d categories)", person_id, len(discrepancies))

    recent = sorted(entries, key=lambda e: (e.effective_date, e.created_at), reverse=True)[:limit]
    return BalanceResponse(
        person_id=person_id,
        categories=derive_categories(categories, totals),
        recent_ledger=[build_ledger_entry_response(e) for e in recent],
        discrepancies=discrepancies,
        computed_at=now_utc(),
    )


async def reconcile_all(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    repair: bool = False,
) -> SweepResult:
    """Reconcile every person that has a balance document or ledger history."""
    async with session_factory() as session:
        person_ids_query = union(
            select(col(LeaveBalance.person_id)),
            select(col(LeaveLedgerEntry.person_id)),
        )
        result = await session.execute(person_ids_query)
        person_ids = sorted({row[0] for row in result.all()}, key=str)

    sweep = SweepResult()
    for person_id in person_ids:
        sweep.processed += 1
        try:
            async with session_factory() as session:
                report = await reconcile_person(session, person_id, repair=repair)
        except Exception:
            logger.exception("Reconciliation failed for person=%s", person_id)
            sweep.errors += 1
            continue
        if report.discrepancies:
            sweep.drifted += 1
        if report.repaired:
            sweep.repaired += 1
    return sweep
