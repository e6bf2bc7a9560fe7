"""Tests for ledger-based reconciliation: default seeding, drift detection on read,
explicit repair, rebuilding lost balance documents, and the sweep over all persons.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import delete, select, update
from sqlmodel import col

from leave_ledger.config import get_settings
from leave_ledger.exceptions import AppError, ErrorKind
from leave_ledger.models.audit import AuditLog
from leave_ledger.models.balance import LeaveBalance
from leave_ledger.models.category import LeaveCategory
from leave_ledger.models.enums import AuditAction, LedgerEntryType
from leave_ledger.models.ledger import LeaveLedgerEntry
from leave_ledger.schemas.balance import GrantLeavePayload
from leave_ledger.services.grant import grant_leave
from leave_ledger.services.reconcile import (
    compute_category_totals,
    ensure_balance,
    get_full_balance,
    reconcile_all,
    reconcile_person,
)
from support import (
    ENLISTMENT_DATE,
    OFFICER_AUTH,
    OFFICER_HEADERS,
    OFFICER_ID,
    OTHER_SOLDIER_ID,
    SOLDIER_HEADERS,
    SOLDIER_ID,
    UNKNOWN_PERSON_ID,
    balance_url,
    category_by_name,
)

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


def _entry(category_id: uuid.UUID, entry_type: LedgerEntryType, days: int, name: str = "annual") -> LeaveLedgerEntry:
    return LeaveLedgerEntry(
        person_id=SOLDIER_ID,
        entry_type=entry_type.value,
        category_id=category_id,
        category_name=name,
        days=days,
        effective_date=date(2024, 1, 1),
    )


async def _corrupt_annual(session: AsyncSession, person_id: uuid.UUID, remaining: int) -> None:
    """Overwrite the stored 'annual' row behind the ledger's back."""
    await session.execute(
        update(LeaveCategory)
        .where(col(LeaveCategory.person_id) == person_id, col(LeaveCategory.name) == "annual")
        .values(remaining_days=remaining)
    )
    await session.commit()


async def _stored_annual(session: AsyncSession, person_id: uuid.UUID) -> LeaveCategory:
    result = await session.execute(
        select(LeaveCategory)
        .where(col(LeaveCategory.person_id) == person_id, col(LeaveCategory.name) == "annual")
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Pure fold
# ---------------------------------------------------------------------------


def test_compute_category_totals_folds_by_category() -> None:
    annual, reward = uuid.uuid4(), uuid.uuid4()
    totals = compute_category_totals(
        [
            _entry(annual, LedgerEntryType.GRANTED, 24),
            _entry(annual, LedgerEntryType.USED, 9),
            _entry(reward, LedgerEntryType.GRANTED, 2, name="reward"),
            _entry(annual, LedgerEntryType.GRANTED, 1),
        ]
    )
    assert totals[annual].granted == 25
    assert totals[annual].used == 9
    assert totals[annual].remaining == 16
    assert totals[reward].name == "reward"
    assert totals[reward].remaining == 2


def test_compute_category_totals_empty() -> None:
    assert compute_category_totals([]) == {}


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------


async def test_ensure_balance_seeds_defaults(db_session: AsyncSession) -> None:
    assert await ensure_balance(db_session, SOLDIER_ID) is True
    assert await ensure_balance(db_session, SOLDIER_ID) is False

    result = await db_session.execute(select(LeaveCategory).where(col(LeaveCategory.person_id) == SOLDIER_ID))
    categories = {c.name: c for c in result.scalars().all()}
    assert set(categories) == {"annual", "reward", "medical"}
    assert categories["annual"].total_days == 24
    assert categories["annual"].remaining_days == 24
    assert categories["reward"].total_days == 0
    assert categories["medical"].remaining_days == 0

    entries = await db_session.execute(select(LeaveLedgerEntry).where(col(LeaveLedgerEntry.person_id) == SOLDIER_ID))
    (entry,) = entries.scalars().all()
    assert entry.entry_type == LedgerEntryType.GRANTED
    assert entry.days == 24
    assert entry.effective_date == ENLISTMENT_DATE
    assert entry.reason == "Default entitlement"

    audits = await db_session.execute(
        select(AuditLog).where(col(AuditLog.entity_id) == SOLDIER_ID, col(AuditLog.action) == AuditAction.SEED.value)
    )
    assert len(audits.scalars().all()) == 1


async def test_seeded_entitlement_without_enlistment_date_is_dated_today(db_session: AsyncSession) -> None:
    await ensure_balance(db_session, OTHER_SOLDIER_ID)

    entries = await db_session.execute(
        select(LeaveLedgerEntry).where(col(LeaveLedgerEntry.person_id) == OTHER_SOLDIER_ID)
    )
    assert entries.scalar_one().effective_date == date.today()


async def test_read_does_not_seed_when_disabled(db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(get_settings(), "seed_defaults_on_read", False)

    with pytest.raises(AppError) as exc_info:
        await get_full_balance(db_session, SOLDIER_ID)
    assert exc_info.value.kind == ErrorKind.NOT_FOUND


async def test_ensure_balance_rebuilds_lost_document(db_session: AsyncSession) -> None:
    """History without a balance document is rebuilt from the ledger, not re-seeded."""
    annual_id = uuid.uuid4()
    db_session.add_all(
        [
            _entry(annual_id, LedgerEntryType.GRANTED, 30),
            _entry(annual_id, LedgerEntryType.USED, 4),
        ]
    )
    await db_session.commit()

    assert await ensure_balance(db_session, SOLDIER_ID) is True

    annual = await _stored_annual(db_session, SOLDIER_ID)
    assert annual.id == annual_id
    assert annual.total_days == 30
    assert annual.remaining_days == 26

    entries = await db_session.execute(select(LeaveLedgerEntry).where(col(LeaveLedgerEntry.person_id) == SOLDIER_ID))
    assert len(entries.scalars().all()) == 2


# ---------------------------------------------------------------------------
# Drift detection and repair
# ---------------------------------------------------------------------------


async def test_read_reports_drift_without_repairing(db_session: AsyncSession) -> None:
    await ensure_balance(db_session, SOLDIER_ID)
    await _corrupt_annual(db_session, SOLDIER_ID, remaining=3)

    balance = await get_full_balance(db_session, SOLDIER_ID)
    annual = next(c for c in balance.categories if c.name == "annual")
    assert annual.remaining_days == 24

    (discrepancy,) = balance.discrepancies
    assert discrepancy.category_name == "annual"
    assert discrepancy.stored_remaining_days == 3
    assert discrepancy.expected_remaining_days == 24

    stored = await _stored_annual(db_session, SOLDIER_ID)
    assert stored.remaining_days == 3


async def test_reconcile_in_sync(db_session: AsyncSession) -> None:
    await ensure_balance(db_session, SOLDIER_ID)

    report = await reconcile_person(db_session, SOLDIER_ID)
    assert report.in_sync
    assert report.repaired is False
    assert report.balance_exists is True


async def test_reconcile_repairs_on_request(db_session: AsyncSession) -> None:
    await ensure_balance(db_session, SOLDIER_ID)
    await _corrupt_annual(db_session, SOLDIER_ID, remaining=3)

    report = await reconcile_person(db_session, SOLDIER_ID)
    assert len(report.discrepancies) == 1
    assert report.repaired is False
    assert (await _stored_annual(db_session, SOLDIER_ID)).remaining_days == 3

    repaired = await reconcile_person(db_session, SOLDIER_ID, repair=True, actor_id=OFFICER_ID)
    assert repaired.repaired is True
    assert (await _stored_annual(db_session, SOLDIER_ID)).remaining_days == 24
    assert (await reconcile_person(db_session, SOLDIER_ID)).in_sync

    audits = await db_session.execute(
        select(AuditLog).where(col(AuditLog.entity_id) == SOLDIER_ID, col(AuditLog.action) == AuditAction.REPAIR.value)
    )
    (audit,) = audits.scalars().all()
    assert audit.actor_id == OFFICER_ID


async def test_reconcile_restores_missing_category(db_session: AsyncSession) -> None:
    await grant_leave(db_session, OFFICER_AUTH, SOLDIER_ID, GrantLeavePayload(category_name="petition", days=2))
    await db_session.execute(delete(LeaveCategory).where(col(LeaveCategory.name) == "petition"))
    await db_session.commit()

    report = await reconcile_person(db_session, SOLDIER_ID, repair=True)
    assert report.discrepancies[0].missing is True
    petition = next(c for c in report.categories if c.name == "petition")
    assert petition.total_days == 2
    assert petition.remaining_days == 2


async def test_reconcile_refuses_negative_ledger(db_session: AsyncSession) -> None:
    await ensure_balance(db_session, SOLDIER_ID)
    annual = await _stored_annual(db_session, SOLDIER_ID)
    db_session.add(_entry(annual.id, LedgerEntryType.USED, 30))
    await db_session.commit()

    with pytest.raises(AppError) as exc_info:
        await reconcile_person(db_session, SOLDIER_ID, repair=True)
    assert exc_info.value.kind == ErrorKind.INTERNAL
    assert (await _stored_annual(db_session, SOLDIER_ID)).remaining_days == 24


async def test_reconcile_unknown_person(db_session: AsyncSession) -> None:
    with pytest.raises(AppError) as exc_info:
        await reconcile_person(db_session, UNKNOWN_PERSON_ID)
    assert exc_info.value.kind == ErrorKind.NOT_FOUND


# ---------------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------------


async def test_reconcile_endpoint(async_client: AsyncClient, db_session: AsyncSession) -> None:
    await ensure_balance(db_session, SOLDIER_ID)
    await _corrupt_annual(db_session, SOLDIER_ID, remaining=1)
    url = f"{balance_url(SOLDIER_ID)}/reconcile"

    report = await async_client.post(url, headers=OFFICER_HEADERS)
    assert report.status_code == 200
    assert report.json()["repaired"] is False
    assert len(report.json()["discrepancies"]) == 1

    repaired = await async_client.post(url, params={"repair": "true"}, headers=OFFICER_HEADERS)
    assert repaired.json()["repaired"] is True
    assert category_by_name(repaired.json(), "annual")["remaining_days"] == 24


async def test_reconcile_endpoint_requires_admin(async_client: AsyncClient) -> None:
    response = await async_client.post(f"{balance_url(SOLDIER_ID)}/reconcile", headers=SOLDIER_HEADERS)
    assert response.status_code == 403


async def test_balance_endpoint_scoped_to_self(async_client: AsyncClient) -> None:
    own = await async_client.get(balance_url(SOLDIER_ID), headers=SOLDIER_HEADERS)
    other = await async_client.get(balance_url(OTHER_SOLDIER_ID), headers=SOLDIER_HEADERS)
    assert own.status_code == 200
    assert other.status_code == 403


async def test_balance_endpoint_unknown_person(async_client: AsyncClient) -> None:
    response = await async_client.get(balance_url(UNKNOWN_PERSON_ID), headers=OFFICER_HEADERS)
    assert response.status_code == 404
    assert response.json()["kind"] == "not-found"


async def test_ensure_balance_unknown_person_writes_nothing(db_session: AsyncSession) -> None:
    with pytest.raises(AppError) as exc_info:
        await ensure_balance(db_session, UNKNOWN_PERSON_ID)
    assert exc_info.value.kind == ErrorKind.NOT_FOUND

    headers = await db_session.execute(
        select(LeaveBalance).where(col(LeaveBalance.person_id) == UNKNOWN_PERSON_ID)
    )
    categories = await db_session.execute(
        select(LeaveCategory).where(col(LeaveCategory.person_id) == UNKNOWN_PERSON_ID)
    )
    assert headers.scalars().all() == []
    assert categories.scalars().all() == []


async def test_ledger_endpoint(async_client: AsyncClient) -> None:
    await async_client.get(balance_url(SOLDIER_ID), headers=SOLDIER_HEADERS)
    await async_client.post(
        f"/persons/{SOLDIER_ID}/grants", json={"category_name": "reward", "days": 2}, headers=OFFICER_HEADERS
    )

    response = await async_client.get(f"/persons/{SOLDIER_ID}/ledger", headers=SOLDIER_HEADERS)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["items"][0]["category_name"] == "reward"

    used_only = await async_client.get(
        f"/persons/{SOLDIER_ID}/ledger", params={"entry_type": "used"}, headers=SOLDIER_HEADERS
    )
    assert used_only.json()["total"] == 0


# ---------------------------------------------------------------------------
# Sweep
# ---------------------------------------------------------------------------


async def test_reconcile_all(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    await ensure_balance(db_session, SOLDIER_ID)
    await ensure_balance(db_session, OTHER_SOLDIER_ID)
    await _corrupt_annual(db_session, OTHER_SOLDIER_ID, remaining=0)

    dry = await reconcile_all(session_factory)
    assert dry.processed == 2
    assert dry.drifted == 1
    assert dry.repaired == 0
    assert dry.errors == 0

    fixed = await reconcile_all(session_factory, repair=True)
    assert fixed.repaired == 1
    assert (await _stored_annual(db_session, OTHER_SOLDIER_ID)).remaining_days == 24

    clean = await reconcile_all(session_factory)
    assert clean.drifted == 0


async def test_reconcile_all_counts_failures(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    await ensure_balance(db_session, SOLDIER_ID)
    annual = await _stored_annual(db_session, SOLDIER_ID)
    db_session.add(_entry(annual.id, LedgerEntryType.USED, 40))
    await db_session.commit()

    result = await reconcile_all(session_factory, repair=True)
    assert result.processed == 1
    assert result.errors == 1
    assert result.repaired == 0


async def test_lost_balance_document_reappears_on_read(db_session: AsyncSession) -> None:
    await ensure_balance(db_session, SOLDIER_ID)
    await db_session.execute(delete(LeaveCategory).where(col(LeaveCategory.person_id) == SOLDIER_ID))
    await db_session.execute(delete(LeaveBalance).where(col(LeaveBalance.person_id) == SOLDIER_ID))
    await db_session.commit()

    balance = await get_full_balance(db_session, SOLDIER_ID)
    assert [c.name for c in balance.categories] == ["annual"]
    assert balance.categories[0].remaining_days == 24
    assert balance.discrepancies == []
