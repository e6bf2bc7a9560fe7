# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from leave_ledger.api.deps import AdminDep, validate_person_scope
from leave_ledger.db import SessionDep
from leave_ledger.models.enums import LedgerEntryType
from leave_ledger.schemas.balance import BalanceResponse, LedgerListResponse, ReconciliationResponse
from leave_ledger.services import balance as balance_service
from leave_ledger.services import reconcile as reconcile_service
from leave_ledger.services.cache import get_balance_reader

person_balance_router = APIRouter(
    prefix="/persons/{person_id}/balance",
    tags=["balances"],
    dependencies=[Depends(validate_person_scope)],
)

person_ledger_router = APIRouter(
    prefix="/persons/{person_id}/ledger",
    tags=["balances"],
    dependencies=[Depends(validate_person_scope)],
)


@person_balance_router.get("", response_model=BalanceResponse)
async def get_person_balance(
    person_id: uuid.UUID,
    session: SessionDep,
    refresh: bool = Query(default=False),
) -> BalanceResponse:
    """Get a person's categories as implied by the ledger, plus recent history."""
    return await get_balance_reader().read(session, person_id, force_reload=refresh)


@person_balance_router.post("/reconcile", response_model=ReconciliationResponse)
async def reconcile_person_balance(
    person_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    repair: bool = Query(default=False),
) -> ReconciliationResponse:
    """Compare stored categories with the ledger; rewrite them only if ``repair`` is set (admin only)."""
    return await reconcile_service.reconcile_person(session, person_id, repair=repair, actor_id=auth.user_id)


@person_ledger_router.get("", response_model=LedgerListResponse)
async def get_person_ledger(
    person_id: uuid.UUID,
    session: SessionDep,
    entry_type: LedgerEntryType | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LedgerListResponse:
    """Get paginated ledger entries for a person, newest first."""
    return await balance_service.get_person_ledger(session, person_id, entry_type, offset, limit)
