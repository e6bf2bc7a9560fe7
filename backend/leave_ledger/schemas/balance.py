# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from leave_ledger.models.enums import LedgerEntryType

# ---------------------------------------------------------------------------
# Category / balance schemas
# ---------------------------------------------------------------------------


class CategoryResponse(BaseModel):
    """A single leave category with its entitlement and remaining days."""

    id: uuid.UUID
    name: str
    total_days: int
    remaining_days: int
    is_default: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LedgerEntryResponse(BaseModel):
    """A single ledger entry."""

    id: uuid.UUID
    person_id: uuid.UUID
    entry_type: LedgerEntryType
    category_id: uuid.UUID
    category_name: str
    days: int
    effective_date: date
    reason: str | None
    request_id: uuid.UUID | None
    created_by: uuid.UUID | None
    created_at: datetime


class LedgerListResponse(BaseModel):
    """Paginated ledger entries, newest first."""

    items: list[LedgerEntryResponse]
    total: int


class CategoryDiscrepancy(BaseModel):
    """Difference between a stored category and what the ledger implies."""

    category_id: uuid.UUID
    category_name: str
    missing: bool = False
    stored_total_days: int | None
    stored_remaining_days: int | None
    expected_total_days: int
    expected_remaining_days: int


class ReconciliationResponse(BaseModel):
    """Result of recomputing a person's balance from the ledger."""

    person_id: uuid.UUID
    balance_exists: bool
    discrepancies: list[CategoryDiscrepancy]
    repaired: bool
    categories: list[CategoryResponse]

    @property
    def in_sync(self) -> bool:
        return not self.discrepancies


class BalanceResponse(BaseModel):
    """A person's balance as served to readers (possibly from the read cache)."""

    person_id: uuid.UUID
    categories: list[CategoryResponse]
    recent_ledger: list[LedgerEntryResponse]
    discrepancies: list[CategoryDiscrepancy]
    computed_at: datetime
    cached: bool = False


# ---------------------------------------------------------------------------
# Grant schemas
# ---------------------------------------------------------------------------


class GrantLeavePayload(BaseModel):
    """Request body for granting leave days to a person."""

    category_name: str = Field(min_length=1, max_length=100)
    days: int = Field(gt=0, description="Whole days to add to the category")
    reason: str | None = Field(default=None, max_length=1000)

    @field_validator("category_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "category_name must not be blank"
            raise ValueError(msg)
        return value


class GrantLeaveResponse(BaseModel):
    """Result of a grant."""

    success: bool
    message: str
    category: CategoryResponse
    ledger_entry_id: uuid.UUID
