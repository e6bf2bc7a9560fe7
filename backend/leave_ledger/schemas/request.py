# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from leave_ledger.models.enums import RequestStatus

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class AllocationInput(BaseModel):
    """Days requested from one leave category."""

    category_id: uuid.UUID
    days_requested: int = Field(gt=0)


class UsageAllocation(BaseModel):
    """Days to deduct from one leave category at approval time."""

    category_id: uuid.UUID
    days_used: int = Field(gt=0)


def _ensure_unique_categories(category_ids: list[uuid.UUID]) -> None:
    if len(set(category_ids)) != len(category_ids):
        msg = "each category may appear only once in allocations"
        raise ValueError(msg)


class SubmitRequestPayload(BaseModel):
    """Request body for submitting a new leave request."""

    person_id: uuid.UUID | None = Field(
        default=None,
        description="Person the request is for; defaults to the caller. Only admins may set another person.",
    )
    allocations: list[AllocationInput] = Field(min_length=1)
    start_date: date
    end_date: date
    destination: str = Field(min_length=1, max_length=255)
    contact: str = Field(min_length=1, max_length=100)
    reason: str | None = Field(default=None, max_length=1000)
    idempotency_key: str | None = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def _validate(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must not be before start_date"
            raise ValueError(msg)
        _ensure_unique_categories([a.category_id for a in self.allocations])
        return self

    @property
    def requested_days(self) -> int:
        return sum(a.days_requested for a in self.allocations)


class UseLeavePayload(BaseModel):
    """Request body for approving a request and deducting its days.

    When ``allocations`` is omitted the request's own allocations are used.
    """

    person_id: uuid.UUID
    allocations: list[UsageAllocation] | None = None
    note: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _validate(self) -> Self:
        if self.allocations is not None:
            if not self.allocations:
                msg = "allocations must not be empty"
                raise ValueError(msg)
            _ensure_unique_categories([a.category_id for a in self.allocations])
        return self


class DecisionPayload(BaseModel):
    """Request body for reject actions."""

    note: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class RequestResponse(BaseModel):
    """Response schema for a single leave request."""

    id: uuid.UUID
    person_id: uuid.UUID
    allocations: list[AllocationInput]
    start_date: date
    end_date: date
    duration_days: int
    status: RequestStatus
    destination: str
    contact: str
    reason: str | None
    processed_at: datetime | None
    processed_by: uuid.UUID | None
    decision_note: str | None
    usage: list[UsageAllocation] | None
    idempotency_key: str | None
    created_at: datetime


class SubmitRequestResponse(BaseModel):
    """Result of a leave request submission."""

    success: bool
    request_id: uuid.UUID
    request: RequestResponse


class UseLeaveResponse(BaseModel):
    """Result of approving a request and deducting its days."""

    success: bool
    message: str
    request: RequestResponse


class RequestListResponse(BaseModel):
    """Paginated list of leave requests."""

    items: list[RequestResponse]
    total: int
