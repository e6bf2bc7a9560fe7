# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UUIDBase
from leave_ledger.models.enums import RequestStatus

_request_version = sa.Column("version", sa.Integer, nullable=False, server_default="1")


class LeaveRequest(UUIDBase, TimestampMixin, table=True):
    """A person's leave request. Balance is only touched when it is approved."""

    __tablename__ = "leave_request"
    __table_args__ = (
        sa.Index("ix_request_person_status", "person_id", "status"),
        sa.UniqueConstraint("person_id", "idempotency_key", name="uq_request_idempotency"),
    )
    __mapper_args__ = {"version_id_col": _request_version}  # noqa: RUF012

    person_id: uuid.UUID = Field(index=True)
    allocations_json: list[dict[str, Any]] = Field(default_factory=list, sa_type=sa.JSON)
    start_date: date
    end_date: date
    duration_days: int
    status: str = Field(
        default=RequestStatus.PENDING, max_length=20, index=True, sa_column_kwargs={"server_default": "pending"}
    )
    destination: str = Field(max_length=255)
    contact: str = Field(max_length=100)
    reason: str | None = None
    processed_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    processed_by: uuid.UUID | None = None
    decision_note: str | None = None
    usage_json: list[dict[str, Any]] | None = Field(default=None, sa_type=sa.JSON)
    idempotency_key: str | None = Field(default=None, max_length=255)
    version: int = Field(default=1, sa_column=_request_version)
