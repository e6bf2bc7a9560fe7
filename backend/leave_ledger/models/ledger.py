# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import UUIDBase, now_utc


class LeaveLedgerEntry(UUIDBase, table=True):
    """Append-only ledger entry that records every grant and usage."""

    __tablename__ = "leave_ledger_entry"
    __table_args__ = (
        sa.Index("ix_ledger_person_date", "person_id", "effective_date"),
        sa.UniqueConstraint("request_id", "category_id", "entry_type", name="uq_ledger_request_category"),
        sa.CheckConstraint("days > 0", name="ck_ledger_days_positive"),
    )

    person_id: uuid.UUID = Field(index=True)
    entry_type: str = Field(max_length=20)
    category_id: uuid.UUID = Field(index=True)
    category_name: str = Field(max_length=100)
    days: int
    effective_date: date
    reason: str | None = None
    request_id: uuid.UUID | None = Field(default=None, index=True)
    created_by: uuid.UUID | None = None
    created_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
