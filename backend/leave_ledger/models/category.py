# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase


class LeaveCategory(UUIDBase, UpdatedAtMixin, TimestampMixin, table=True):
    """A named leave entitlement bucket (annual, reward, ...) owned by one person's balance."""

    __tablename__ = "leave_category"
    __table_args__ = (
        sa.UniqueConstraint("person_id", "name", name="uq_category_person_name"),
        sa.CheckConstraint("total_days >= 0", name="ck_category_total_non_negative"),
        sa.CheckConstraint(
            "remaining_days >= 0 AND remaining_days <= total_days",
            name="ck_category_remaining_in_range",
        ),
    )

    person_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("leave_balance.person_id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    name: str = Field(max_length=100)
    total_days: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    remaining_days: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    is_default: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})
