# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UpdatedAtMixin

# Optimistic concurrency counter; every flush that touches the row checks and bumps it.
_balance_version = sa.Column("version", sa.Integer, nullable=False, server_default="1")


class LeaveBalance(UpdatedAtMixin, TimestampMixin, table=True):
    """Per-person balance document header. Categories hang off it by person_id."""

    __tablename__ = "leave_balance"
    __mapper_args__ = {"version_id_col": _balance_version}  # noqa: RUF012

    person_id: uuid.UUID = Field(primary_key=True, sa_type=sa.Uuid)
    version: int = Field(default=1, sa_column=_balance_version)
