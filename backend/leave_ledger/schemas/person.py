# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from typing import Literal

from pydantic import BaseModel, Field


class UpsertPersonRequest(BaseModel):
    """Request body for upserting a person in the directory stub."""

    name: str = Field(min_length=1, max_length=200)
    rank: str | None = Field(default=None, max_length=100)
    unit: str | None = Field(default=None, max_length=100)
    person_type: Literal["soldier", "officer"] = "soldier"
    enlistment_date: date | None = None


class PersonResponse(BaseModel):
    """A person as known to the directory."""

    id: uuid.UUID
    name: str
    rank: str | None
    unit: str | None
    person_type: str
    enlistment_date: date | None


class PersonListResponse(BaseModel):
    """List of persons."""

    items: list[PersonResponse]
    total: int
