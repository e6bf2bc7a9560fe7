# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class PersonInfo(BaseModel):
    """Person metadata from the personnel directory."""

    id: uuid.UUID
    name: str
    rank: str | None = None
    unit: str | None = None
    person_type: str = "soldier"  # "soldier" or "officer"
    enlistment_date: date | None = None  # effective date of the default entitlement


@runtime_checkable
class PersonDirectory(Protocol):
    """Interface for the personnel directory."""

    async def get_person(self, person_id: uuid.UUID) -> PersonInfo | None:
        """Fetch person metadata. Returns None if not found."""
        ...

    async def list_persons(self) -> list[PersonInfo]:
        """List all known persons."""
        ...


class InMemoryPersonDirectory:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._persons: dict[uuid.UUID, PersonInfo] = {}

    def seed(self, person: PersonInfo) -> None:
        """Seed a person for testing."""
        self._persons[person.id] = person

    async def get_person(self, person_id: uuid.UUID) -> PersonInfo | None:
        """Fetch person metadata. Returns None if not found."""
        return self._persons.get(person_id)

    async def list_persons(self) -> list[PersonInfo]:
        """List all known persons."""
        return list(self._persons.values())


_person_directory: PersonDirectory = InMemoryPersonDirectory()


def get_person_directory() -> PersonDirectory:
    """FastAPI dependency for the personnel directory."""
    return _person_directory


def set_person_directory(directory: PersonDirectory) -> None:
    """Override the directory (for testing or production wiring)."""
    global _person_directory
    _person_directory = directory
