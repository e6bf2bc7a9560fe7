# ruff: noqa: TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from leave_ledger.api.deps import AdminDep, AuthDep, validate_person_scope
from leave_ledger.exceptions import AppError, ErrorKind
from leave_ledger.schemas.person import PersonListResponse, PersonResponse, UpsertPersonRequest
from leave_ledger.services.person import InMemoryPersonDirectory, PersonInfo, get_person_directory

persons_router = APIRouter(
    prefix="/persons",
    tags=["persons"],
)


def _to_response(person: PersonInfo) -> PersonResponse:
    return PersonResponse.model_validate(person.model_dump())


@persons_router.put("/{person_id}", response_model=PersonResponse)
async def upsert_person(
    person_id: uuid.UUID,
    payload: UpsertPersonRequest,
    auth: AdminDep,
) -> PersonResponse:
    """Create or update a person in the in-memory directory (admin only)."""
    directory = get_person_directory()
    if not isinstance(directory, InMemoryPersonDirectory):
        raise AppError("The configured person directory is read-only", kind=ErrorKind.PERMISSION_DENIED)
    person = PersonInfo(id=person_id, **payload.model_dump())
    directory.seed(person)
    return _to_response(person)


@persons_router.get(
    "/{person_id}",
    response_model=PersonResponse,
    dependencies=[Depends(validate_person_scope)],
)
async def get_person(person_id: uuid.UUID) -> PersonResponse:
    """Get a person from the directory."""
    person = await get_person_directory().get_person(person_id)
    if person is None:
        raise AppError(f"Person {person_id} not found", kind=ErrorKind.NOT_FOUND)
    return _to_response(person)


@persons_router.get("", response_model=PersonListResponse)
async def list_persons(auth: AdminDep) -> PersonListResponse:
    """List all persons known to the directory (admin only)."""
    items = [_to_response(p) for p in await get_person_directory().list_persons()]
    return PersonListResponse(items=items, total=len(items))
