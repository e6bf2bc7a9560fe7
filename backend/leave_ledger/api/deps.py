# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header, Path

from leave_ledger.exceptions import AppError, ErrorKind
from leave_ledger.schemas.auth import AuthContext


async def get_auth_context(
    x_user_id: str | None = Header(default=None),
    x_role: str = Header(default="member"),
) -> AuthContext:
    """Extract dev auth context from request headers."""
    if not x_user_id:
        raise AppError("Authentication required", kind=ErrorKind.UNAUTHENTICATED)
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        raise AppError("Malformed X-User-Id header", kind=ErrorKind.UNAUTHENTICATED) from None
    return AuthContext(user_id=user_id, role=x_role)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require an administrative role for the request."""
    if not auth.is_admin:
        raise AppError("Admin access required", kind=ErrorKind.PERMISSION_DENIED)
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]


async def validate_person_scope(
    person_id: uuid.UUID = Path(),
    auth: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """Members may only address their own person; admins may address anyone."""
    if person_id != auth.user_id and not auth.is_admin:
        raise AppError("Not authorized to access another person's leave", kind=ErrorKind.PERMISSION_DENIED)
    return auth
