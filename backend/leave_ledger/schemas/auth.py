# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

from leave_ledger.config import get_settings


class AuthContext(BaseModel):
    """Caller identity extracted from request headers."""

    user_id: uuid.UUID
    role: str = "member"

    @property
    def is_admin(self) -> bool:
        return self.role in get_settings().admin_roles
