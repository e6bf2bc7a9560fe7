"""Retrying unit-of-work wrapper for ledger mutations.

Every balance-changing operation runs its body through :func:`with_transaction`.
The body is re-executed from scratch when the store reports a write conflict,
so it must read everything it depends on inside the callback.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from leave_ledger.config import get_settings
from leave_ledger.exceptions import AppError, ErrorKind

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL serialization failure and deadlock.
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


def is_retryable_conflict(exc: BaseException) -> bool:
    """Return True when ``exc`` signals a concurrent write that a re-run can resolve."""
    if isinstance(exc, (StaleDataError, IntegrityError)):
        return True
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        if sqlstate in _RETRYABLE_SQLSTATES:
            return True
        return "database is locked" in str(orig)
    return False


async def with_transaction(
    session: AsyncSession,
    fn: Callable[[AsyncSession], Awaitable[T]],
    *,
    max_attempts: int | None = None,
    label: str = "transaction",
) -> T:
    """Run ``fn`` and commit, retrying on write conflicts.

    - ``AppError`` raised by ``fn`` rolls back and propagates unchanged.
    - Conflicts (stale version, duplicate insert, serialization failure) roll
      back and re-run ``fn`` up to ``max_attempts`` times.
    - Anything else, or running out of attempts, surfaces as an ``internal``
      ``AppError`` chained to the original exception.
    """
    settings = get_settings()
    attempts = max_attempts or settings.transaction_max_attempts

    for attempt in range(1, attempts + 1):
        try:
            result = await fn(session)
            await session.commit()
        except AppError:
            await session.rollback()
            raise
        except Exception as exc:
            await session.rollback()
            if not is_retryable_conflict(exc):
                logger.exception("%s failed with an unexpected error", label)
                raise AppError(f"{label} failed: {exc}", kind=ErrorKind.INTERNAL) from exc
            if attempt == attempts:
                logger.exception("%s gave up after %d conflicting attempts", label, attempts)
                raise AppError(
                    f"{label} could not commit after {attempts} attempts due to concurrent updates",
                    kind=ErrorKind.INTERNAL,
                ) from exc
            logger.warning("%s conflicted (attempt %d/%d): %s", label, attempt, attempts, exc)
            await asyncio.sleep(settings.transaction_retry_backoff_seconds * attempt)
        else:
            return result

    msg = "max_attempts must be at least 1"
    raise ValueError(msg)
