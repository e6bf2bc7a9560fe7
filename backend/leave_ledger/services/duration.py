from __future__ import annotations

from typing import TYPE_CHECKING

from leave_ledger.exceptions import AppError, ErrorKind

if TYPE_CHECKING:
    from datetime import date


def calculate_duration_days(start_date: date, end_date: date) -> int:
    """Number of calendar days covered by a leave, both ends inclusive."""
    if end_date < start_date:
        raise AppError("end_date must not be before start_date", kind=ErrorKind.INVALID_ARGUMENT)
    return (end_date - start_date).days + 1


def ensure_allocations_match(allocated_days: int, duration_days: int) -> None:
    """Raise invalid-argument unless the allocations cover exactly the leave duration."""
    if allocated_days != duration_days:
        raise AppError(
            f"Allocated days ({allocated_days}) must equal the leave duration ({duration_days})",
            kind=ErrorKind.INVALID_ARGUMENT,
            context={"allocated_days": allocated_days, "duration_days": duration_days},
        )
