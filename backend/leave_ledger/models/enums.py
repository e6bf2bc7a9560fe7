from __future__ import annotations

import enum


class LedgerEntryType(enum.StrEnum):
    """Kind of balance-affecting ledger event."""

    GRANTED = "granted"
    USED = "used"


class RequestStatus(enum.StrEnum):
    """State machine for leave requests. Transitions out of PENDING happen once."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    BALANCE = "BALANCE"
    REQUEST = "REQUEST"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    GRANT = "GRANT"
    SEED = "SEED"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REPAIR = "REPAIR"
