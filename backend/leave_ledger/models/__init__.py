from sqlmodel import SQLModel

from leave_ledger.models.audit import AuditLog
from leave_ledger.models.balance import LeaveBalance
from leave_ledger.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from leave_ledger.models.category import LeaveCategory
from leave_ledger.models.enums import AuditAction, AuditEntityType, LedgerEntryType, RequestStatus
from leave_ledger.models.ledger import LeaveLedgerEntry
from leave_ledger.models.request import LeaveRequest

__all__ = [
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "LeaveBalance",
    "LeaveCategory",
    "LeaveLedgerEntry",
    "LeaveRequest",
    "LedgerEntryType",
    "RequestStatus",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
    "UpdatedAtMixin",
]
