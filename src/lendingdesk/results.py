"""Operation outcomes shared by the lending engine and the storage layer."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class LendingError(str, Enum):
    """Reason an operation was refused."""

    NOT_FOUND = "not_found"  # Item, holder, account or reservation missing
    PERMISSION_DENIED = "permission_denied"  # Role lacks the capability
    CAPACITY_EXCEEDED = "capacity_exceeded"  # Loan limit reached
    ALREADY_HELD = "already_held"
    NOT_HELD = "not_held"
    UNAVAILABLE = "unavailable"  # Lent out, or held for another holder
    DUPLICATE_RESERVATION = "duplicate_reservation"
    UNPAID_FINE = "unpaid_fine"
    DUPLICATE_IDENTITY = "duplicate_identity"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    INVALID_INPUT = "invalid_input"


@dataclass
class OperationResult:
    """Result of an engine operation.

    Domain failures never raise; they come back with ``success=False`` and
    the ``error`` kind set. ``persisted`` is False when a mutation succeeded
    in memory but the write-through save could not be completed.
    """

    success: bool
    error: Optional[LendingError] = None
    message: str = ""
    value: Any = None
    persisted: bool = True

    @classmethod
    def ok(cls, value: Any = None, message: str = "", persisted: bool = True) -> "OperationResult":
        return cls(success=True, value=value, message=message, persisted=persisted)

    @classmethod
    def fail(cls, error: LendingError, message: str = "") -> "OperationResult":
        return cls(success=False, error=error, message=message)

    def __bool__(self) -> bool:
        return self.success
