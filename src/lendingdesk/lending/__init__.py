"""Lending module.

Provides functionality for:
- Borrowing and returning items
- Reservation queues with priority hand-off on return
- Overdue fines and payments
- Administrative reports of outstanding loans
"""

from .engine import LendingEngine
from .schemas import (
    AccountSummary,
    ActiveLoanView,
    FinePayment,
    LoanView,
    ReturnSummary,
)

__all__ = [
    "LendingEngine",
    "AccountSummary",
    "ActiveLoanView",
    "FinePayment",
    "LoanView",
    "ReturnSummary",
]
