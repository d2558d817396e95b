"""Ledger module: holder accounts, loans and fines."""

from .manager import Ledger
from .models import Account, LoanRecord, utcnow

__all__ = [
    "Ledger",
    "Account",
    "LoanRecord",
    "utcnow",
]
