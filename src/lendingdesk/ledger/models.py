"""In-memory models for holder accounts.

Each account keeps:
- active loans: items currently out, in borrow order
- history: returned loans, in return order
- fine balance: never negative
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time, truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


@dataclass
class LoanRecord:
    """A single loan of one item."""

    item_id: int
    borrowed_at: datetime
    due_at: datetime

    @classmethod
    def start(cls, item_id: int, duration_days: int, now: Optional[datetime] = None) -> "LoanRecord":
        """Open a loan that falls due after the given number of days."""
        now = now or utcnow()
        return cls(item_id=item_id, borrowed_at=now, due_at=now + timedelta(days=duration_days))

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return now > self.due_at

    def overdue_hours(self, now: Optional[datetime] = None) -> int:
        """Whole hours past the due time, rounded down."""
        now = now or utcnow()
        if now <= self.due_at:
            return 0
        return (now - self.due_at) // timedelta(hours=1)


@dataclass
class Account:
    """Ledger entry for one holder."""

    holder_id: int
    active_loans: list[LoanRecord] = field(default_factory=list)
    history: list[LoanRecord] = field(default_factory=list)
    fine_balance: float = 0.0

    def __repr__(self) -> str:
        return (
            f"<Account(holder_id={self.holder_id}, active={len(self.active_loans)}, "
            f"fine={self.fine_balance})>"
        )

    def find_active(self, item_id: int) -> Optional[LoanRecord]:
        for loan in self.active_loans:
            if loan.item_id == item_id:
                return loan
        return None

    def holds(self, item_id: int) -> bool:
        return self.find_active(item_id) is not None

    def open_loan(self, loan: LoanRecord) -> None:
        self.active_loans.append(loan)

    def close_loan(self, item_id: int) -> Optional[LoanRecord]:
        """Move an active loan to history.

        Returns:
            The closed loan, or None if the item was not held
        """
        loan = self.find_active(item_id)
        if loan is None:
            return None
        self.active_loans.remove(loan)
        self.history.append(loan)
        return loan

    def add_fine(self, amount: float) -> None:
        if amount > 0:
            self.fine_balance += amount

    def pay_fine(self, amount: float) -> None:
        """Reduce the balance, flooring at zero. Overpayment is not carried."""
        self.fine_balance = max(0.0, self.fine_balance - amount)
