"""Pydantic schemas for lending operations and reports."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..directory.models import Role


class FinePayment(BaseModel):
    """Schema for a fine payment."""

    holder_id: int
    amount: float = Field(..., ge=0, allow_inf_nan=False)


class LoanView(BaseModel):
    """A loan as shown to its holder."""

    item_id: int
    title: Optional[str] = None
    borrowed_at: datetime
    due_at: datetime
    is_overdue: bool = False


class ReturnSummary(BaseModel):
    """Outcome of a successful return."""

    item_id: int
    overdue_hours: int
    fine_added: float
    fine_balance: float
    held_for: Optional[int] = None  # Queue head with first claim on the item


class AccountSummary(BaseModel):
    """A holder's account at a glance."""

    holder_id: int
    fine_balance: float
    active_loans: list[LoanView]
    history: list[LoanView]
    reserved_item_ids: list[int] = Field(default_factory=list)


class ActiveLoanView(BaseModel):
    """One outstanding loan with borrower and item details, for admin review."""

    item_id: int
    title: str
    author: str
    holder_id: int
    holder_name: str
    role: Role
    department: str
    borrowed_at: datetime
    due_at: datetime
    is_overdue: bool
