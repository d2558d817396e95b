"""Pydantic schemas for holders."""

from pydantic import BaseModel, Field, field_validator

from ..catalog.schemas import check_storable
from .models import Role


class HolderCreate(BaseModel):
    """Schema for registering a holder."""

    id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=200)
    credential: str = Field(..., min_length=1, max_length=200)
    role: Role = Role.STUDENT
    department: str = Field("", max_length=200)

    @field_validator("name", "credential", "department")
    @classmethod
    def storable_text(cls, v):
        """Validate that text fields survive the flat-file format."""
        return check_storable(v)


class HolderProfile(BaseModel):
    """Public view of a holder and the capabilities of their role.

    The credential is never included.
    """

    id: int
    name: str
    role: Role
    department: str
    can_borrow: bool
    can_manage_items: bool
    can_manage_users: bool
    max_concurrent_loans: int
    max_loan_duration_days: int
    overdue_fine_rate_per_hour: float
