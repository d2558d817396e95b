"""In-memory models for holders and their role profiles."""

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Holder role. Each role selects one fixed capability profile."""

    STUDENT = "student"  # Borrower-Standard
    FACULTY = "faculty"  # Borrower-Privileged
    LIBRARIAN = "librarian"  # Administrator

    @property
    def profile(self) -> "RoleProfile":
        return ROLE_PROFILES[self]

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class RoleProfile:
    """Capabilities and lending limits granted by a role."""

    can_borrow: bool
    can_manage_items: bool
    can_manage_users: bool
    max_concurrent_loans: int
    max_loan_duration_days: int
    overdue_fine_rate_per_hour: float


ROLE_PROFILES: dict[Role, RoleProfile] = {
    Role.STUDENT: RoleProfile(
        can_borrow=True,
        can_manage_items=False,
        can_manage_users=False,
        max_concurrent_loans=3,
        max_loan_duration_days=15,
        overdue_fine_rate_per_hour=10.0,
    ),
    Role.FACULTY: RoleProfile(
        can_borrow=True,
        can_manage_items=True,
        can_manage_users=False,
        max_concurrent_loans=5,
        max_loan_duration_days=30,
        overdue_fine_rate_per_hour=0.0,
    ),
    # Librarians never borrow, so the limits do not apply
    Role.LIBRARIAN: RoleProfile(
        can_borrow=False,
        can_manage_items=True,
        can_manage_users=True,
        max_concurrent_loans=0,
        max_loan_duration_days=0,
        overdue_fine_rate_per_hour=0.0,
    ),
}


@dataclass
class Holder:
    """A library user."""

    id: int
    name: str
    credential: str
    role: Role = Role.STUDENT
    department: str = ""

    def __repr__(self) -> str:
        return f"<Holder(id={self.id}, name='{self.name}', role={self.role.value})>"

    @property
    def profile(self) -> RoleProfile:
        return self.role.profile

    def verify_credential(self, secret: str) -> bool:
        # Plain string comparison; credentials are stored as given
        return self.credential == secret
