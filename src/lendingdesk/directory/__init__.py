"""Directory module: holders, roles and credentials."""

from .manager import Directory
from .models import ROLE_PROFILES, Holder, Role, RoleProfile
from .schemas import HolderCreate, HolderProfile

__all__ = [
    "Directory",
    "Holder",
    "Role",
    "RoleProfile",
    "ROLE_PROFILES",
    "HolderCreate",
    "HolderProfile",
]
