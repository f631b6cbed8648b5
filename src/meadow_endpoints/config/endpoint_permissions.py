"""
Endpoint permissions configuration - role names and per-operation authorization levels
"""

from typing import List
from pydantic import BaseModel

# Role index -> role name, as resolved by DAL role lookups
ROLE_NAMES: List[str] = [
    "Unauthenticated",
    "User",
    "Manager",
    "Director",
    "Executive",
    "Administrator"
]

# Authorizer table entry used when a role has no entry of its own
DEFAULT_ROLE_AUTHORIZER_KEY = "__DefaultAPISecurity"

AUTHORIZATION_MODE_DISABLED = "Disabled"
AUTHORIZATION_MODE_SIMPLE_OWNERSHIP = "SimpleOwnership"


class EndpointAuthorizationLevels(BaseModel):
    """
    Minimum UserRoleIndex required for each endpoint operation.

    The check is processed as ``UserRoleIndex >= level`` for logged in users.
    A negative level marks the endpoint public (no login required).
    """
    Create: int = 1
    Read: int = 1
    Reads: int = 1
    ReadsBy: int = 1
    ReadLite: int = 1
    ReadSelectList: int = 1
    ReadDistinct: int = 1
    Update: int = 1
    Delete: int = 1
    Count: int = 1
    CountBy: int = 1
    Schema: int = 0
    New: int = 0
    Validate: int = 0

    def level_for(self, operation: str) -> int:
        """Get the required level for an operation (unknown operations need a User)"""
        return getattr(self, operation, 1)


def get_role_name(role_index: int) -> str:
    """Resolve a role index to its name; out of range indexes are unauthenticated"""
    if isinstance(role_index, int) and 0 <= role_index < len(ROLE_NAMES):
        return ROLE_NAMES[role_index]
    return ROLE_NAMES[0]


def is_authorization_enabled(mode: str) -> bool:
    """Any mode other than Disabled turns authorizers on"""
    return mode != AUTHORIZATION_MODE_DISABLED
