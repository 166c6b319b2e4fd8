"""Scoutnet member API client and payload models."""
from .client import ScoutnetClient
from .models import (
    Address,
    AuthError,
    AuthResponse,
    AuthResult,
    ErrorResponse,
    Group,
    GroupMembership,
    Member,
    Memberships,
    Profile,
)

__all__ = [
    "ScoutnetClient",
    "Address",
    "AuthError",
    "AuthResponse",
    "AuthResult",
    "ErrorResponse",
    "Group",
    "GroupMembership",
    "Member",
    "Memberships",
    "Profile",
]
