"""Identity store contract and the in-memory implementation."""
from .base import Attributes, GroupRecord, IdentityStore, UserRecord
from .memory import InMemoryIdentityStore

__all__ = [
    "Attributes",
    "GroupRecord",
    "IdentityStore",
    "UserRecord",
    "InMemoryIdentityStore",
]
