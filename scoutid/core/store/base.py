"""Identity store contract used by the synchronization engine.

The engine never talks to Keycloak directly. It sees users and groups as
records with multi-valued string attributes, and a small set of operations
over them. Adapters must raise the StoreConflictError family when a write
loses a uniqueness race so the engine can retry its existence check.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

Attributes = Dict[str, List[str]]


@dataclass
class UserRecord:
    """Local user snapshot."""
    id: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    enabled: bool = True
    attributes: Attributes = field(default_factory=dict)


@dataclass
class GroupRecord:
    """Local group snapshot. ``parent_id`` is None for root-level groups."""
    id: str
    name: str
    parent_id: Optional[str] = None
    attributes: Attributes = field(default_factory=dict)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


class IdentityStore(ABC):
    """Key/value attribute store over users, groups and memberships."""

    # Users

    @abstractmethod
    def find_user_by_username(self, username: str) -> Optional[UserRecord]:
        """Return the user with exactly this username, or None."""

    @abstractmethod
    def create_user(self, username: str) -> UserRecord:
        """Create an enabled user.

        Raises:
            UserAlreadyExistsError: If the username is taken
        """

    @abstractmethod
    def update_user_basics(self, user: UserRecord, first_name: Optional[str], last_name: Optional[str], email: Optional[str]) -> None:
        """Set first name, last name and email."""

    @abstractmethod
    def get_user_attribute_values(self, user: UserRecord, name: str) -> List[str]:
        """Return all values of a user attribute (empty list when unset)."""

    def get_user_attribute(self, user: UserRecord, name: str) -> Optional[str]:
        """Return the first value of a user attribute, or None."""
        values = self.get_user_attribute_values(user, name)
        return values[0] if values else None

    @abstractmethod
    def list_user_attribute_names(self, user: UserRecord) -> List[str]:
        """Return the names of all attributes set on the user."""

    def set_user_attribute(self, user: UserRecord, name: str, value: str) -> None:
        """Replace a user attribute with a single value."""
        self.set_user_attribute_values(user, name, [value])

    @abstractmethod
    def set_user_attribute_values(self, user: UserRecord, name: str, values: List[str]) -> None:
        """Replace a user attribute with the given values.

        Raises:
            AttributeValueConflictError: If the store enforces uniqueness for
                this attribute and another user holds the value
        """

    @abstractmethod
    def remove_user_attribute(self, user: UserRecord, name: str) -> None:
        """Remove a user attribute (no-op when unset)."""

    @abstractmethod
    def is_attribute_value_in_use(self, name: str, value: str, exclude_user_id: Optional[str] = None) -> bool:
        """Check whether any user other than ``exclude_user_id`` holds ``name=value``."""

    # Groups

    @abstractmethod
    def find_root_group(self, name: str) -> Optional[GroupRecord]:
        """Return the top-level group with this name, or None."""

    @abstractmethod
    def create_group(self, name: str, parent: Optional[GroupRecord] = None) -> GroupRecord:
        """Create a group at root level or under ``parent``.

        Raises:
            GroupAlreadyExistsError: If a sibling with this name exists
        """

    @abstractmethod
    def list_subgroups(self, parent: GroupRecord) -> List[GroupRecord]:
        """Return the direct children of ``parent``."""

    def find_subgroup(self, parent: GroupRecord, name: str) -> Optional[GroupRecord]:
        """Return the direct child of ``parent`` with this name, or None."""
        for group in self.list_subgroups(parent):
            if group.name == name:
                return group
        return None

    @abstractmethod
    def get_group_attribute(self, group: GroupRecord, name: str) -> Optional[str]:
        """Return the first value of a group attribute, or None when unset."""

    @abstractmethod
    def set_group_attribute(self, group: GroupRecord, name: str, value: str) -> None:
        """Replace a group attribute with a single value."""

    # Memberships

    @abstractmethod
    def list_user_groups(self, user: UserRecord) -> List[GroupRecord]:
        """Return every group the user is a direct member of."""

    def is_member(self, user: UserRecord, group: GroupRecord) -> bool:
        return any(g.id == group.id for g in self.list_user_groups(user))

    @abstractmethod
    def join_group(self, user: UserRecord, group: GroupRecord) -> None:
        """Add the user to the group (idempotent)."""

    @abstractmethod
    def leave_group(self, user: UserRecord, group: GroupRecord) -> None:
        """Remove the user from the group (idempotent)."""
