"""In-process identity store.

Backs demo mode and the test suite. It enforces the same uniqueness rules a
real store must provide: unique usernames, unique sibling group names, and
unique values for per-group email alias attributes.
"""
from __future__ import annotations
import copy
import threading
import uuid
from typing import Dict, List, Optional, Set

from ..exceptions import AttributeValueConflictError, GroupAlreadyExistsError, UserAlreadyExistsError
from .base import GroupRecord, IdentityStore, UserRecord

UNIQUE_ATTRIBUTE_PREFIX = "group_email_"


class InMemoryIdentityStore(IdentityStore):
    """Thread-safe dictionary-backed store.

    Records handed out are copies; every read goes back to the internal state,
    which mirrors how a remote store returns fresh representations.
    """

    def __init__(self, unique_attribute_prefix: str = UNIQUE_ATTRIBUTE_PREFIX):
        self._lock = threading.RLock()
        self._users: Dict[str, UserRecord] = {}
        self._groups: Dict[str, GroupRecord] = {}
        self._memberships: Dict[str, Set[str]] = {}
        self._unique_prefix = unique_attribute_prefix

    # Users

    def find_user_by_username(self, username: str) -> Optional[UserRecord]:
        with self._lock:
            for user in self._users.values():
                if user.username == username:
                    return copy.deepcopy(user)
        return None

    def create_user(self, username: str) -> UserRecord:
        with self._lock:
            if any(u.username == username for u in self._users.values()):
                raise UserAlreadyExistsError(f"User '{username}' already exists")
            user = UserRecord(id=str(uuid.uuid4()), username=username, enabled=True)
            self._users[user.id] = user
            self._memberships[user.id] = set()
            return copy.deepcopy(user)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._lock:
            user = self._users.get(user_id)
            return copy.deepcopy(user) if user else None

    def update_user_basics(self, user: UserRecord, first_name: Optional[str], last_name: Optional[str], email: Optional[str]) -> None:
        with self._lock:
            stored = self._users[user.id]
            stored.first_name = first_name
            stored.last_name = last_name
            stored.email = email

    def get_user_attribute_values(self, user: UserRecord, name: str) -> List[str]:
        with self._lock:
            return list(self._users[user.id].attributes.get(name, []))

    def list_user_attribute_names(self, user: UserRecord) -> List[str]:
        with self._lock:
            return list(self._users[user.id].attributes.keys())

    def set_user_attribute_values(self, user: UserRecord, name: str, values: List[str]) -> None:
        with self._lock:
            if name.startswith(self._unique_prefix):
                for value in values:
                    if self.is_attribute_value_in_use(name, value, exclude_user_id=user.id):
                        raise AttributeValueConflictError(name, value)
            self._users[user.id].attributes[name] = list(values)

    def remove_user_attribute(self, user: UserRecord, name: str) -> None:
        with self._lock:
            self._users[user.id].attributes.pop(name, None)

    def is_attribute_value_in_use(self, name: str, value: str, exclude_user_id: Optional[str] = None) -> bool:
        with self._lock:
            return any(
                value in u.attributes.get(name, [])
                for u in self._users.values()
                if u.id != exclude_user_id
            )

    # Groups

    def find_root_group(self, name: str) -> Optional[GroupRecord]:
        with self._lock:
            for group in self._groups.values():
                if group.parent_id is None and group.name == name:
                    return copy.deepcopy(group)
        return None

    def create_group(self, name: str, parent: Optional[GroupRecord] = None) -> GroupRecord:
        parent_id = parent.id if parent else None
        with self._lock:
            if any(g.parent_id == parent_id and g.name == name for g in self._groups.values()):
                raise GroupAlreadyExistsError(f"Group '{name}' already exists")
            group = GroupRecord(id=str(uuid.uuid4()), name=name, parent_id=parent_id)
            self._groups[group.id] = group
            return copy.deepcopy(group)

    def list_subgroups(self, parent: GroupRecord) -> List[GroupRecord]:
        with self._lock:
            return [copy.deepcopy(g) for g in self._groups.values() if g.parent_id == parent.id]

    def get_group_attribute(self, group: GroupRecord, name: str) -> Optional[str]:
        with self._lock:
            values = self._groups[group.id].attributes.get(name)
            return values[0] if values else None

    def set_group_attribute(self, group: GroupRecord, name: str, value: str) -> None:
        with self._lock:
            self._groups[group.id].attributes[name] = [value]

    # Memberships

    def list_user_groups(self, user: UserRecord) -> List[GroupRecord]:
        with self._lock:
            group_ids = self._memberships.get(user.id, set())
            return [copy.deepcopy(self._groups[gid]) for gid in group_ids]

    def join_group(self, user: UserRecord, group: GroupRecord) -> None:
        with self._lock:
            self._memberships.setdefault(user.id, set()).add(group.id)

    def leave_group(self, user: UserRecord, group: GroupRecord) -> None:
        with self._lock:
            self._memberships.setdefault(user.id, set()).discard(group.id)
