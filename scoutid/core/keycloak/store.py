"""IdentityStore backed by the Keycloak Admin REST API."""
from __future__ import annotations
import logging
from typing import List, Optional

from ..exceptions import AttributeValueConflictError
from ..store.base import GroupRecord, IdentityStore, UserRecord
from .client import KeycloakClient
from .groups import GroupService
from .users import UserService

logger = logging.getLogger(__name__)

UNIQUE_ATTRIBUTE_PREFIX = "group_email_"


def _parent_id_from(group: dict) -> Optional[str]:
    if group.get("parentId"):
        return group["parentId"]
    path = group.get("path") or ""
    segments = [s for s in path.split("/") if s]
    if len(segments) > 1:
        # Older Keycloak versions omit parentId; the parent path still marks a child.
        return "/" + "/".join(segments[:-1])
    return None


def _to_user(rep: dict) -> UserRecord:
    return UserRecord(
        id=rep["id"],
        username=rep["username"],
        first_name=rep.get("firstName"),
        last_name=rep.get("lastName"),
        email=rep.get("email"),
        enabled=rep.get("enabled", True),
        attributes={k: list(v) for k, v in (rep.get("attributes") or {}).items()},
    )


def _to_group(rep: dict) -> GroupRecord:
    return GroupRecord(
        id=rep["id"],
        name=rep["name"],
        parent_id=_parent_id_from(rep),
        attributes={k: list(v) for k, v in (rep.get("attributes") or {}).items()},
    )


class KeycloakIdentityStore(IdentityStore):
    """Maps store operations onto one realm.

    Keycloak does not enforce attribute uniqueness, so values under
    ``unique_attribute_prefix`` are checked with an attribute search before
    every write. Every read goes to the server; records are never cached.
    """

    def __init__(self, client: KeycloakClient, realm: str, unique_attribute_prefix: str = UNIQUE_ATTRIBUTE_PREFIX):
        self.client = client
        self.realm = realm
        self.users = UserService(client)
        self.groups = GroupService(client)
        self._unique_prefix = unique_attribute_prefix

    # Users

    def find_user_by_username(self, username: str) -> Optional[UserRecord]:
        rep = self.users.get_user_by_username(self.realm, username)
        return _to_user(rep) if rep else None

    def create_user(self, username: str) -> UserRecord:
        return _to_user(self.users.create_user(self.realm, username))

    def _modify_user(self, user: UserRecord, mutate) -> None:
        rep = self.users.get_user(self.realm, user.id)
        mutate(rep)
        self.users.update_user(self.realm, user.id, rep)
        user.attributes = {k: list(v) for k, v in (rep.get("attributes") or {}).items()}

    def update_user_basics(self, user: UserRecord, first_name: Optional[str], last_name: Optional[str], email: Optional[str]) -> None:
        def mutate(rep: dict) -> None:
            rep["firstName"] = first_name
            rep["lastName"] = last_name
            rep["email"] = email

        self._modify_user(user, mutate)
        user.first_name, user.last_name, user.email = first_name, last_name, email

    def get_user_attribute_values(self, user: UserRecord, name: str) -> List[str]:
        rep = self.users.get_user(self.realm, user.id)
        return list((rep.get("attributes") or {}).get(name, []))

    def list_user_attribute_names(self, user: UserRecord) -> List[str]:
        rep = self.users.get_user(self.realm, user.id)
        return list((rep.get("attributes") or {}).keys())

    def set_user_attribute_values(self, user: UserRecord, name: str, values: List[str]) -> None:
        if name.startswith(self._unique_prefix):
            for value in values:
                if self.is_attribute_value_in_use(name, value, exclude_user_id=user.id):
                    raise AttributeValueConflictError(name, value)

        def mutate(rep: dict) -> None:
            attributes = rep.get("attributes") or {}
            attributes[name] = list(values)
            rep["attributes"] = attributes

        self._modify_user(user, mutate)

    def remove_user_attribute(self, user: UserRecord, name: str) -> None:
        rep = self.users.get_user(self.realm, user.id)
        attributes = rep.get("attributes") or {}
        if name not in attributes:
            return
        del attributes[name]
        rep["attributes"] = attributes
        self.users.update_user(self.realm, user.id, rep)
        user.attributes.pop(name, None)

    def is_attribute_value_in_use(self, name: str, value: str, exclude_user_id: Optional[str] = None) -> bool:
        holders = self.users.find_users_by_attribute(self.realm, name, value)
        return any(holder.get("id") != exclude_user_id for holder in holders)

    # Groups

    def find_root_group(self, name: str) -> Optional[GroupRecord]:
        rep = self.groups.get_root_group(self.realm, name)
        return _to_group(rep) if rep else None

    def create_group(self, name: str, parent: Optional[GroupRecord] = None) -> GroupRecord:
        rep = self.groups.create_group(self.realm, name, parent.id if parent else None)
        group = _to_group(rep)
        if parent is not None and group.parent_id is None:
            group.parent_id = parent.id
        return group

    def list_subgroups(self, parent: GroupRecord) -> List[GroupRecord]:
        groups = []
        for rep in self.groups.get_children(self.realm, parent.id):
            group = _to_group(rep)
            group.parent_id = parent.id
            groups.append(group)
        return groups

    def get_group_attribute(self, group: GroupRecord, name: str) -> Optional[str]:
        rep = self.groups.get_group(self.realm, group.id)
        values = (rep.get("attributes") or {}).get(name)
        return values[0] if values else None

    def set_group_attribute(self, group: GroupRecord, name: str, value: str) -> None:
        rep = self.groups.get_group(self.realm, group.id)
        attributes = rep.get("attributes") or {}
        attributes[name] = [value]
        rep["attributes"] = attributes
        self.groups.update_group(self.realm, group.id, rep)
        group.attributes[name] = [value]

    # Memberships

    def list_user_groups(self, user: UserRecord) -> List[GroupRecord]:
        return [_to_group(rep) for rep in self.groups.get_user_groups(self.realm, user.id)]

    def join_group(self, user: UserRecord, group: GroupRecord) -> None:
        self.groups.add_user_to_group(self.realm, user.id, group.id)

    def leave_group(self, user: UserRecord, group: GroupRecord) -> None:
        if not self.groups.remove_user_from_group(self.realm, user.id, group.id):
            logger.debug(f"User {user.username} was not a member of group {group.name}")
