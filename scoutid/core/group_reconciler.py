"""Group membership reconciliation.

All synchronized groups live under one namespace parent (``/scoutnet`` by
default) and are named by the upstream instance id or membership key, never by
display name. After a pass the user's memberships among the parent's children
equal the target id set exactly.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .exceptions import GroupAlreadyExistsError
from .roles import RoleType, Roles
from .store.base import GroupRecord, IdentityStore, UserRecord

logger = logging.getLogger(__name__)

TYPE_ATTRIBUTE = "scoutnet_type"
NAME_ATTRIBUTE = "scoutnet_name"
MEMBERSHIP_GROUP_TYPE = RoleType.GROUP.value
MAX_CREATE_ATTEMPTS = 3


@dataclass
class ReconcileResult:
    """Side effects of one reconciliation pass, by group name."""
    created: List[str] = field(default_factory=list)
    joined: List[str] = field(default_factory=list)
    left: List[str] = field(default_factory=list)
    migrated: List[str] = field(default_factory=list)
    skipped: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.created or self.joined or self.left or self.migrated)


def target_group_ids(profile, roles: Optional[Roles]) -> Dict[str, str]:
    """Compute target group name -> type tag.

    Role instances come first in RoleType order, then profile membership keys
    tagged ``group``; a later source overrides the tag of an earlier one.
    """
    targets: Dict[str, str] = {}
    if roles is not None:
        for role_type, instance_id in roles.iter_instances():
            targets[instance_id] = role_type.value
    if profile is not None:
        for membership_key in profile.group_memberships:
            targets[membership_key] = MEMBERSHIP_GROUP_TYPE
    return targets


class GroupReconciler:
    """Mirrors upstream roles and memberships into local groups."""

    def __init__(self, store: IdentityStore, parent_group_name: str = "scoutnet", tracked_attributes: Sequence[str] = ("domain",)):
        self.store = store
        self.parent_group_name = parent_group_name
        self.tracked_attributes = list(tracked_attributes)

    def reconcile(self, user: UserRecord, profile, roles: Optional[Roles], correlation_id: str = "-") -> ReconcileResult:
        """Create, attribute, join and prune groups so membership mirrors upstream.

        Args:
            user: Local user being synced
            profile: Parsed Scoutnet profile (memberships and display names)
            roles: Parsed roles, or None when the roles fetch failed
            correlation_id: Login correlation id for log lines

        Returns:
            ReconcileResult listing the side effects performed
        """
        result = ReconcileResult()
        if roles is None and (profile is None or not profile.group_memberships):
            logger.debug(f"[{correlation_id}] No roles or membership data available, skipping group sync for user: {user.username}")
            result.skipped = True
            return result

        parent = self.ensure_parent_group()
        result.migrated = self.migrate_root_groups(user, parent, correlation_id)

        if not self.store.is_member(user, parent):
            self.store.join_group(user, parent)
            logger.debug(f"[{correlation_id}] Added user {user.username} to parent group {self.parent_group_name}")

        targets = target_group_ids(profile, roles)
        display_names = profile.group_names() if profile is not None else {}
        member_of = {g.id for g in self.store.list_user_groups(user)}

        for group_id, group_type in targets.items():
            group, created = self.find_or_create_group(parent, group_id)
            if created:
                result.created.append(group_id)
            self.update_group_attributes(group, group_type, display_names.get(group_id))
            if group.id not in member_of:
                self.store.join_group(user, group)
                member_of.add(group.id)
                result.joined.append(group_id)
                logger.debug(f"[{correlation_id}] Added user {user.username} to {group_type} group {group_id}")

        for subgroup in self.store.list_subgroups(parent):
            if subgroup.name not in targets and subgroup.id in member_of:
                self.store.leave_group(user, subgroup)
                result.left.append(subgroup.name)
                logger.debug(f"[{correlation_id}] Removed user {user.username} from group {subgroup.name}")

        return result

    def ensure_parent_group(self) -> GroupRecord:
        """Return the namespace parent, creating it at root level on first use."""
        for _ in range(MAX_CREATE_ATTEMPTS):
            parent = self.store.find_root_group(self.parent_group_name)
            if parent is not None:
                return parent
            try:
                parent = self.store.create_group(self.parent_group_name)
                logger.info(f"Created parent group: {self.parent_group_name}")
                return parent
            except GroupAlreadyExistsError:
                logger.debug(f"Parent group {self.parent_group_name} created concurrently, retrying lookup")
        raise GroupAlreadyExistsError(f"Parent group '{self.parent_group_name}' exists but cannot be found")

    def find_or_create_group(self, parent: GroupRecord, name: str) -> tuple[GroupRecord, bool]:
        """Return (child group, created flag); a lost create race falls back to lookup."""
        for _ in range(MAX_CREATE_ATTEMPTS):
            group = self.store.find_subgroup(parent, name)
            if group is not None:
                return group, False
            try:
                group = self.store.create_group(name, parent)
                logger.debug(f"Created new subgroup: {name} under {self.parent_group_name}")
                return group, True
            except GroupAlreadyExistsError:
                logger.debug(f"Subgroup {name} created concurrently, retrying lookup")
        raise GroupAlreadyExistsError(f"Group '{name}' exists under '{self.parent_group_name}' but cannot be found")

    def update_group_attributes(self, group: GroupRecord, group_type: str, display_name: Optional[str]) -> None:
        """Refresh type and display name; initialize tracked attributes only once.

        Tracked attributes (e.g. ``domain``) are edited by administrators, so an
        existing value is never overwritten.
        """
        if self.store.get_group_attribute(group, TYPE_ATTRIBUTE) != group_type:
            self.store.set_group_attribute(group, TYPE_ATTRIBUTE, group_type)

        if display_name is not None and display_name.strip():
            if self.store.get_group_attribute(group, NAME_ATTRIBUTE) != display_name:
                self.store.set_group_attribute(group, NAME_ATTRIBUTE, display_name)

        for attribute in self.tracked_attributes:
            if self.store.get_group_attribute(group, attribute) is None:
                self.store.set_group_attribute(group, attribute, "")

    def migrate_root_groups(self, user: UserRecord, parent: GroupRecord, correlation_id: str = "-") -> List[str]:
        """Leave root-level synced groups created before the namespace parent existed."""
        migrated: List[str] = []
        for group in self.store.list_user_groups(user):
            if not group.is_root or group.id == parent.id or group.name == self.parent_group_name:
                continue
            if self.store.get_group_attribute(group, TYPE_ATTRIBUTE) is None:
                continue
            self.store.leave_group(user, group)
            migrated.append(group.name)
            logger.info(f"[{correlation_id}] Migrated user {user.username} from root group {group.name}")
        return migrated
