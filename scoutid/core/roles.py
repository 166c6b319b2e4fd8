"""Scoutnet role map parsing and permission flattening.

The Scoutnet ``user_roles`` endpoint returns a three-level map::

    {"organisation": {"692": {"68": "board_member"}}, "group": {...}, ...}

i.e. role type -> type instance id -> role id -> role name. Flattening turns it
into a sorted list of permission strings at every granularity so consumers can
match with a plain set lookup:

    >>> flatten_roles(Roles.from_dict({"organisation": {"692": {"68": "board_member"}}}))
    ['*:*:board_member', 'organisation:*:*', 'organisation:*:board_member', 'organisation:692:*', 'organisation:692:board_member']
"""
from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple

from .exceptions import MalformedPayloadError

logger = logging.getLogger(__name__)

WILDCARD = "*"

RoleNames = Dict[str, str]
InstanceRoles = Dict[str, RoleNames]


class RoleType(str, Enum):
    """Organizational unit categories that scope a role assignment."""
    ORGANISATION = "organisation"
    REGION = "region"
    PROJECT = "project"
    NETWORK = "network"
    CORPS = "corps"
    DISTRICT = "district"
    GROUP = "group"
    TROOP = "troop"
    PATROL = "patrol"


def _as_mapping(value: Any, where: str) -> Optional[dict]:
    """Read an object level of the payload; PHP serializes empty maps as []."""
    if value is None:
        return None
    if isinstance(value, list):
        if value:
            raise MalformedPayloadError(f"Expected an object at {where}, got a non-empty array")
        return None
    if not isinstance(value, dict):
        raise MalformedPayloadError(f"Expected an object at {where}, got {type(value).__name__}")
    return value


@dataclass
class Roles:
    """Role assignments keyed by role type, in RoleType declaration order."""
    by_type: Dict[RoleType, InstanceRoles] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Any) -> "Roles":
        """Build from the decoded JSON payload.

        Raises:
            MalformedPayloadError: If a level has the wrong shape
        """
        top = _as_mapping(payload, "roles") or {}
        known = {role_type.value: role_type for role_type in RoleType}
        by_type: Dict[RoleType, InstanceRoles] = {}

        for key in top:
            if key not in known:
                logger.debug(f"Ignoring unknown role type '{key}'")

        for role_type in RoleType:
            instances = _as_mapping(top.get(role_type.value), role_type.value)
            if instances is None:
                continue
            parsed: InstanceRoles = {}
            for instance_id, roles in instances.items():
                role_names = _as_mapping(roles, f"{role_type.value}.{instance_id}")
                parsed[str(instance_id)] = {
                    str(role_id): str(role_name) for role_id, role_name in (role_names or {}).items()
                }
            by_type[role_type] = parsed

        return cls(by_type=by_type)

    @classmethod
    def from_json(cls, raw: str) -> "Roles":
        try:
            payload = json.loads(raw)
        except ValueError as e:
            raise MalformedPayloadError(f"Roles payload is not valid JSON: {e}") from e
        return cls.from_dict(payload)

    def instances(self, role_type: RoleType) -> InstanceRoles:
        return self.by_type.get(role_type) or {}

    def iter_instances(self) -> Iterator[Tuple[RoleType, str]]:
        """Yield (role type, instance id) for every instance, in type order."""
        for role_type in RoleType:
            for instance_id in self.instances(role_type):
                yield role_type, instance_id


def flatten_roles(roles: Optional[Roles]) -> list[str]:
    """Expand the role hierarchy into sorted, wildcard-expanded permission strings.

    Per role: ``type:id:name``, ``type:*:name`` and ``*:*:name``.
    Per instance holding at least one role: ``type:id:*``.
    Per role type holding at least one instance: ``type:*:*``.
    """
    if roles is None:
        return []

    permissions: set[str] = set()
    for role_type, instances in roles.by_type.items():
        if not instances:
            continue

        type_name = role_type.value
        for instance_id, role_names in instances.items():
            if not role_names:
                continue
            for role_name in role_names.values():
                permissions.add(f"{type_name}:{instance_id}:{role_name}")
                permissions.add(f"{type_name}:{WILDCARD}:{role_name}")
                permissions.add(f"{WILDCARD}:{WILDCARD}:{role_name}")
            permissions.add(f"{type_name}:{instance_id}:{WILDCARD}")

        permissions.add(f"{type_name}:{WILDCARD}:{WILDCARD}")

    return sorted(permissions)
