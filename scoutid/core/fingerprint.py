"""Change detection for profile synchronization.

The fingerprint is a SHA-256 digest over everything a sync pass derives
attributes from. It is stored on the user as ``scoutnet_profile_hash``; a login
whose fingerprint matches the stored one skips reconciliation entirely.
"""
from __future__ import annotations
import hashlib
import re
from typing import Iterable, List, Optional, Sequence, Tuple

from .store.base import IdentityStore, UserRecord

FINGERPRINT_ATTRIBUTE = "scoutnet_profile_hash"

# Scoutnet stamps the profile with the time of the current login
_VOLATILE_FIELDS = re.compile(r',?\s*"last_login"\s*:\s*"[^"]*"')

TrackedAttribute = Tuple[str, str, str]


# Terminates every hashed component so values cannot shift across boundaries
_SEPARATOR = b"\x00"


def _update(digest, text: str) -> None:
    digest.update(text.encode("utf-8"))
    digest.update(_SEPARATOR)


def strip_volatile_fields(profile_json: str) -> str:
    """Remove fields that change on every login from the raw profile JSON."""
    return _VOLATILE_FIELDS.sub("", profile_json)


def tracked_group_attributes(store: IdentityStore, user: UserRecord, attribute_names: Sequence[str]) -> List[TrackedAttribute]:
    """Collect (group, attribute, value) for every group the user belongs to.

    Missing values are reported as empty strings. Sorted by group name, then by
    attribute name, so store ordering never leaks into the digest.
    """
    triples: List[TrackedAttribute] = []
    for group in store.list_user_groups(user):
        for attribute in attribute_names:
            value = store.get_group_attribute(group, attribute)
            triples.append((group.name, attribute, value if value is not None else ""))
    return sorted(triples)


def profile_fingerprint(
    format_version: str,
    profile_json: str,
    roles_json: Optional[str],
    image_bytes: Optional[bytes],
    tracked_attributes: Iterable[TrackedAttribute] = (),
) -> str:
    """Compute the hex digest of one login's sync inputs.

    Args:
        format_version: Provider version; bumping it forces every user to resync
        profile_json: Raw profile payload (volatile fields are stripped here)
        roles_json: Raw roles payload, if it was fetched
        image_bytes: Processed profile image; only its length is hashed
        tracked_attributes: Output of tracked_group_attributes()

    Returns:
        64-character lowercase hex string
    """
    digest = hashlib.sha256()
    _update(digest, format_version)
    _update(digest, strip_volatile_fields(profile_json))

    if roles_json is not None:
        _update(digest, roles_json)

    if image_bytes is not None:
        _update(digest, str(len(image_bytes)))

    for group_name, attribute, value in tracked_attributes:
        _update(digest, f"{group_name}:{attribute}:{value}")

    return digest.hexdigest()
