"""Per-group email alias allocation.

Groups with a mail routing ``domain`` attribute give each member an alias of
the form ``first.last@domain`` stored as ``group_email_<group name>``. Aliases
are unique per attribute name only: ``anna.berg@a.se`` in one group and
``anna.berg@b.se`` in another never collide.
"""
from __future__ import annotations
import logging
from typing import Iterable, Optional

from .exceptions import AttributeValueConflictError
from .store.base import GroupRecord, IdentityStore, UserRecord

logger = logging.getLogger(__name__)

GROUP_EMAIL_PREFIX = "group_email_"
DOMAIN_ATTRIBUTE = "domain"
MAX_ALLOCATION_ATTEMPTS = 5


def group_email_attribute(group_name: str) -> str:
    return f"{GROUP_EMAIL_PREFIX}{group_name}"


def is_valid_domain(domain: Optional[str]) -> bool:
    """Reject domains that would produce an unusable address."""
    if not domain:
        return False
    return (
        "." in domain
        and not domain.startswith(".")
        and not domain.endswith(".")
        and "/" not in domain
        and " " not in domain
        and ":" not in domain
        and len(domain) > 3
    )


class EmailAllocator:
    """Allocates collision-free group email aliases for a user."""

    def __init__(self, store: IdentityStore, domain_attribute: str = DOMAIN_ATTRIBUTE):
        self.store = store
        self.domain_attribute = domain_attribute

    def allocate(self, user: UserRecord, token: str, group_name: str, domain: str) -> str:
        """Return ``token@domain``, suffixed ``token1@``, ``token2@``... until unused.

        Values held by ``user`` itself do not count as collisions, so
        re-allocating for an unchanged name returns the same alias.
        """
        attribute = group_email_attribute(group_name)
        email = f"{token}@{domain}"
        counter = 1
        while self.store.is_attribute_value_in_use(attribute, email, exclude_user_id=user.id):
            email = f"{token}{counter}@{domain}"
            counter += 1
        return email

    def assign(self, user: UserRecord, token: str, group_name: str, domain: str) -> str:
        """Allocate and store an alias, re-allocating when a concurrent login wins the race."""
        attribute = group_email_attribute(group_name)
        for attempt in range(1, MAX_ALLOCATION_ATTEMPTS + 1):
            email = self.allocate(user, token, group_name, domain)
            try:
                self.store.set_user_attribute(user, attribute, email)
                return email
            except AttributeValueConflictError:
                logger.info(f"Alias {email} taken concurrently for {user.username} (attempt {attempt})")
        raise AttributeValueConflictError(attribute, f"{token}@{domain}")

    def apply(self, user: UserRecord, token: str, groups: Optional[Iterable[GroupRecord]] = None) -> dict[str, str]:
        """Write aliases for every group of the user that has a valid domain.

        Groups without a usable domain lose their alias, and aliases for groups
        the user no longer belongs to are removed.

        Returns:
            Mapping of attribute name to assigned alias
        """
        if groups is None:
            groups = self.store.list_user_groups(user)

        assigned: dict[str, str] = {}
        processed: set[str] = set()
        for group in groups:
            attribute = group_email_attribute(group.name)
            processed.add(attribute)
            domain = (self.store.get_group_attribute(group, self.domain_attribute) or "").strip()
            if is_valid_domain(domain):
                assigned[attribute] = self.assign(user, token, group.name, domain)
            else:
                self.store.remove_user_attribute(user, attribute)

        for attribute in self.store.list_user_attribute_names(user):
            if attribute.startswith(GROUP_EMAIL_PREFIX) and attribute not in processed:
                self.store.remove_user_attribute(user, attribute)

        return assigned

    def clear(self, user: UserRecord) -> None:
        """Drop every group alias of the user."""
        for attribute in self.store.list_user_attribute_names(user):
            if attribute.startswith(GROUP_EMAIL_PREFIX):
                self.store.remove_user_attribute(user, attribute)
