"""Profile synchronization pass, run once per successful login.

Order of operations:

    fingerprint -> (unchanged: stop) -> groups -> user attributes -> fingerprint

The new fingerprint is written last, so a pass that raises part way leaves the
previous fingerprint in place and the next login retries the whole pass.
"""
from __future__ import annotations
import base64
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .email_allocator import EmailAllocator
from .fingerprint import FINGERPRINT_ATTRIBUTE, profile_fingerprint, tracked_group_attributes
from .group_reconciler import GroupReconciler, ReconcileResult
from .roles import Roles, flatten_roles
from .store.base import IdentityStore, UserRecord

logger = logging.getLogger(__name__)

USERNAME_PREFIX = "scoutnet|"
IMAGE_DATA_URI_PREFIX = "data:image/jpeg;base64,"


def local_username(member_no: int) -> str:
    """Stable local username for a Scoutnet member."""
    return f"{USERNAME_PREFIX}{member_no}"


@dataclass
class SyncOutcome:
    changed: bool
    fingerprint: str
    previous_fingerprint: Optional[str] = None
    reconcile: Optional[ReconcileResult] = None


class SyncService:
    """Reconciles one Scoutnet profile into the identity store.

    Stateless apart from its collaborators; build one per process and share it
    across logins.
    """

    def __init__(
        self,
        store: IdentityStore,
        reconciler: GroupReconciler,
        allocator: EmailAllocator,
        provider_version: str,
        tracked_attributes: Sequence[str] = ("domain",),
    ):
        self.store = store
        self.reconciler = reconciler
        self.allocator = allocator
        self.provider_version = provider_version
        self.tracked_attributes = list(tracked_attributes)

    def compute_fingerprint(self, user: UserRecord, profile_json: str, roles_json: Optional[str], image_bytes: Optional[bytes]) -> str:
        return profile_fingerprint(
            self.provider_version,
            profile_json,
            roles_json,
            image_bytes,
            tracked_group_attributes(self.store, user, self.tracked_attributes),
        )

    def sync(
        self,
        user: UserRecord,
        profile,
        profile_json: str,
        roles: Optional[Roles] = None,
        roles_json: Optional[str] = None,
        image_bytes: Optional[bytes] = None,
        correlation_id: str = "-",
    ) -> SyncOutcome:
        """Run one reconciliation pass for ``user``.

        Args:
            user: Local user record (created beforehand on first login)
            profile: Parsed Scoutnet profile
            profile_json: Raw profile payload, used for the fingerprint
            roles: Parsed roles, or None when unavailable
            roles_json: Raw roles payload, or None when unavailable
            image_bytes: Processed profile image, or None
            correlation_id: Login correlation id for log lines

        Returns:
            SyncOutcome describing whether anything was written
        """
        new_hash = self.compute_fingerprint(user, profile_json, roles_json, image_bytes)
        current_hash = self.store.get_user_attribute(user, FINGERPRINT_ATTRIBUTE)

        if new_hash == current_hash:
            logger.info(f"[{correlation_id}] Profile hash unchanged ({new_hash[:8]}), skipping update for user: {user.username}")
            return SyncOutcome(changed=False, fingerprint=new_hash, previous_fingerprint=current_hash)

        logger.info(
            f"[{correlation_id}] Profile hash changed (old: {current_hash[:8] if current_hash else 'null'}, "
            f"new: {new_hash[:8]}), updating user: {user.username}"
        )

        reconcile_result = self.reconciler.reconcile(user, profile, roles, correlation_id)
        self._apply_profile(user, profile, roles, image_bytes, correlation_id)

        # Group membership may have moved, which changes the tracked triples
        applied_hash = self.compute_fingerprint(user, profile_json, roles_json, image_bytes)
        self.store.set_user_attribute(user, FINGERPRINT_ATTRIBUTE, applied_hash)
        return SyncOutcome(
            changed=True,
            fingerprint=applied_hash,
            previous_fingerprint=current_hash,
            reconcile=reconcile_result,
        )

    def _apply_profile(self, user: UserRecord, profile, roles: Optional[Roles], image_bytes: Optional[bytes], correlation_id: str) -> None:
        store = self.store
        store.update_user_basics(user, profile.first_name, profile.last_name, profile.email)
        store.set_user_attribute(user, "scoutnet_member_no", str(profile.member_no))
        if profile.dob is not None:
            store.set_user_attribute(user, "scoutnet_dob", profile.dob)
        store.set_user_attribute(user, "scoutid_local_email", profile.scoutid_local_email)

        token = profile.first_last
        if token is not None and token.strip():
            store.set_user_attribute(user, "firstlast", token)
            aliases = self.allocator.apply(user, token)
            if aliases:
                logger.debug(f"[{correlation_id}] Group email aliases for {user.username}: {sorted(aliases.values())}")
        else:
            store.remove_user_attribute(user, "firstlast")
            self.allocator.clear(user)

        scouterna_email = profile.scouterna_email
        if scouterna_email is not None and scouterna_email.strip():
            store.set_user_attribute(user, "scouterna_email", scouterna_email)

        if image_bytes:
            encoded = base64.b64encode(image_bytes).decode("ascii")
            store.set_user_attribute(user, "picture", IMAGE_DATA_URI_PREFIX + encoded)

        if roles is not None:
            store.set_user_attribute_values(user, "roles", flatten_roles(roles))

        primary = profile.primary_membership()
        if primary is not None:
            membership_key, membership = primary
            if membership.group is not None and membership.group.name is not None:
                store.set_user_attribute(user, "scoutnet_primary_group_name", membership.group.name)
                store.set_user_attribute(user, "scoutnet_primary_group_no", membership_key)
