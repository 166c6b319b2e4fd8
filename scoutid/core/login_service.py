"""Login flow that authenticates against Scoutnet and syncs the local user.

Authentication outcome and sync outcome are kept apart: once Scoutnet accepts
the credentials and the profile is readable, the login succeeds even if the
sync pass fails. Stale attributes are preferred over blocking sign-in.
"""
from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from . import audit
from .exceptions import MalformedPayloadError, UserAlreadyExistsError
from .normalizers import needs_personnummer_normalization, normalize_personnummer
from .roles import Roles
from .store.base import IdentityStore, UserRecord
from .sync_service import SyncOutcome, SyncService, local_username
from scoutid.scoutnet.models import AuthError, Profile

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_INVALID_REQUEST = "invalid_request"
STATUS_INVALID_CREDENTIALS = "invalid_credentials"
STATUS_SERVICE_UNAVAILABLE = "service_unavailable"
STATUS_PROFILE_UNAVAILABLE = "profile_unavailable"
STATUS_STORE_UNAVAILABLE = "store_unavailable"

MAX_CREATE_ATTEMPTS = 3


@dataclass
class LoginResult:
    status: str
    username: Optional[str] = None
    synced: bool = False
    message_key: Optional[str] = None
    correlation_id: str = "-"
    sync: Optional[SyncOutcome] = None

    @property
    def success(self) -> bool:
        return self.status == STATUS_SUCCESS


def new_correlation_id() -> str:
    return uuid.uuid4().hex[:8]


def mask_identifier(identifier: str) -> str:
    """Keep login identifiers (often a personnummer) out of the audit trail."""
    if len(identifier) <= 4:
        return "***"
    return identifier[:4] + "***"


class LoginService:
    """Runs authenticate -> fetch -> find/create user -> sync for one login."""

    def __init__(
        self,
        scoutnet,
        store: IdentityStore,
        sync_service: SyncService,
        *,
        fetch_image: bool = False,
        audit_enabled: bool = True,
        realm: str = "scouterna",
        today: Callable[[], date] = date.today,
    ):
        self.scoutnet = scoutnet
        self.store = store
        self.sync_service = sync_service
        self.fetch_image = fetch_image
        self.audit_enabled = audit_enabled
        self.realm = realm
        self.today = today

    def _audit(self, event_type, username: str, correlation_id: str, details: Optional[dict] = None, success: bool = True) -> None:
        if self.audit_enabled:
            audit.safe_log_sync_event(
                event_type,
                username,
                correlation_id=correlation_id,
                realm=self.realm,
                details=details,
                success=success,
            )

    def normalize_identifier(self, identifier: str) -> str:
        identifier = identifier.strip()
        if not needs_personnummer_normalization(identifier):
            return identifier
        return normalize_personnummer(identifier, today=self.today())

    def login(self, identifier: Optional[str], secret: Optional[str]) -> LoginResult:
        """Authenticate a member and reconcile their local user.

        Args:
            identifier: Personnummer, member number or email as typed
            secret: Scoutnet password

        Returns:
            LoginResult; ``synced`` is False when the sync pass raised
        """
        correlation_id = new_correlation_id()
        logger.info(f"[{correlation_id}] Processing Scoutnet login")

        if not identifier or not identifier.strip() or not secret:
            return self._fail(identifier or "", STATUS_INVALID_REQUEST, "missingCredentials", correlation_id)

        username = self.normalize_identifier(identifier)

        auth_result = self.scoutnet.authenticate(username, secret, correlation_id)
        if not auth_result.is_success:
            status = STATUS_INVALID_CREDENTIALS if auth_result.error is AuthError.INVALID_CREDENTIALS else STATUS_SERVICE_UNAVAILABLE
            return self._fail(username, status, auth_result.message_key, correlation_id)

        token = auth_result.auth_response.token
        profile_json = self.scoutnet.get_profile_json(token, correlation_id)
        if profile_json is None:
            logger.error(f"[{correlation_id}] Could not retrieve user profile from Scoutnet after successful login for user: {username}")
            return self._fail(username, STATUS_PROFILE_UNAVAILABLE, "profileUnavailable", correlation_id)

        try:
            profile = Profile.from_json(profile_json)
        except MalformedPayloadError as e:
            logger.error(f"[{correlation_id}] Could not parse user profile from Scoutnet for user {username}: {e}")
            return self._fail(username, STATUS_PROFILE_UNAVAILABLE, "profileUnavailable", correlation_id)

        roles, roles_json = self._fetch_roles(token, correlation_id)
        image_bytes = self._fetch_image(token, correlation_id) if self.fetch_image else None

        local_name = local_username(profile.member_no)
        try:
            user = self.find_or_create_user(local_name, profile.member_no, correlation_id)
        except Exception as e:
            logger.exception(f"[{correlation_id}] Could not resolve local user {local_name}: {e}")
            return self._fail(username, STATUS_STORE_UNAVAILABLE, "storeUnavailable", correlation_id)

        result = LoginResult(status=STATUS_SUCCESS, username=local_name, correlation_id=correlation_id)
        try:
            outcome = self.sync_service.sync(
                user,
                profile,
                profile_json,
                roles=roles,
                roles_json=roles_json,
                image_bytes=image_bytes,
                correlation_id=correlation_id,
            )
        except Exception as e:
            logger.exception(f"[{correlation_id}] Profile sync failed for user {local_name}: {e}")
            self._audit("sync_failed", local_name, correlation_id, details={"error": str(e)}, success=False)
            return result

        result.synced = True
        result.sync = outcome
        if outcome.changed:
            details = {"fingerprint": outcome.fingerprint[:8]}
            if outcome.reconcile is not None:
                details.update(
                    created=outcome.reconcile.created,
                    joined=outcome.reconcile.joined,
                    left=outcome.reconcile.left,
                )
            self._audit("profile_synced", local_name, correlation_id, details=details)
        else:
            self._audit("profile_unchanged", local_name, correlation_id, details={"fingerprint": outcome.fingerprint[:8]})

        logger.info(f"[{correlation_id}] Authentication successful for user: {local_name}")
        return result

    def find_or_create_user(self, username: str, member_no: int, correlation_id: str = "-") -> UserRecord:
        """Return the local user, creating it on first login; a lost create race falls back to lookup."""
        for _ in range(MAX_CREATE_ATTEMPTS):
            user = self.store.find_user_by_username(username)
            if user is not None:
                logger.debug(f"[{correlation_id}] Found existing user: {username}, checking for profile updates.")
                return user
            try:
                user = self.store.create_user(username)
            except UserAlreadyExistsError:
                logger.debug(f"[{correlation_id}] User {username} created concurrently, retrying lookup")
                continue
            logger.info(f"[{correlation_id}] First time login for Scoutnet member: {member_no}. Created user: {username}.")
            self._audit("user_created", username, correlation_id, details={"member_no": member_no})
            return user
        raise UserAlreadyExistsError(f"User '{username}' exists but cannot be found")

    def _fetch_roles(self, token: str, correlation_id: str) -> tuple[Optional[Roles], Optional[str]]:
        roles_json = self.scoutnet.get_roles_json(token, correlation_id)
        if roles_json is None:
            logger.info(f"[{correlation_id}] Could not retrieve user roles from Scoutnet after successful login.")
            return None, None
        try:
            return Roles.from_json(roles_json), roles_json
        except MalformedPayloadError as e:
            logger.warning(f"[{correlation_id}] Could not parse user roles from Scoutnet: {e}")
            return None, None

    def _fetch_image(self, token: str, correlation_id: str) -> Optional[bytes]:
        try:
            return self.scoutnet.get_profile_image(token, correlation_id)
        except Exception as e:
            logger.warning(f"[{correlation_id}] Could not retrieve profile image from Scoutnet: {e}")
            return None

    def _fail(self, username: str, status: str, message_key: Optional[str], correlation_id: str) -> LoginResult:
        logger.error(f"[{correlation_id}] Authentication failed for user {username}: {message_key}")
        self._audit("login_failed", mask_identifier(username), correlation_id, details={"status": status}, success=False)
        return LoginResult(status=status, message_key=message_key, correlation_id=correlation_id)
