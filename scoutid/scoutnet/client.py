"""HTTP client for the Scoutnet member API.

Endpoints used:
- POST {base}/authenticate          -> token + member summary
- GET  {base}/get/profile           -> full profile JSON
- GET  {base}/get/user_roles        -> role hierarchy JSON
- GET  {base}/get/profile_image     -> raw image bytes

Only authentication failures are reported as structured results. Profile,
roles and image fetches return None on any failure and leave the decision to
the caller.
"""
from __future__ import annotations
import logging
from typing import Optional

import requests

from .images import process_image
from .models import AuthError, AuthResponse, AuthResult, ErrorResponse

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://scoutnet.se/api"
REQUEST_TIMEOUT = 10
INVALID_CREDENTIAL_STATUSES = {400, 401, 403}


class ScoutnetClient:
    """Thin requests-based client; one instance can be shared across logins."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = REQUEST_TIMEOUT, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def auth_url(self) -> str:
        return f"{self.base_url}/authenticate"

    @property
    def profile_url(self) -> str:
        return f"{self.base_url}/get/profile"

    @property
    def roles_url(self) -> str:
        return f"{self.base_url}/get/user_roles"

    @property
    def profile_image_url(self) -> str:
        return f"{self.base_url}/get/profile_image"

    def authenticate(self, username: str, password: str, correlation_id: str = "-") -> AuthResult:
        """Exchange credentials for an API token.

        Returns:
            AuthResult carrying the AuthResponse, or INVALID_CREDENTIALS /
            SERVICE_UNAVAILABLE
        """
        try:
            resp = self.session.post(
                self.auth_url,
                json={"username": username, "password": password},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[{correlation_id}] Failed to communicate with Scoutnet API for authentication: {e}")
            return AuthResult.failure(AuthError.SERVICE_UNAVAILABLE)

        if resp.status_code == 200:
            try:
                auth_response = AuthResponse.from_dict(resp.json())
            except ValueError as e:
                logger.error(f"[{correlation_id}] Scoutnet authentication returned an unreadable body: {e}")
                return AuthResult.failure(AuthError.SERVICE_UNAVAILABLE)
            if not auth_response.token:
                logger.error(f"[{correlation_id}] Scoutnet authentication succeeded without a token")
                return AuthResult.failure(AuthError.SERVICE_UNAVAILABLE)
            return AuthResult.success(auth_response)

        detail = self._error_detail(resp)
        if resp.status_code in INVALID_CREDENTIAL_STATUSES:
            logger.warning(f"[{correlation_id}] Scoutnet rejected credentials for user {username}. Status: {resp.status_code}, Error: {detail}")
            return AuthResult.failure(AuthError.INVALID_CREDENTIALS)

        logger.warning(f"[{correlation_id}] Scoutnet authentication unavailable. Status: {resp.status_code}, Error: {detail}")
        return AuthResult.failure(AuthError.SERVICE_UNAVAILABLE)

    def get_profile_json(self, token: str, correlation_id: str = "-") -> Optional[str]:
        """Fetch the raw profile JSON text, or None on failure."""
        return self._get_text(self.profile_url, token, "profile", correlation_id)

    def get_roles_json(self, token: str, correlation_id: str = "-") -> Optional[str]:
        """Fetch the raw roles JSON text, or None on failure."""
        return self._get_text(self.roles_url, token, "roles", correlation_id)

    def get_profile_image(self, token: str, correlation_id: str = "-") -> Optional[bytes]:
        """Fetch the profile image, scaled down for storage; None if absent or failed."""
        try:
            resp = self.session.get(
                self.profile_image_url,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[{correlation_id}] Failed to communicate with Scoutnet API for profile image fetch: {e}")
            return None

        if resp.status_code == 200:
            return process_image(resp.content)
        if resp.status_code == 404:
            logger.debug(f"[{correlation_id}] No profile image found for user.")
            return None
        logger.warning(f"[{correlation_id}] Scoutnet profile image fetch failed. Status: {resp.status_code}")
        return None

    def _get_text(self, url: str, token: str, what: str, correlation_id: str) -> Optional[str]:
        try:
            resp = self.session.get(
                url,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[{correlation_id}] Failed to communicate with Scoutnet API for {what} fetch: {e}")
            return None

        if resp.status_code != 200:
            logger.warning(f"[{correlation_id}] Scoutnet {what} fetch failed. Status: {resp.status_code}, Error: {self._error_detail(resp)}")
            return None
        return resp.text

    @staticmethod
    def _error_detail(resp: requests.Response) -> str:
        try:
            return ErrorResponse.from_dict(resp.json()).safe_error_message()
        except ValueError:
            return "Unknown error"
