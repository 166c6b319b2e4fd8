"""Low-level HTTP client for Keycloak Admin API.

Handles service account authentication, token refresh and HTTP operations.
"""
from __future__ import annotations
import logging
from typing import Optional, Dict, Any
from datetime import datetime, timedelta

import requests

from .exceptions import KeycloakAPIError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 5
DEFAULT_TOKEN_LIFETIME = 60
REFRESH_MARGIN_SECONDS = 10


class KeycloakClient:
    """HTTP client for Keycloak Admin API with automatic token management.

    Usage:
        client = KeycloakClient("http://keycloak:8080")
        client.authenticate_service_account("scouterna", "scoutid-sync", secret)
        response = client.get("/admin/realms/scouterna/users")
    """

    def __init__(self, base_url: str, timeout: float = REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self._auth_params: Dict[str, Any] = {}

    def authenticate_service_account(self, auth_realm: str, client_id: str, client_secret: str) -> str:
        """Authenticate as service account and store credentials for auto-refresh.

        Args:
            auth_realm: Realm where service account client exists
            client_id: Service account client ID
            client_secret: Service account client secret

        Returns:
            Access token
        """
        self.use_service_account(auth_realm, client_id, client_secret)
        self._refresh_token()
        return self._token

    def use_service_account(self, auth_realm: str, client_id: str, client_secret: str) -> None:
        """Store service account credentials; the first request fetches the token."""
        self._auth_params = {
            "auth_realm": auth_realm,
            "client_id": client_id,
            "client_secret": client_secret,
        }
        self._token = None
        self._token_expires_at = None

    @property
    def has_credentials(self) -> bool:
        return bool(self._auth_params)

    def _refresh_token(self) -> None:
        payload = self._get_service_account_token(
            self._auth_params["auth_realm"],
            self._auth_params["client_id"],
            self._auth_params["client_secret"],
        )
        self._token = payload["access_token"]
        lifetime = int(payload.get("expires_in") or DEFAULT_TOKEN_LIFETIME)
        self._token_expires_at = datetime.now() + timedelta(seconds=lifetime)
        logger.debug(f"Obtained service account token for {self._auth_params['client_id']} (expires in {lifetime}s)")

    def _ensure_authenticated(self) -> None:
        """Ensure we have a valid token, refreshing if necessary."""
        if not self._auth_params:
            raise KeycloakAPIError(401, "Not authenticated - call authenticate_service_account first", "")

        if not self._token or not self._token_expires_at or datetime.now() >= self._token_expires_at - timedelta(seconds=REFRESH_MARGIN_SECONDS):
            self._refresh_token()

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = dict(extra or {})
        headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute GET request with automatic authentication.

        Raises:
            KeycloakAPIError: On HTTP error
        """
        self._ensure_authenticated()
        headers = self._headers(kwargs.pop("headers", None))
        resp = requests.get(f"{self.base_url}{path}", params=params, headers=headers, timeout=self.timeout, **kwargs)
        self._handle_error(resp)
        return resp

    def post(self, path: str, json: Optional[Any] = None, **kwargs) -> requests.Response:
        """Execute POST request with automatic authentication.

        Raises:
            KeycloakAPIError: On HTTP error
        """
        self._ensure_authenticated()
        headers = self._headers(kwargs.pop("headers", None))
        resp = requests.post(f"{self.base_url}{path}", json=json, headers=headers, timeout=self.timeout, **kwargs)
        self._handle_error(resp)
        return resp

    def put(self, path: str, json: Optional[Any] = None, **kwargs) -> requests.Response:
        """Execute PUT request with automatic authentication.

        Raises:
            KeycloakAPIError: On HTTP error
        """
        self._ensure_authenticated()
        headers = self._headers(kwargs.pop("headers", None))
        resp = requests.put(f"{self.base_url}{path}", json=json, headers=headers, timeout=self.timeout, **kwargs)
        self._handle_error(resp)
        return resp

    def delete(self, path: str, **kwargs) -> requests.Response:
        """Execute DELETE request with automatic authentication.

        Raises:
            KeycloakAPIError: On HTTP error
        """
        self._ensure_authenticated()
        headers = self._headers(kwargs.pop("headers", None))
        resp = requests.delete(f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs)
        self._handle_error(resp)
        return resp

    def _get_service_account_token(self, auth_realm: str, client_id: str, client_secret: str) -> Dict[str, Any]:
        """Fetch a service account token using client credentials flow."""
        url = f"{self.base_url}/realms/{auth_realm}/protocol/openid-connect/token"
        data = {
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
        }
        resp = requests.post(url, data=data, timeout=self.timeout)
        if resp.status_code != 200:
            raise KeycloakAPIError(resp.status_code, resp.text, url)
        return resp.json()

    def _handle_error(self, resp: requests.Response) -> None:
        """Raise KeycloakAPIError when the response status indicates an error."""
        if resp.status_code >= 400:
            raise KeycloakAPIError(resp.status_code, resp.text, resp.url)


def created_id(resp: requests.Response) -> str:
    """Extract the new resource id from a 201 response's Location header."""
    location = resp.headers.get("Location", "")
    if not location:
        raise KeycloakAPIError(resp.status_code, "Created resource has no Location header", resp.url)
    return location.rstrip("/").rsplit("/", 1)[-1]
