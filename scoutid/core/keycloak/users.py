"""Keycloak user operations used by the sync engine."""
from __future__ import annotations
import logging
from typing import Optional, List

from ..exceptions import UserAlreadyExistsError
from .client import KeycloakClient, created_id
from .exceptions import KeycloakAPIError

logger = logging.getLogger(__name__)


class UserService:
    """Service for reading and writing Keycloak user representations."""

    def __init__(self, client: KeycloakClient):
        self.client = client

    def get_user_by_username(self, realm: str, username: str) -> Optional[dict]:
        """Return the user representation that exactly matches the username."""
        resp = self.client.get(f"/admin/realms/{realm}/users", params={"username": username, "exact": "true"})
        for user in resp.json() or []:
            if user.get("username") == username:
                return user
        return None

    def get_user(self, realm: str, user_id: str) -> dict:
        return self.client.get(f"/admin/realms/{realm}/users/{user_id}").json()

    def create_user(self, realm: str, username: str) -> dict:
        """Create an enabled user with no credentials.

        Raises:
            UserAlreadyExistsError: Keycloak answered 409
        """
        try:
            resp = self.client.post(f"/admin/realms/{realm}/users", json={"username": username, "enabled": True})
        except KeycloakAPIError as e:
            if e.status_code == 409:
                raise UserAlreadyExistsError(f"User '{username}' already exists") from e
            raise
        user_id = created_id(resp)
        logger.debug(f"Created Keycloak user {username} (id={user_id})")
        return self.get_user(realm, user_id)

    def update_user(self, realm: str, user_id: str, representation: dict) -> None:
        """Replace the user representation; attributes are replaced as a whole map."""
        self.client.put(f"/admin/realms/{realm}/users/{user_id}", json=representation)

    def find_users_by_attribute(self, realm: str, name: str, value: str) -> List[dict]:
        """Return users whose attribute ``name`` holds ``value``."""
        resp = self.client.get(
            f"/admin/realms/{realm}/users",
            params={"q": f"{name}:{value}", "briefRepresentation": "false"},
        )
        return [
            user for user in resp.json() or []
            if value in (user.get("attributes") or {}).get(name, [])
        ]
