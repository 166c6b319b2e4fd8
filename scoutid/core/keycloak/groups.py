"""Keycloak group and membership operations used by the sync engine."""
from __future__ import annotations
import logging
from typing import Optional, List

from ..exceptions import GroupAlreadyExistsError
from .client import KeycloakClient, created_id
from .exceptions import KeycloakAPIError

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class GroupService:
    """Service for managing Keycloak groups and memberships."""

    def __init__(self, client: KeycloakClient):
        self.client = client

    def get_root_group(self, realm: str, name: str) -> Optional[dict]:
        """Retrieve a top-level group by exact name.

        Keycloak's search also returns matching subgroups nested in their
        parents, so only an exact ``/name`` path counts.
        """
        resp = self.client.get(
            f"/admin/realms/{realm}/groups",
            params={"search": name, "exact": "true", "briefRepresentation": "false"},
        )
        for group in resp.json() or []:
            if group.get("path") == f"/{name}":
                return group
        return None

    def get_group(self, realm: str, group_id: str) -> dict:
        return self.client.get(f"/admin/realms/{realm}/groups/{group_id}").json()

    def get_children(self, realm: str, group_id: str) -> List[dict]:
        """Return all direct children, following pagination."""
        children: List[dict] = []
        first = 0
        while True:
            resp = self.client.get(
                f"/admin/realms/{realm}/groups/{group_id}/children",
                params={"first": first, "max": PAGE_SIZE, "briefRepresentation": "false"},
            )
            page = resp.json() or []
            children.extend(page)
            if len(page) < PAGE_SIZE:
                return children
            first += PAGE_SIZE

    def create_group(self, realm: str, name: str, parent_id: Optional[str] = None) -> dict:
        """Create a root group or a child of ``parent_id``.

        Raises:
            GroupAlreadyExistsError: Keycloak answered 409
        """
        path = f"/admin/realms/{realm}/groups"
        if parent_id is not None:
            path = f"{path}/{parent_id}/children"
        try:
            resp = self.client.post(path, json={"name": name})
        except KeycloakAPIError as e:
            if e.status_code == 409:
                raise GroupAlreadyExistsError(f"Group '{name}' already exists") from e
            raise
        group_id = created_id(resp)
        logger.debug(f"Created Keycloak group {name} (id={group_id})")
        return self.get_group(realm, group_id)

    def update_group(self, realm: str, group_id: str, representation: dict) -> None:
        self.client.put(f"/admin/realms/{realm}/groups/{group_id}", json=representation)

    def get_user_groups(self, realm: str, user_id: str) -> List[dict]:
        resp = self.client.get(
            f"/admin/realms/{realm}/users/{user_id}/groups",
            params={"briefRepresentation": "false"},
        )
        return resp.json() or []

    def add_user_to_group(self, realm: str, user_id: str, group_id: str) -> None:
        """Add a user to a group (idempotent in Keycloak)."""
        self.client.put(f"/admin/realms/{realm}/users/{user_id}/groups/{group_id}")

    def remove_user_from_group(self, realm: str, user_id: str, group_id: str) -> bool:
        """Remove a user from a group.

        Returns:
            True if removed, False if the membership or group was already gone
        """
        try:
            self.client.delete(f"/admin/realms/{realm}/users/{user_id}/groups/{group_id}")
        except KeycloakAPIError as e:
            if e.status_code == 404:
                return False
            raise
        return True
