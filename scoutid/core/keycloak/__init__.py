"""Keycloak Admin API adapter.

Architecture:
- client.py: HTTP client with service account authentication and auto-refresh
- users.py: user lookup, creation and attribute writes
- groups.py: group hierarchy and membership
- store.py: IdentityStore implementation over the two services
- exceptions.py: typed exceptions for error handling

Usage:
    from scoutid.core.keycloak import KeycloakClient, KeycloakIdentityStore

    client = KeycloakClient("http://keycloak:8080")
    client.authenticate_service_account("scouterna", "scoutid-sync", secret)
    store = KeycloakIdentityStore(client, "scouterna")
"""
from .client import KeycloakClient, REQUEST_TIMEOUT
from .exceptions import KeycloakError, KeycloakAPIError
from .groups import GroupService
from .store import KeycloakIdentityStore
from .users import UserService

__all__ = [
    "KeycloakClient",
    "REQUEST_TIMEOUT",
    "KeycloakError",
    "KeycloakAPIError",
    "GroupService",
    "UserService",
    "KeycloakIdentityStore",
]
