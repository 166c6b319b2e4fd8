"""Typed exceptions for the synchronization engine."""


class ScoutIdError(Exception):
    """Base exception for all ScoutID sync operations."""
    pass


class StoreError(ScoutIdError):
    """Identity store operation failed."""
    pass


class StoreConflictError(StoreError):
    """Write rejected by a uniqueness constraint in the identity store.

    Raised by store adapters when a concurrent writer got there first. The
    engine recovers by re-running its existence check.
    """
    pass


class UserAlreadyExistsError(StoreConflictError):
    """User creation failed - username already exists."""
    pass


class GroupAlreadyExistsError(StoreConflictError):
    """Group creation failed - a sibling with the same name exists."""
    pass


class AttributeValueConflictError(StoreConflictError):
    """Attribute value is already held by another user."""

    def __init__(self, name: str, value: str):
        self.name = name
        self.value = value
        super().__init__(f"Value '{value}' for attribute '{name}' is already in use")


class MalformedPayloadError(ScoutIdError):
    """Upstream payload could not be parsed into the expected shape."""
    pass
