"""Core Business Logic Module

This module provides the identity synchronization engine, independent of
the HTTP framework.

Module Structure:
    - normalizers.py      : Name token and personnummer normalization
    - roles.py            : Role map parsing and permission flattening
    - fingerprint.py      : Change detection digest
    - group_reconciler.py : Group creation, attributes, join and prune
    - email_allocator.py  : Per-group unique email aliases
    - sync_service.py     : Orchestrates one reconciliation pass
    - login_service.py    : Login flow that feeds the sync pass
    - audit.py            : Signed audit trail of sync events
    - store/              : Identity store contract and in-memory store
    - keycloak/           : Keycloak Admin API backed identity store

Usage Pattern:
    These modules are NOT auto-imported to avoid Flask dependencies
    when using only the engine standalone.

        from scoutid.core.roles import Roles, flatten_roles
        from scoutid.core.sync_service import SyncService
"""
