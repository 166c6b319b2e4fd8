"""Pytest shared fixtures for the sync engine tests."""
import json
import os
import pathlib
import sys

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any scoutid imports
os.environ.setdefault("DEMO_MODE", "true")
os.environ.setdefault("SCOUTID_STORE", "memory")

import pytest
import requests

from scoutid.core import audit
from scoutid.core.email_allocator import EmailAllocator
from scoutid.core.group_reconciler import GroupReconciler
from scoutid.core.store import InMemoryIdentityStore
from scoutid.core.sync_service import SyncService
from scoutid.scoutnet.models import Profile


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """Prevent unit tests from hitting live Scoutnet or Keycloak endpoints.

    Integration tests are explicitly marked with @pytest.mark.integration and
    are allowed to perform real HTTP calls by skipping this fixture.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _blocked(*args, **kwargs):
        raise RuntimeError(f"Unexpected network access in tests: {args[:2]}")

    monkeypatch.setattr(requests, "get", _blocked)
    monkeypatch.setattr(requests, "post", _blocked)
    monkeypatch.setattr(requests, "put", _blocked)
    monkeypatch.setattr(requests, "delete", _blocked)
    monkeypatch.setattr(requests.Session, "request", _blocked)


@pytest.fixture(autouse=True)
def temp_audit_dir(monkeypatch, tmp_path):
    """Provide an isolated audit directory for each test."""
    audit_dir = tmp_path / "audit"
    audit_file = audit_dir / "sync-events.jsonl"
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_file)
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")
    monkeypatch.delenv("AUDIT_LOG_SIGNING_KEY_FILE", raising=False)
    return audit_dir, audit_file


# ─────────────────────────────────────────────────────────────────────────────
# Engine Fixtures
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def store():
    return InMemoryIdentityStore()


@pytest.fixture()
def reconciler(store):
    return GroupReconciler(store)


@pytest.fixture()
def allocator(store):
    return EmailAllocator(store)


@pytest.fixture()
def sync_service(store, reconciler, allocator):
    return SyncService(store, reconciler, allocator, provider_version="1.5.0")


@pytest.fixture()
def user(store):
    return store.create_user("scoutnet|3169207")


def _group(key, name):
    group = {"name": name}
    if key.isdigit():
        group["group_no"] = int(key)
    return group


def make_profile_payload(member_no=3169207, first_name="Anna", last_name="Berg", groups=None, primary=None, **extra):
    """Build a Scoutnet profile payload; ``groups`` maps membership key to group name."""
    groups = groups if groups is not None else {"764": "Testkåren"}
    primary = primary if primary is not None else next(iter(groups), None)
    payload = {
        "member_no": member_no,
        "first_name": first_name,
        "last_name": last_name,
        "email": "anna.berg@example.com",
        "dob": "2001-02-03",
        "last_login": "2026-10-19 08:00:00",
        "memberships": {
            "group": {
                key: {"is_primary": key == primary, "group": _group(key, name)}
                for key, name in groups.items()
            }
        } if groups else [],
        "contact_info": [],
    }
    payload.update(extra)
    return payload


def make_profile(**kwargs):
    """Return (Profile, raw JSON) for the payload built by make_profile_payload."""
    raw = json.dumps(make_profile_payload(**kwargs))
    return Profile.from_json(raw), raw


@pytest.fixture()
def profile_factory():
    """Expose make_profile to tests as a fixture."""
    return make_profile


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (requires running stack)"
    )

