"""Tests for the login flow around the sync engine."""
import json
import struct
import zlib
from datetime import date
from unittest.mock import MagicMock

import pytest

from scoutid.core import login_service as ls
from scoutid.core.exceptions import UserAlreadyExistsError
from scoutid.core.login_service import LoginService, mask_identifier
from scoutid.scoutnet.client import ScoutnetClient
from scoutid.scoutnet.models import AuthError, AuthResponse, AuthResult

from conftest import make_profile_payload

ROLES_JSON = json.dumps({"group": {"764": {"1": "leader"}}})


@pytest.fixture()
def scoutnet():
    client = MagicMock()
    client.authenticate.return_value = AuthResult.success(AuthResponse(token="tok"))
    client.get_profile_json.return_value = json.dumps(make_profile_payload())
    client.get_roles_json.return_value = ROLES_JSON
    client.get_profile_image.return_value = None
    return client


@pytest.fixture()
def service(scoutnet, store, sync_service):
    return LoginService(scoutnet, store, sync_service, today=lambda: date(2026, 10, 19))


def _events(audit_file):
    return [json.loads(line) for line in audit_file.read_text().splitlines()]


def test_successful_first_login_creates_and_syncs(service, store, scoutnet, temp_audit_dir):
    _, audit_file = temp_audit_dir

    result = service.login("3169207", "secret")

    assert result.success
    assert result.synced
    assert result.username == "scoutnet|3169207"
    assert len(result.correlation_id) == 8
    user = store.find_user_by_username("scoutnet|3169207")
    assert store.get_user_attribute(user, "firstlast") == "anna.berg"
    assert "group:764:leader" in store.get_user_attribute_values(user, "roles")
    scoutnet.authenticate.assert_called_once_with("3169207", "secret", result.correlation_id)
    scoutnet.get_profile_image.assert_not_called()
    assert [e["event_type"] for e in _events(audit_file)] == ["user_created", "profile_synced"]


def test_second_login_is_unchanged(service, temp_audit_dir):
    _, audit_file = temp_audit_dir
    service.login("3169207", "secret")

    result = service.login("3169207", "secret")

    assert result.success
    assert result.synced
    assert not result.sync.changed
    assert _events(audit_file)[-1]["event_type"] == "profile_unchanged"


def test_personnummer_is_normalized_before_authenticate(service, scoutnet):
    service.login("300101-1234", "secret")
    assert scoutnet.authenticate.call_args[0][0] == "193001011234"


def test_email_identifier_is_passed_through(service, scoutnet):
    service.login(" anna@example.com ", "secret")
    assert scoutnet.authenticate.call_args[0][0] == "anna@example.com"


@pytest.mark.parametrize("identifier,secret", [("", "x"), ("   ", "x"), (None, "x"), ("3169207", ""), ("3169207", None)])
def test_blank_credentials_are_rejected(service, scoutnet, identifier, secret):
    result = service.login(identifier, secret)
    assert result.status == ls.STATUS_INVALID_REQUEST
    scoutnet.authenticate.assert_not_called()


def test_invalid_credentials(service, scoutnet, temp_audit_dir):
    _, audit_file = temp_audit_dir
    scoutnet.authenticate.return_value = AuthResult.failure(AuthError.INVALID_CREDENTIALS)

    result = service.login("3001011234", "wrong")

    assert result.status == ls.STATUS_INVALID_CREDENTIALS
    assert result.message_key == "scoutnet.auth.invalid.credentials"
    event = _events(audit_file)[-1]
    assert event["event_type"] == "login_failed"
    assert event["username"] == "1930***"
    assert "3001011234" not in audit_file.read_text()


def test_service_unavailable(service, scoutnet):
    scoutnet.authenticate.return_value = AuthResult.failure(AuthError.SERVICE_UNAVAILABLE)
    assert service.login("3169207", "secret").status == ls.STATUS_SERVICE_UNAVAILABLE


def test_missing_profile_fails_login(service, scoutnet, store):
    scoutnet.get_profile_json.return_value = None
    result = service.login("3169207", "secret")
    assert result.status == ls.STATUS_PROFILE_UNAVAILABLE
    assert store.find_user_by_username("scoutnet|3169207") is None


def test_unparseable_profile_fails_login(service, scoutnet):
    scoutnet.get_profile_json.return_value = "<html>oops</html>"
    assert service.login("3169207", "secret").status == ls.STATUS_PROFILE_UNAVAILABLE


def test_missing_roles_still_syncs(service, scoutnet, store):
    scoutnet.get_roles_json.return_value = None
    result = service.login("3169207", "secret")
    assert result.synced
    user = store.find_user_by_username("scoutnet|3169207")
    assert store.get_user_attribute_values(user, "roles") == []


def test_malformed_roles_are_treated_as_missing(service, scoutnet):
    scoutnet.get_roles_json.return_value = '{"group": "leader"}'
    result = service.login("3169207", "secret")
    assert result.synced


def test_image_fetched_when_enabled(scoutnet, store, sync_service):
    scoutnet.get_profile_image.return_value = b"jpeg"
    service = LoginService(scoutnet, store, sync_service, fetch_image=True)
    service.login("3169207", "secret")
    user = store.find_user_by_username("scoutnet|3169207")
    assert store.get_user_attribute(user, "picture").startswith("data:image/jpeg;base64,")


def _chunk(kind, data):
    return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data))


def _oversized_png():
    ihdr = struct.pack(">IIBBBBB", 30000, 30000, 8, 2, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + _chunk(b"IHDR", ihdr) + _chunk(b"IDAT", zlib.compress(b"\x00")) + _chunk(b"IEND", b"")


def test_oversized_image_does_not_fail_login(store, sync_service):
    session = MagicMock()
    session.post.return_value = MagicMock(status_code=200, json=MagicMock(return_value={"token": "tok"}))
    profile = MagicMock(status_code=200, text=json.dumps(make_profile_payload()))
    roles = MagicMock(status_code=200, text=ROLES_JSON)
    image = MagicMock(status_code=200, content=_oversized_png())

    def fake_get(url, **kwargs):
        if url.endswith("/get/profile_image"):
            return image
        if url.endswith("/get/user_roles"):
            return roles
        return profile

    session.get.side_effect = fake_get
    client = ScoutnetClient("https://scoutnet.example/api", session=session)
    service = LoginService(client, store, sync_service, fetch_image=True)

    result = service.login("3169207", "secret")

    assert result.success
    assert result.synced
    user = store.find_user_by_username("scoutnet|3169207")
    assert store.get_user_attribute(user, "picture") is None


def test_image_fetch_error_is_not_fatal(scoutnet, store, sync_service):
    scoutnet.get_profile_image.side_effect = RuntimeError("decoder exploded")
    service = LoginService(scoutnet, store, sync_service, fetch_image=True)

    result = service.login("3169207", "secret")

    assert result.success
    assert result.synced


def test_sync_failure_does_not_fail_login(service, sync_service, temp_audit_dir):
    _, audit_file = temp_audit_dir

    def boom(*args, **kwargs):
        raise RuntimeError("keycloak exploded")

    sync_service.sync = boom
    result = service.login("3169207", "secret")

    assert result.success
    assert result.synced is False
    event = _events(audit_file)[-1]
    assert event["event_type"] == "sync_failed"
    assert event["success"] is False


def test_store_failure_before_sync_fails_login(service, store):
    def boom(*args, **kwargs):
        raise ConnectionError("store down")

    store.find_user_by_username = boom
    assert service.login("3169207", "secret").status == ls.STATUS_STORE_UNAVAILABLE


def test_find_or_create_recovers_from_concurrent_create(service, store):
    real_create = store.create_user

    def racing_create(username):
        real_create(username)
        raise UserAlreadyExistsError(username)

    store.create_user = racing_create
    user = service.find_or_create_user("scoutnet|1", 1)
    assert user.username == "scoutnet|1"


def test_audit_can_be_disabled(scoutnet, store, sync_service, temp_audit_dir):
    _, audit_file = temp_audit_dir
    LoginService(scoutnet, store, sync_service, audit_enabled=False).login("3169207", "secret")
    assert not audit_file.exists()


def test_mask_identifier():
    assert mask_identifier("193001011234") == "1930***"
    assert mask_identifier("abc") == "***"
