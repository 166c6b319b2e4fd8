"""Tests for Keycloak Admin API client token handling."""
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
import requests

from scoutid.core.keycloak import KeycloakAPIError, KeycloakClient
from scoutid.core.keycloak.client import created_id


def _response(status_code=200, payload=None, url="http://kc"):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    resp.text = "error"
    resp.url = url
    return resp


@pytest.fixture()
def token_calls(monkeypatch):
    calls = []

    def fake_post(url, data=None, json=None, **kwargs):
        if url.endswith("/protocol/openid-connect/token"):
            calls.append(data)
            return _response(200, {"access_token": f"token-{len(calls)}", "expires_in": 300})
        return _response(201)

    monkeypatch.setattr(requests, "post", fake_post)
    return calls


def test_requests_before_credentials_fail():
    client = KeycloakClient("http://kc")
    with pytest.raises(KeycloakAPIError):
        client.get("/admin/realms/scouterna/users")


def test_first_request_fetches_token(monkeypatch, token_calls):
    seen = {}

    def fake_get(url, params=None, headers=None, **kwargs):
        seen["url"] = url
        seen["auth"] = headers["Authorization"]
        return _response(200, [])

    monkeypatch.setattr(requests, "get", fake_get)
    client = KeycloakClient("http://kc/")
    client.use_service_account("scouterna", "scoutid-sync", "secret")

    client.get("/admin/realms/scouterna/users")

    assert seen == {"url": "http://kc/admin/realms/scouterna/users", "auth": "Bearer token-1"}
    assert token_calls[0]["grant_type"] == "client_credentials"
    assert token_calls[0]["client_id"] == "scoutid-sync"


def test_expired_token_is_refreshed(monkeypatch, token_calls):
    monkeypatch.setattr(requests, "get", lambda *a, **k: _response(200, []))
    client = KeycloakClient("http://kc")
    client.authenticate_service_account("scouterna", "scoutid-sync", "secret")
    client.get("/x")
    assert len(token_calls) == 1

    client._token_expires_at = datetime.now() + timedelta(seconds=5)
    client.get("/x")
    assert len(token_calls) == 2


def test_token_failure_raises(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *a, **k: _response(401))
    client = KeycloakClient("http://kc")
    with pytest.raises(KeycloakAPIError) as excinfo:
        client.authenticate_service_account("scouterna", "scoutid-sync", "bad")
    assert excinfo.value.status_code == 401


def test_http_errors_raise_with_status(monkeypatch, token_calls):
    monkeypatch.setattr(requests, "put", lambda *a, **k: _response(409, url="http://kc/x"))
    client = KeycloakClient("http://kc")
    client.use_service_account("scouterna", "scoutid-sync", "secret")
    with pytest.raises(KeycloakAPIError) as excinfo:
        client.put("/x", json={})
    assert excinfo.value.status_code == 409


def test_created_id_from_location():
    resp = MagicMock()
    resp.headers = {"Location": "http://kc/admin/realms/scouterna/groups/abc-123"}
    assert created_id(resp) == "abc-123"
