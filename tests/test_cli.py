"""Tests for the scoutid_sync command line tool."""
import json
from unittest.mock import MagicMock

import scripts.scoutid_sync as cli
from scoutid.core import audit
from scoutid.core.fingerprint import profile_fingerprint


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 0
    assert "usage" in capsys.readouterr().out


def test_normalize_name(capsys):
    assert cli.main(["normalize-name", "Åsa", "Müller"]) == 0
    assert capsys.readouterr().out.strip() == "asa.muller"


def test_personnummer_twelve_digits(capsys):
    assert cli.main(["personnummer", "19300101-1234"]) == 0
    assert capsys.readouterr().out.strip() == "193001011234"


def test_flatten_roles(tmp_path, capsys):
    roles_file = tmp_path / "roles.json"
    roles_file.write_text(json.dumps({"organisation": {"692": {"68": "board_member"}}}))

    assert cli.main(["flatten-roles", str(roles_file)]) == 0
    assert capsys.readouterr().out.split() == [
        "*:*:board_member",
        "organisation:*:*",
        "organisation:*:board_member",
        "organisation:692:*",
        "organisation:692:board_member",
    ]


def test_flatten_roles_malformed(tmp_path, capsys):
    roles_file = tmp_path / "roles.json"
    roles_file.write_text('{"group": "leader"}')
    assert cli.main(["flatten-roles", str(roles_file)]) == 1
    assert "Error" in capsys.readouterr().err


def test_fingerprint(tmp_path, capsys):
    profile = '{"member_no": 1}'
    profile_file = tmp_path / "profile.json"
    profile_file.write_text(profile)

    assert cli.main(["fingerprint", "--profile", str(profile_file), "--version", "1.4.0"]) == 0
    assert capsys.readouterr().out.strip() == profile_fingerprint("1.4.0", profile, None, None)


def test_fingerprint_missing_file(tmp_path):
    assert cli.main(["fingerprint", "--profile", str(tmp_path / "missing.json")]) == 1


def test_verify_audit(temp_audit_dir, capsys):
    audit.log_sync_event("profile_synced", "scoutnet|1")
    assert cli.main(["verify-audit"]) == 0
    assert "1/1" in capsys.readouterr().out


def test_login_uses_configured_service(monkeypatch, capsys):
    result = MagicMock(status="success", username="scoutnet|1", synced=True, correlation_id="abcd1234", success=True)
    service = MagicMock()
    service.login.return_value = result
    monkeypatch.setattr("scoutid.flask_app.build_login_service", lambda cfg: service)
    monkeypatch.setenv("DEMO_MODE", "true")
    monkeypatch.delenv("FLASK_SECRET_KEY", raising=False)
    monkeypatch.setenv("SCOUTID_STORE", "memory")

    assert cli.main(["login", "--username", "3169207", "--password", "secret"]) == 0

    service.login.assert_called_once_with("3169207", "secret")
    assert json.loads(capsys.readouterr().out)["username"] == "scoutnet|1"
