"""Command line helpers for the Scoutnet sync engine.

Offline subcommands (normalize-name, personnummer, flatten-roles,
fingerprint) work on local input only. ``login`` runs a full login against
the configured Scoutnet API and identity store, and ``verify-audit`` checks
the signatures in the sync audit trail.
"""
from __future__ import annotations
import argparse
import json
import os
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from scoutid import __version__
from scoutid.core import audit
from scoutid.core.exceptions import MalformedPayloadError
from scoutid.core.fingerprint import profile_fingerprint
from scoutid.core.normalizers import first_last, normalize_personnummer
from scoutid.core.roles import Roles, flatten_roles


def _read_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scoutnet to Keycloak sync helper")
    sub = parser.add_subparsers(dest="cmd")

    nn = sub.add_parser("normalize-name", help="Print the first.last token for a name")
    nn.add_argument("first")
    nn.add_argument("last")

    pn = sub.add_parser("personnummer", help="Normalize a personnummer to 12 digits")
    pn.add_argument("identifier")

    fr = sub.add_parser("flatten-roles", help="Flatten a roles JSON document into role strings")
    fr.add_argument("file", help="Path to roles JSON, or - for stdin")

    fp = sub.add_parser("fingerprint", help="Compute the profile fingerprint for a fresh user")
    fp.add_argument("--profile", required=True, help="Path to profile JSON")
    fp.add_argument("--roles", help="Path to roles JSON")
    fp.add_argument("--version", default=os.environ.get("SCOUTID_PROVIDER_VERSION", __version__))

    lg = sub.add_parser("login", help="Authenticate against Scoutnet and sync the local user")
    lg.add_argument("--username", required=True)
    lg.add_argument("--password", default=os.environ.get("SCOUTNET_PASSWORD"))

    sub.add_parser("verify-audit", help="Verify signatures in the sync audit trail")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return 0

    if args.cmd == "normalize-name":
        print(first_last(args.first, args.last))
        return 0

    if args.cmd == "personnummer":
        print(normalize_personnummer(args.identifier))
        return 0

    if args.cmd == "flatten-roles":
        try:
            roles = Roles.from_json(_read_text(args.file))
        except (OSError, MalformedPayloadError) as e:
            print(f"[flatten-roles] Error: {e}", file=sys.stderr)
            return 1
        for role in flatten_roles(roles):
            print(role)
        return 0

    if args.cmd == "fingerprint":
        try:
            profile_json = _read_text(args.profile)
            roles_json = _read_text(args.roles) if args.roles else None
        except OSError as e:
            print(f"[fingerprint] Error: {e}", file=sys.stderr)
            return 1
        print(profile_fingerprint(args.version, profile_json, roles_json, None))
        return 0

    if args.cmd == "verify-audit":
        total, valid = audit.verify_audit_log()
        print(f"Audit log: {valid}/{total} events with valid signatures")
        return 0 if total == valid else 1

    if args.cmd == "login":
        if not args.password:
            parser.error("Missing password (use --password or SCOUTNET_PASSWORD)")

        from scoutid.config import configure_logging, load_settings
        from scoutid.flask_app import build_login_service

        cfg = load_settings()
        configure_logging(cfg.log_level)
        result = build_login_service(cfg).login(args.username, args.password)
        print(json.dumps({
            "status": result.status,
            "username": result.username,
            "synced": result.synced,
            "correlation_id": result.correlation_id,
        }))
        return 0 if result.success else 1

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
