"""Login endpoint: authenticate against Scoutnet and sync the local user."""
from __future__ import annotations
import logging

from flask import Blueprint, current_app, jsonify, request

from scoutid.core import login_service as ls

logger = logging.getLogger(__name__)

bp = Blueprint("login", __name__)

STATUS_CODES = {
    ls.STATUS_SUCCESS: 200,
    ls.STATUS_INVALID_REQUEST: 400,
    ls.STATUS_INVALID_CREDENTIALS: 401,
    ls.STATUS_PROFILE_UNAVAILABLE: 502,
    ls.STATUS_SERVICE_UNAVAILABLE: 503,
    ls.STATUS_STORE_UNAVAILABLE: 503,
}


def _credentials() -> tuple[str | None, str | None]:
    if request.is_json:
        payload = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            return None, None
        username, password = payload.get("username"), payload.get("password")
    else:
        username, password = request.form.get("username"), request.form.get("password")
    if username is not None and not isinstance(username, str):
        username = None
    if password is not None and not isinstance(password, str):
        password = None
    return username, password


@bp.route("/login", methods=["POST"])
def login():
    """Run one Scoutnet login.

    Accepts ``username`` and ``password`` as form fields or a JSON object.
    """
    service: ls.LoginService = current_app.extensions["scoutid.login_service"]
    username, password = _credentials()
    result = service.login(username, password)

    body = {
        "status": result.status,
        "username": result.username,
        "synced": result.synced,
        "correlation_id": result.correlation_id,
    }
    if not result.success:
        body["message"] = result.message_key
    return jsonify(body), STATUS_CODES.get(result.status, 500)
