"""Flask application factory and bootstrap.

This module provides the create_app() factory function that wires the
Scoutnet client, the identity store and the sync engine behind the login
blueprint. build_login_service() is shared with the command line tool.
"""
from __future__ import annotations
import logging
from typing import Optional

from flask import Flask

from scoutid.config import AppConfig, configure_logging, load_settings
from scoutid.core.email_allocator import EmailAllocator
from scoutid.core.group_reconciler import GroupReconciler
from scoutid.core.keycloak import KeycloakClient, KeycloakIdentityStore
from scoutid.core.login_service import LoginService
from scoutid.core.store import IdentityStore, InMemoryIdentityStore
from scoutid.core.sync_service import SyncService
from scoutid.scoutnet import ScoutnetClient

logger = logging.getLogger(__name__)


def build_store(cfg: AppConfig) -> IdentityStore:
    """Return the identity store selected by ``cfg.store_backend``."""
    if cfg.store_backend == "memory":
        logger.warning("Using in-memory identity store; synced users are lost on restart")
        return InMemoryIdentityStore()

    client = KeycloakClient(cfg.keycloak_url)
    client.use_service_account(
        cfg.keycloak_service_realm,
        cfg.keycloak_service_client_id,
        cfg.service_client_secret_resolved,
    )
    return KeycloakIdentityStore(client, cfg.keycloak_realm)


def build_login_service(cfg: AppConfig, store: Optional[IdentityStore] = None, scoutnet: Optional[ScoutnetClient] = None) -> LoginService:
    """Assemble the login service and its sync engine from configuration."""
    store = store or build_store(cfg)
    scoutnet = scoutnet or ScoutnetClient(cfg.scoutnet_base_url, timeout=cfg.scoutnet_timeout)
    tracked = cfg.tracked_group_attributes

    sync_service = SyncService(
        store,
        GroupReconciler(store, parent_group_name=cfg.parent_group_name, tracked_attributes=tracked),
        EmailAllocator(store, domain_attribute=cfg.email_domain_attribute),
        provider_version=cfg.provider_version,
        tracked_attributes=tracked,
    )
    return LoginService(
        scoutnet,
        store,
        sync_service,
        fetch_image=cfg.scoutnet_fetch_image,
        audit_enabled=cfg.audit_enabled,
        realm=cfg.keycloak_realm,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(config: Optional[AppConfig] = None, login_service: Optional[LoginService] = None) -> Flask:
    """Create and configure Flask application."""
    cfg = config or load_settings()
    configure_logging(cfg.log_level)

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg
    app.config["SECRET_KEY"] = cfg.secret_key

    app.extensions["scoutid.login_service"] = login_service or build_login_service(cfg)

    from scoutid.api import errors, health, login

    app.register_blueprint(health.bp)
    app.register_blueprint(login.bp)
    errors.register_error_handlers(app)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    logger.info(f"Mode={mode_label}; store={cfg.store_backend}; parent group={cfg.parent_group_name}")
    if cfg.demo_mode:
        logger.warning("Demo mode active - do not deploy with demo credentials")

    return app
