"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from scoutid import __version__

logger = logging.getLogger(__name__)

STORE_BACKENDS = {"keycloak", "memory"}


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    # Priority 1: Read from /run/secrets
    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                logger.info(f"Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            logger.warning(f"Failed to read /run/secrets/{secret_name}: {e}")

    # Priority 2: Fallback to environment variable
    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            logger.info(f"Loaded {env_var} from environment (fallback)")
            return secret_value

    return None


def _env_flag(var_name: str, default: bool = False) -> bool:
    return os.environ.get(var_name, str(default)).strip().lower() == "true"


def _env_list(var_name: str, default: list[str]) -> list[str]:
    raw = os.environ.get(var_name)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class AppConfig:
    """Application configuration container."""
    # Mode
    demo_mode: bool

    # Flask
    secret_key: str
    log_level: str = "INFO"

    # Scoutnet (upstream member registry)
    scoutnet_base_url: str = "https://scoutnet.se/api"
    scoutnet_timeout: float = 10.0
    scoutnet_fetch_image: bool = False

    # Keycloak (local identity store)
    store_backend: str = "keycloak"
    keycloak_url: str = ""
    keycloak_realm: str = "scouterna"
    keycloak_service_realm: str = "scouterna"
    keycloak_service_client_id: str = "scoutid-sync"
    keycloak_service_client_secret: str = ""

    # Sync engine
    parent_group_name: str = "scoutnet"
    tracked_group_attributes: list[str] = field(default_factory=lambda: ["domain"])
    email_domain_attribute: str = "domain"
    provider_version: str = __version__

    # Audit
    audit_enabled: bool = True
    audit_log_signing_key: str = ""

    @property
    def service_client_secret_resolved(self) -> str:
        """Get Keycloak service account client secret with smart fallback.

        Priority:
        1. Demo mode: hardcoded "demo-service-secret"
        2. Configured value in keycloak_service_client_secret
        3. Docker secrets: /run/secrets/keycloak_service_client_secret
        4. Environment variable: KEYCLOAK_SERVICE_CLIENT_SECRET

        Raises:
            ValueError: If secret not found in production mode
        """
        if self.demo_mode:
            return "demo-service-secret"

        if self.keycloak_service_client_secret:
            return self.keycloak_service_client_secret

        for secret_name in ["keycloak_service_client_secret", "keycloak-service-client-secret"]:
            secret_path = Path("/run/secrets") / secret_name
            if secret_path.exists():
                secret = secret_path.read_text().strip()
                if secret:
                    return secret

        secret = os.environ.get("KEYCLOAK_SERVICE_CLIENT_SECRET")
        if secret:
            return secret

        raise ValueError(
            "KEYCLOAK_SERVICE_CLIENT_SECRET not found. "
            "Set DEMO_MODE=true or provide secret via Docker secrets or environment variable."
        )


def _get_or_generate(var_name: str, demo_default: Optional[str] = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or use demo default."""
    value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        logger.info(f"[demo-mode] Using default for {var_name}")
        os.environ[var_name] = demo_default
        return demo_default

    if not required:
        return ""

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def configure_logging(level: str = "INFO") -> None:
    """Install a basic root handler; repeated calls only adjust the level."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger().setLevel(numeric)


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = _env_flag("DEMO_MODE")

    # Flask secret key
    secret_key = _load_secret_from_file("flask_secret_key", "FLASK_SECRET_KEY")
    if not secret_key:
        if not demo_mode:
            raise RuntimeError("FLASK_SECRET_KEY not found in /run/secrets or environment")
        secret_key = secrets.token_urlsafe(48)
        os.environ["FLASK_SECRET_KEY"] = secret_key
        logger.info("[demo-mode] Generated temporary FLASK_SECRET_KEY")

    log_level = os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"

    # Scoutnet
    scoutnet_base_url = os.environ.get("SCOUTNET_BASE_URL", "https://scoutnet.se/api").rstrip("/")
    try:
        scoutnet_timeout = float(os.environ.get("SCOUTNET_TIMEOUT", "10"))
    except ValueError:
        raise RuntimeError("SCOUTNET_TIMEOUT must be a number of seconds")
    scoutnet_fetch_image = _env_flag("SCOUTNET_FETCH_IMAGE")

    # Store backend: demo mode never talks to a real Keycloak unless asked to
    store_backend = os.environ.get("SCOUTID_STORE", "memory" if demo_mode else "keycloak").strip().lower()
    if store_backend not in STORE_BACKENDS:
        raise RuntimeError(f"SCOUTID_STORE must be one of {sorted(STORE_BACKENDS)}, got '{store_backend}'")

    keycloak_url = ""
    keycloak_service_client_secret = ""
    keycloak_realm = os.environ.get("KEYCLOAK_REALM", "scouterna")
    keycloak_service_realm = os.environ.get("KEYCLOAK_SERVICE_REALM", keycloak_realm)
    keycloak_service_client_id = os.environ.get("KEYCLOAK_SERVICE_CLIENT_ID", "scoutid-sync")
    if store_backend == "keycloak":
        keycloak_url = _get_or_generate(
            "KEYCLOAK_URL",
            demo_default="http://127.0.0.1:8080",
            demo_mode=demo_mode,
        ).rstrip("/")
        keycloak_service_client_secret = _load_secret_from_file(
            "keycloak_service_client_secret",
            "KEYCLOAK_SERVICE_CLIENT_SECRET",
        ) or _get_or_generate(
            "KEYCLOAK_SERVICE_CLIENT_SECRET",
            demo_default="demo-service-secret",
            demo_mode=demo_mode,
        )

    # Sync engine
    parent_group_name = os.environ.get("SCOUTID_PARENT_GROUP", "scoutnet").strip() or "scoutnet"
    tracked_group_attributes = _env_list("SCOUTID_TRACKED_GROUP_ATTRIBUTES", ["domain"])
    email_domain_attribute = os.environ.get("SCOUTID_EMAIL_DOMAIN_ATTRIBUTE", "").strip() or "domain"
    # Alias domains must take part in change detection
    if email_domain_attribute not in tracked_group_attributes:
        tracked_group_attributes.append(email_domain_attribute)
    provider_version = os.environ.get("SCOUTID_PROVIDER_VERSION", "").strip() or __version__

    # Audit
    audit_enabled = _env_flag("AUDIT_ENABLED", default=True)
    audit_log_signing_key = _load_secret_from_file("audit_log_signing_key", "AUDIT_LOG_SIGNING_KEY") or ""
    if audit_log_signing_key:
        os.environ["AUDIT_LOG_SIGNING_KEY"] = audit_log_signing_key

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    logger.info(f"Mode={mode_label}; store={store_backend}; realm={keycloak_realm}; version={provider_version}")

    return AppConfig(
        demo_mode=demo_mode,
        secret_key=secret_key,
        log_level=log_level,
        scoutnet_base_url=scoutnet_base_url,
        scoutnet_timeout=scoutnet_timeout,
        scoutnet_fetch_image=scoutnet_fetch_image,
        store_backend=store_backend,
        keycloak_url=keycloak_url,
        keycloak_realm=keycloak_realm,
        keycloak_service_realm=keycloak_service_realm,
        keycloak_service_client_id=keycloak_service_client_id,
        keycloak_service_client_secret=keycloak_service_client_secret,
        parent_group_name=parent_group_name,
        tracked_group_attributes=tracked_group_attributes,
        email_domain_attribute=email_domain_attribute,
        provider_version=provider_version,
        audit_enabled=audit_enabled,
        audit_log_signing_key=audit_log_signing_key,
    )
