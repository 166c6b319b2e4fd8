"""Gunicorn configuration for the ScoutID sync service.

Settings come from the environment so the same file serves local runs and
containers. Secrets are read by load_settings() from /run/secrets or the
environment inside each worker.
"""
import os

wsgi_app = "scoutid.flask_app:create_app()"
bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.environ.get("GUNICORN_WORKERS", "2"))
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "30"))
accesslog = "-"
errorlog = "-"


def post_fork(server, worker):
    """Called just after a worker has been forked."""
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"
    if demo_mode and os.environ.get("SCOUTID_STORE", "memory").lower() == "memory":
        # Each worker holds its own in-memory store
        worker.log.warning("DEMO_MODE with in-memory store: users are not shared between workers")

    from pathlib import Path
    secrets_dir = Path("/run/secrets")
    if secrets_dir.exists() and secrets_dir.is_dir():
        secret_files = list(secrets_dir.glob("*"))
        if secret_files:
            worker.log.info(f"Found {len(secret_files)} secrets in /run/secrets")
