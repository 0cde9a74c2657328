"""Gunicorn configuration for the identity provider wizard.

Open wizard sessions live in process memory (WizardRegistry), so the
service runs exactly one worker process and scales with threads. Gateway
calls block their request thread for up to FEDERATION_GATEWAY_TIMEOUT.
"""
import os

bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
workers = 1
threads = int(os.environ.get("GUNICORN_THREADS", "8"))
worker_class = "gthread"
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "60"))
accesslog = "-"
errorlog = "-"


def post_fork(server, worker):
    """
    Called just after the worker has been forked.

    Reports whether secrets come from the Docker secrets mount; settings.py
    reads them from there itself.
    """
    from pathlib import Path

    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"
    if demo_mode:
        worker.log.warning("DEMO_MODE=true: temporary secrets will be generated")

    secrets_dir = Path("/run/secrets")
    if secrets_dir.exists() and secrets_dir.is_dir():
        secret_files = list(secrets_dir.glob("*"))
        if secret_files:
            worker.log.info(f"Found {len(secret_files)} secrets in /run/secrets")
            return

    worker.log.info("No /run/secrets mount; using environment variables")
