"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from idp_wizard.core.roles import TenancyMode
from idp_wizard.core.wizard.registry import DEFAULT_MAX_AGE as DEFAULT_WIZARD_MAX_AGE

DEFAULT_GATEWAY_TIMEOUT = 10.0


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

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


@dataclass
class AppConfig:
    """Application configuration container."""
    # Mode
    demo_mode: bool

    # Flask
    secret_key: str
    session_cookie_secure: bool = True
    trusted_proxy_ips: str = "127.0.0.1/32,::1/128"

    # Keycloak
    keycloak_url: str = ""
    keycloak_realm: str = "demo"
    keycloak_issuer: str = ""
    keycloak_server_url: str = ""

    # Access gate
    api_mode: TenancyMode = TenancyMode.ONPREM

    # Wizard
    gateway_timeout: float = DEFAULT_GATEWAY_TIMEOUT
    wizard_max_age: float = DEFAULT_WIZARD_MAX_AGE
    okta_default_customer_identifier: str = ""

    # Audit
    audit_log_signing_key: str = ""


def _get_or_generate(var_name: str, demo_default: Optional[str] = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or use demo default."""
    value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        print(f"[demo-mode] Using default for {var_name}")
        os.environ[var_name] = demo_default
        return demo_default

    if not required:
        return ""

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def _parse_api_mode(raw: str) -> TenancyMode:
    try:
        return TenancyMode(raw.strip().lower())
    except ValueError:
        raise RuntimeError(f"API_MODE must be 'cloud' or 'onprem' (got {raw!r})") from None


def _parse_positive_float(var_name: str, raw: Optional[str], default: Optional[float]) -> Optional[float]:
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"{var_name} must be a number of seconds (got {raw!r})") from None
    if value <= 0:
        raise RuntimeError(f"{var_name} must be positive (got {raw!r})")
    return value


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"

    # Flask secret key
    secret_key = _load_secret_from_file("flask_secret_key", "FLASK_SECRET_KEY")
    if not secret_key:
        if demo_mode:
            secret_key = secrets.token_urlsafe(48)
            os.environ["FLASK_SECRET_KEY"] = secret_key
            print("[demo-mode] Generated temporary FLASK_SECRET_KEY")
        else:
            raise RuntimeError("FLASK_SECRET_KEY not found in /run/secrets or environment")

    # Audit log signing key
    audit_log_signing_key = _load_secret_from_file("audit_log_signing_key", "AUDIT_LOG_SIGNING_KEY") or ""
    if audit_log_signing_key:
        os.environ["AUDIT_LOG_SIGNING_KEY"] = audit_log_signing_key

    # Session cookie secure flag
    session_cookie_secure = os.environ.get("FLASK_SESSION_COOKIE_SECURE", "true").lower() == "true"

    # Trusted proxies
    trusted_proxy_ips = os.environ.get("TRUSTED_PROXY_IPS")
    if not trusted_proxy_ips:
        is_testing = os.environ.get("PYTEST_CURRENT_TEST") is not None
        if demo_mode or is_testing:
            trusted_proxy_ips = "127.0.0.1/32,::1/128"
            if demo_mode:
                print("[demo-mode] Defaulted TRUSTED_PROXY_IPS to localhost ranges")
        else:
            raise RuntimeError("TRUSTED_PROXY_IPS is required when DEMO_MODE is false.")

    # Keycloak URLs
    keycloak_url = _get_or_generate(
        "KEYCLOAK_URL",
        demo_default="http://127.0.0.1:8080",
        demo_mode=demo_mode,
    )
    keycloak_realm = os.environ.get("KEYCLOAK_REALM", "demo")
    keycloak_issuer = _get_or_generate(
        "KEYCLOAK_ISSUER",
        demo_default=f"http://localhost:8080/realms/{keycloak_realm}",
        demo_mode=demo_mode,
    )
    keycloak_server_url = os.environ.get("KEYCLOAK_SERVER_URL", keycloak_issuer)

    # Access gate and wizard
    api_mode = _parse_api_mode(os.environ.get("API_MODE", "onprem"))
    gateway_timeout = _parse_positive_float(
        "FEDERATION_GATEWAY_TIMEOUT",
        os.environ.get("FEDERATION_GATEWAY_TIMEOUT"),
        DEFAULT_GATEWAY_TIMEOUT,
    )
    wizard_max_age = _parse_positive_float(
        "WIZARD_MAX_AGE",
        os.environ.get("WIZARD_MAX_AGE"),
        DEFAULT_WIZARD_MAX_AGE,
    )
    okta_default_customer_identifier = os.environ.get("OKTA_DEFAULT_CUSTOMER_IDENTIFIER", "").strip()

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    print(f"[settings] Mode={mode_label}; api_mode={api_mode.value}; realm={keycloak_realm}")

    if demo_mode:
        print("[settings] WARNING: Demo defaults in use. Do not deploy with these settings.")

    return AppConfig(
        demo_mode=demo_mode,
        secret_key=secret_key,
        session_cookie_secure=session_cookie_secure,
        trusted_proxy_ips=trusted_proxy_ips,
        keycloak_url=keycloak_url.rstrip("/"),
        keycloak_realm=keycloak_realm,
        keycloak_issuer=keycloak_issuer,
        keycloak_server_url=keycloak_server_url.rstrip("/"),
        api_mode=api_mode,
        gateway_timeout=gateway_timeout,
        wizard_max_age=wizard_max_age,
        okta_default_customer_identifier=okta_default_customer_identifier,
        audit_log_signing_key=audit_log_signing_key,
    )
