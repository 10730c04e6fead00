"""Application configuration with security-first defaults.

Environment variables override all defaults.
CRITICAL: SECRET_KEY must be set in .env - will fail fast if missing in production.
"""

import os
import warnings
from pathlib import Path
from typing import List

from dotenv import load_dotenv

_PROJECT_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=_PROJECT_DIR / ".env", override=False)


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return default
    return [part.strip() for part in raw.split(",") if part.strip()]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = ENVIRONMENT == "development"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./invoicely.db")

    # Session tokens - CRITICAL
    SECRET_KEY: str = os.getenv("SECRET_KEY", "")
    if not SECRET_KEY:
        # Generate with: python -c "import secrets; print(secrets.token_urlsafe(32))"
        if ENVIRONMENT == "production":
            raise ValueError(
                "CRITICAL: SECRET_KEY must be set in production environment. "
                "Generate with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
            )
        warnings.warn(
            "SECRET_KEY not set in environment. Using development default. "
            "Set SECRET_KEY in .env to a strong random value.",
            RuntimeWarning,
        )
        SECRET_KEY = "development-only-weak-default-change-in-production"

    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

    # Session cookie
    AUTH_COOKIE_NAME: str = "invoicely_token"
    SECURE_COOKIES: bool = ENVIRONMENT == "production"
    SAME_SITE_COOKIE: str = "lax"

    # Identity provider (Auth0). Empty domain disables /auth/idp-session.
    AUTH0_DOMAIN: str = os.getenv("AUTH0_DOMAIN", "")
    AUTH0_CLIENT_ID: str = os.getenv("AUTH0_CLIENT_ID", "")
    AUTH0_AUDIENCE: str = os.getenv("AUTH0_AUDIENCE", "")

    # Outbound email (Must be set via .env, never in code)
    SENDGRID_API_KEY: str = os.getenv("SENDGRID_API_KEY", "")
    SENDGRID_FROM_EMAIL: str = os.getenv("SENDGRID_FROM_EMAIL", "")
    EMAIL_MAX_RETRIES: int = int(os.getenv("EMAIL_MAX_RETRIES", "3"))

    # Invoicing
    COMPANY_NAME: str = os.getenv("COMPANY_NAME", "Invoicely")
    INVOICE_NUMBER_WIDTH: int = int(os.getenv("INVOICE_NUMBER_WIDTH", "3"))
    DEFAULT_CGST_RATE: str = os.getenv("DEFAULT_CGST_RATE", "9")
    DEFAULT_SGST_RATE: str = os.getenv("DEFAULT_SGST_RATE", "9")
    TEMP_DIR: str = os.getenv("TEMP_DIR", str(_PROJECT_DIR / "temp"))

    # CORS (Restrictive - specific origins only, no wildcards)
    CORS_ORIGINS: List[str] = _env_list(
        "CORS_ORIGINS",
        [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
    )
    ALLOWED_HOSTS: List[str] = _env_list(
        "ALLOWED_HOSTS",
        ["localhost", "127.0.0.1", "localhost:8000", "127.0.0.1:8000"],
    )

    # Rate Limiting
    RATE_LIMIT_REQUESTS: int = int(os.getenv("RATE_LIMIT_REQUESTS", "100"))
    RATE_LIMIT_WINDOW_SECONDS: int = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

    # Password Policy
    MIN_PASSWORD_LENGTH: int = 8
    REQUIRE_NUMBERS: bool = True

    # Overdue scan (external job; see invoicely.jobs.overdue)
    OVERDUE_SCAN_ENABLED: bool = _env_bool("OVERDUE_SCAN_ENABLED", False)
    OVERDUE_SCAN_INTERVAL_SECONDS: int = int(os.getenv("OVERDUE_SCAN_INTERVAL_SECONDS", "86400"))


settings = Settings()
