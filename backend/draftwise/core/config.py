"""Application configuration.

``Settings`` reads every option from the environment.  ``.env`` files are
loaded first (repository root, then whatever python-dotenv finds from the
working directory, then ``backend/.env``) without overriding variables
that are already set, so real environment variables always win.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_BACKEND_DIR = Path(__file__).resolve().parents[2]


def _dotenv_files() -> list[str]:
    found: list[str] = []
    for candidate in (_BACKEND_DIR.parent / ".env", find_dotenv(usecwd=True), _BACKEND_DIR / ".env"):
        if not candidate:
            continue
        path = str(candidate)
        if Path(path).is_file() and path not in found:
            found.append(path)
    return found


DOTENV_FILES = _dotenv_files()
for _path in DOTENV_FILES:
    load_dotenv(dotenv_path=_path, override=False)


def _split_csv(raw: Optional[str]) -> list[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


class Settings(BaseSettings):
    """Runtime settings; any field can be overridden by an environment variable."""

    model_config = SettingsConfigDict(
        env_file=tuple(DOTENV_FILES) or (".env",),
        case_sensitive=True,
        extra="allow",
    )

    PROJECT_NAME: str = "Draftwise"
    ENVIRONMENT: str = "development"

    # Database.  Without DATABASE_URL startup fails unless the SQLite
    # development fallback is switched on.
    DATABASE_URL: Optional[str] = None
    DB_DEV_FALLBACK_SQLITE: bool = False

    # CORS and redirects
    BACKEND_CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    FRONTEND_BASE_URL: str = "http://localhost:3000"

    # Auth.  HS256 tokens are verified with AUTH_JWT_SECRET; otherwise RS256
    # against AUTH_JWKS_URL.
    DEV_AUTH_BYPASS: bool = False
    AUTH_JWT_SECRET: Optional[str] = None
    AUTH_JWKS_URL: Optional[str] = None
    AUTH_JWT_AUDIENCE: Optional[str] = None
    AUTH_JWT_ISSUER: Optional[str] = None

    # AI analysis
    OPENAI_API_KEY: Optional[str] = None
    ANALYSIS_MODEL: str = "gpt-4"
    ANALYSIS_TEMPERATURE: float = 0.5

    # Sentry
    SENTRY_DSN: Optional[str] = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.0
    SENTRY_RELEASE: Optional[str] = None

    # Stripe
    STRIPE_API_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    # Comma separated; takes precedence over STRIPE_WEBHOOK_SECRET during rotation
    STRIPE_WEBHOOK_SECRETS: Optional[str] = None
    # Comma separated fnmatch patterns, e.g. "customer.subscription.*,invoice.*"
    STRIPE_WEBHOOK_ALLOWED_EVENTS: Optional[str] = None
    STRIPE_PRICE_DEFAULT: Optional[str] = None
    STRIPE_PORTAL_CONFIGURATION_ID: Optional[str] = None
    # Metadata key on Stripe objects carrying the owning application user id
    STRIPE_USER_METADATA_KEY: str = "supabaseUserId"


settings = Settings()


def get_webhook_secret_list() -> list[str]:
    """Webhook signing secrets in the order they should be tried."""
    rotated = _split_csv(settings.STRIPE_WEBHOOK_SECRETS)
    if rotated:
        return rotated
    single = (settings.STRIPE_WEBHOOK_SECRET or "").strip()
    return [single] if single else []


def get_allowed_event_patterns() -> list[str]:
    """Optional webhook event allowlist; empty means every event is handled."""
    return _split_csv(settings.STRIPE_WEBHOOK_ALLOWED_EVENTS)
