"""
Service configuration from environment variables.

Secrets are never hard-coded; set them in the environment or a local .env
file. Missing required values are fatal at startup.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./premium_gate.db"
GOOGLE_TOKENINFO_URL = "https://www.googleapis.com/oauth2/v3/tokeninfo"
STRIPE_API_BASE = "https://api.stripe.com"

REQUIRED_VARIABLES = (
    "STRIPE_SECRET_KEY",
    "WEBHOOK_SECRET_KEY",
    "DEFAULT_PRICE_ID",
)


class ConfigurationError(RuntimeError):
    """Required configuration is missing or invalid."""

    def __init__(self, message: str, missing: Optional[list[str]] = None):
        super().__init__(message)
        self.missing = missing or []


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the gateway."""
    stripe_secret_key: str
    webhook_secret_key: str
    default_price_id: str
    database_url: str = DEFAULT_DATABASE_URL
    redis_url: Optional[str] = None
    checkout_success_url: str = "https://example.com/success"
    checkout_cancel_url: str = "https://example.com/cancel"
    google_tokeninfo_url: str = GOOGLE_TOKENINFO_URL
    stripe_api_base: str = STRIPE_API_BASE
    http_timeout_seconds: float = 15.0
    log_level: str = "INFO"
    diagnostic_log_enabled: bool = True

    @classmethod
    def from_env(cls, *, load_dotenv_file: bool = True) -> "Settings":
        """Load settings from the environment, failing on missing secrets."""
        if load_dotenv_file:
            load_dotenv()

        missing = [name for name in REQUIRED_VARIABLES if not os.getenv(name)]
        if missing:
            logger.critical("Required configuration missing", extra={"missing": missing})
            raise ConfigurationError(
                "Missing required configuration: " + ", ".join(missing),
                missing=missing,
            )

        try:
            timeout = float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))
        except ValueError as exc:
            raise ConfigurationError("HTTP_TIMEOUT_SECONDS must be a number") from exc

        return cls(
            stripe_secret_key=os.environ["STRIPE_SECRET_KEY"],
            webhook_secret_key=os.environ["WEBHOOK_SECRET_KEY"],
            default_price_id=os.environ["DEFAULT_PRICE_ID"],
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            redis_url=os.getenv("REDIS_URL") or None,
            checkout_success_url=os.getenv("CHECKOUT_SUCCESS_URL", "https://example.com/success"),
            checkout_cancel_url=os.getenv("CHECKOUT_CANCEL_URL", "https://example.com/cancel"),
            google_tokeninfo_url=os.getenv("GOOGLE_TOKENINFO_URL", GOOGLE_TOKENINFO_URL),
            stripe_api_base=os.getenv("STRIPE_API_BASE", STRIPE_API_BASE),
            http_timeout_seconds=timeout,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            diagnostic_log_enabled=_env_bool("DIAGNOSTIC_LOG_ENABLED", True),
        )
