import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"

_TRUTHY = {"1", "true", "yes", "on"}


def _optional(name: str) -> Optional[str]:
    return os.getenv(name, "").strip() or None


def _flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name, "").strip().lower()
    if not value:
        return default
    return value in _TRUTHY


@dataclass(frozen=True)
class Settings:
    database_url: str
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    # When set, a missing webhook secret is a configuration error instead of
    # accepting unsigned events.
    require_webhook_signature: bool = False
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Read the process configuration once, at startup."""
    load_dotenv(dotenv_path=ENV_PATH)

    database_url = os.getenv("DATABASE_URL", "").strip()
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set. Check your .env file.")

    return Settings(
        database_url=database_url,
        stripe_secret_key=_optional("STRIPE_SECRET_KEY"),
        stripe_webhook_secret=_optional("STRIPE_WEBHOOK_SECRET"),
        require_webhook_signature=_flag("STRIPE_WEBHOOK_REQUIRE_SIGNATURE"),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
