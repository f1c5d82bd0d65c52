"""
RxCompare Backend – Configuration Loader
Loads all secrets and settings from .env via environment variables.
No secret may be hard-coded anywhere in the codebase.
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env from project root
_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(dotenv_path=_env_path)

logger = logging.getLogger("rxcompare.config")


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Base configuration – values sourced exclusively from environment."""

    # --- Secrets ---
    FLASK_SECRET_KEY: str = os.environ.get("FLASK_SECRET_KEY", "")
    PRICING_CLIENT_ID: str = os.environ.get("PRICING_CLIENT_ID", "")
    PRICING_CLIENT_SECRET: str = os.environ.get("PRICING_CLIENT_SECRET", "")
    GOOGLE_MAPS_API_KEY: str = os.environ.get("GOOGLE_MAPS_API_KEY", "")

    # --- Upstream pricing API ---
    PRICING_API_URL: str = os.environ.get("PRICING_API_URL", "https://api.americaspharmacy.com/pricing")
    PRICING_API_VERSION_PATH: str = os.environ.get("PRICING_API_VERSION_PATH", "/pricing/v1")
    PRICING_AUTH_URL: str = os.environ.get(
        "PRICING_AUTH_URL", "https://medimpact.okta.com/oauth2/aus107c5yrHDu55K8297/v1/token"
    )
    PRICING_SCOPE: str = os.environ.get("PRICING_SCOPE", "ccds.read")
    PRICING_HQ_MAPPING: str = os.environ.get("PRICING_HQ_MAPPING", "walkerrx")

    # --- Timeouts (seconds) ---
    UPSTREAM_TIMEOUT_SECONDS: float = float(os.environ.get("UPSTREAM_TIMEOUT_SECONDS", "5"))
    TOKEN_TIMEOUT_SECONDS: float = float(os.environ.get("TOKEN_TIMEOUT_SECONDS", "10"))

    # --- Search defaults ---
    DEFAULT_RADIUS_MILES: float = float(os.environ.get("DEFAULT_RADIUS_MILES", "50"))
    MAX_PHARMACIES: int = int(os.environ.get("MAX_PHARMACIES", "10"))
    USE_MOCK_DATA: bool = _env_bool("USE_MOCK_DATA")

    # --- Geocoding ---
    GEOCODE_URL: str = os.environ.get("GEOCODE_URL", "https://maps.googleapis.com/maps/api/geocode/json")

    # --- App ---
    APP_ENV: str = os.environ.get("APP_ENV", "development")
    DEBUG: bool = APP_ENV == "development"
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "DEBUG" if DEBUG else "INFO")

    # --- Rate limiting ---
    RATE_LIMIT_DEFAULT: str = os.environ.get("RATE_LIMIT_DEFAULT", "60/minute")

    # --- Validation ---
    @classmethod
    def validate(cls) -> None:
        """Raise on missing critical environment variables."""
        if cls.APP_ENV not in ("development", "testing") and not cls.FLASK_SECRET_KEY:
            raise EnvironmentError(
                "Missing required environment variables: FLASK_SECRET_KEY. "
                "Ensure a .env file exists with all required values."
            )
        # Missing pricing credentials degrade to synthetic prices instead of failing startup.
        missing = [k for k in ("PRICING_CLIENT_ID", "PRICING_CLIENT_SECRET") if not getattr(cls, k)]
        if missing and not cls.USE_MOCK_DATA:
            logger.warning(
                "Pricing credentials not configured (%s); all price lookups will use mock data.",
                ", ".join(missing),
            )
