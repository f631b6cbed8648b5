"""
Configuration settings for the Meadow endpoint binding layer
"""

import os
import logging
from typing import List

logger = logging.getLogger(__name__)

# Authorization configuration
MEADOW_AUTHORIZATION_MODE = os.getenv("MEADOW_AUTHORIZATION_MODE", "Disabled")
MEADOW_API_VERSION = os.getenv("MEADOW_API_VERSION", "1.0")


def _parse_int(value: str, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid integer setting '{value}' - using {default}")
        return default


# Maximum number of records returned by list reads when the request carries no Cap
MEADOW_DEFAULT_MAX_CAP = _parse_int(os.getenv("MEADOW_DEFAULT_MAX_CAP", "250"), 250)

PORT = _parse_int(os.getenv("PORT", "8080"), 8080)

# CORS settings
ALLOWED_ORIGINS: List[str] = [
    origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",") if origin.strip()
]


class SessionJWTConfig:
    """Signing and validation settings for user session tokens"""

    CONFIG = {
        "secret": os.getenv("MEADOW_JWT_SECRET", "meadow-development-secret-change-in-production"),
        "issuer": os.getenv("MEADOW_JWT_ISSUER", "meadow-endpoints"),
        "audience": os.getenv("MEADOW_JWT_AUDIENCE", "meadow-api"),
        "allowed_algorithms": ["HS256"],
        "max_token_age": _parse_int(os.getenv("MEADOW_JWT_MAX_AGE", "3600"), 3600)
    }

    @classmethod
    def get_config(cls):
        """Get the session JWT configuration"""
        return cls.CONFIG


logger.debug(f"Authorization mode: {MEADOW_AUTHORIZATION_MODE}, default max cap: {MEADOW_DEFAULT_MAX_CAP}")
