"""
Web service configuration for make2manage.

Loads settings from ``M2M_*`` environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass
from typing import Optional

from make2manage import __version__


@dataclass
class WebConfig:
    """Configuration for the make2manage web service."""

    # Application settings
    app_name: str = "make2manage"
    app_version: str = __version__
    debug: bool = False
    log_level: str = "INFO"

    # Database settings
    database_url: str = "sqlite:///./data/make2manage.db"

    # Server settings
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "WebConfig":
        """Create config from environment variables."""
        return cls(
            debug=os.getenv("M2M_DEBUG", "").lower() in ("true", "1", "yes"),
            log_level=os.getenv("M2M_LOG_LEVEL", "INFO"),
            database_url=os.getenv("M2M_DATABASE_URL", "sqlite:///./data/make2manage.db"),
            host=os.getenv("M2M_HOST", "127.0.0.1"),
            port=int(os.getenv("M2M_PORT", "8000")),
        )


# Global config instance (lazy initialization)
_config: Optional[WebConfig] = None


def get_settings() -> WebConfig:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = WebConfig.from_env()
    return _config


def set_settings(config: Optional[WebConfig]) -> None:
    """Replace the global config (None reloads from the environment)."""
    global _config
    _config = config
