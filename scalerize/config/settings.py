"""
Scalerize Client Configuration Settings

This module contains all configuration constants for the Scalerize client.
Values can be overridden through environment variables.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Client configuration settings."""

    # Connection settings
    SOCKET_PATH: str = os.environ.get("SCALERIZE_SOCKET", "/tmp/scalerize")

    # Wire settings
    READ_BUFFER_SIZE: int = int(os.environ.get("SCALERIZE_READ_BUFFER_SIZE", "4096"))
    MAX_FIELD_LENGTH: int = 2**32 - 1  # Length prefixes are 4-byte unsigned

    # Logging settings
    DEBUG: bool = os.environ.get("SCALERIZE_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("SCALERIZE_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
