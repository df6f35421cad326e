"""Configuration module for the Scalerize client."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
