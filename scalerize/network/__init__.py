"""Network module for the Scalerize client."""

from .session import ClientSession, SessionState, connect

__all__ = ["ClientSession", "SessionState", "connect"]
