"""
Process configuration for the relay.

Everything comes from environment variables (or a .env file): the
credential blob, destination container, origin allow-list and port.
"""

from .settings import DEFAULT_MAX_UPLOAD_BYTES, Settings, get_settings

__all__ = ["DEFAULT_MAX_UPLOAD_BYTES", "Settings", "get_settings"]
