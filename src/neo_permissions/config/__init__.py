"""Configuration for neo-permissions."""

from .settings import PermissionEngineSettings, get_settings, DEFAULT_LOG_FORMAT
from .logging_config import setup_logging

__all__ = [
    "PermissionEngineSettings",
    "get_settings",
    "DEFAULT_LOG_FORMAT",
    "setup_logging",
]
