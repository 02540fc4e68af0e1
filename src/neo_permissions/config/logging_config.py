"""Logging configuration for the permission engine.

The engine logs through loguru; ``setup_logging`` swaps loguru's default
sink for one honoring the configured level and format.
"""

import sys
from typing import Optional

from loguru import logger

from .settings import PermissionEngineSettings, get_settings


_configured_sink_id: Optional[int] = None


def setup_logging(settings: Optional[PermissionEngineSettings] = None) -> int:
    """Configure the loguru sink. Safe to call more than once.
    
    Returns:
        The loguru handler id of the installed sink.
    """
    global _configured_sink_id
    settings = settings or get_settings()
    
    if _configured_sink_id is None:
        # Drop loguru's stock stderr handler
        logger.remove()
    else:
        logger.remove(_configured_sink_id)
    
    _configured_sink_id = logger.add(
        sys.stderr,
        level=settings.log_level,
        format=settings.log_format,
        backtrace=False,
        diagnose=False,
    )
    logger.debug(f"Permission engine logging configured at {settings.log_level}")
    return _configured_sink_id
