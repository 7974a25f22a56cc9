"""
Configuration module: Settings and logging.
"""

from shared.config.settings import Settings, get_settings, settings
from shared.config.logging import get_logger, setup_logging

__all__ = [
    # settings
    "Settings",
    "get_settings",
    "settings",
    # logging
    "get_logger",
    "setup_logging",
]
