"""
Utils Package

Utility modules for the media downloader.
"""

from .persistent_settings import PersistentSettings, get_settings_manager
from .logger import colored_print, log_success, setup_logging

__all__ = [
    'PersistentSettings',
    'get_settings_manager',
    'colored_print',
    'log_success',
    'setup_logging',
]
