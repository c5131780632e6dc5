"""
Storage Layer.

This package handles all data persistence: the cached image files on disk and
the INI configuration file.
"""

from .config_manager import ConfigManager
from .filesystem import LocalStorage

__all__ = ["ConfigManager", "LocalStorage"]
