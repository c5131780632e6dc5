"""
Data Models Layer.

This package contains the models that define the core data structures used
throughout the library, such as configuration, image sources and cache entries.
"""

from .config import CacheConfig
from .entry import CacheEntry, CacheHandler
from .source import ImageSource
from .stats import CacheStats

__all__ = ["CacheConfig", "CacheEntry", "CacheHandler", "CacheStats", "ImageSource"]
