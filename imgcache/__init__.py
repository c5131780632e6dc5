"""
imgcache: show remote images through a local on-disk cache.
"""

from imgcache.core import (
    ImageCache,
    ImageObserver,
    check_source,
    get_image_cache,
    set_image_cache,
)
from imgcache.exceptions import (
    CacheStorageError,
    ConfigurationError,
    ImgCacheError,
    UnsupportedSourceError,
)
from imgcache.models import CacheConfig, CacheEntry, CacheStats, ImageSource
from imgcache.utils.path import resolve_cache_path

__version__ = "0.3.0"

__all__ = [
    "CacheConfig",
    "CacheEntry",
    "CacheStats",
    "CacheStorageError",
    "ConfigurationError",
    "ImageCache",
    "ImageObserver",
    "ImageSource",
    "ImgCacheError",
    "UnsupportedSourceError",
    "check_source",
    "get_image_cache",
    "resolve_cache_path",
    "set_image_cache",
    "__version__",
]
