"""
Core cache engine.

The `ImageCache` owns the per-URI entries, their downloads and their
subscribers. The `ImageObserver` adapts it to widgets that show one image at a
time.
"""

from .cache_manager import ImageCache, get_image_cache, set_image_cache
from .observer import ImageObserver, check_source

__all__ = [
    "ImageCache",
    "ImageObserver",
    "check_source",
    "get_image_cache",
    "set_image_cache",
]
