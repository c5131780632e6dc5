"""
Defines custom exceptions for the library to allow for more specific error handling.
"""


class ImgCacheError(Exception):
    """Base exception for all library-specific errors."""


class ConfigurationError(ImgCacheError):
    """Raised for issues related to configuration loading or validation."""


class UnsupportedSourceError(ImgCacheError):
    """
    Raised when an image source cannot be cached, such as a list of several URIs.
    """


class CacheStorageError(ImgCacheError):
    """Raised when the cache directory or one of its files cannot be modified."""
