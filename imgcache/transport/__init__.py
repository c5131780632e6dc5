"""
Transport Layer.

This package streams remote images to local files over HTTP.
"""

from .http import HttpTransfer, HttpTransport, close_connection_pool

__all__ = ["HttpTransfer", "HttpTransport", "close_connection_pool"]
