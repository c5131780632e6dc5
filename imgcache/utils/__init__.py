"""
Shared helpers: cache path resolution and structured logging.
"""
