"""
Utilities for mapping image URIs to file paths inside the cache directory.
"""

import hashlib
import uuid
from pathlib import Path

from pathvalidate import sanitize_filename

DEFAULT_EXTENSION = ".jpg"
TEMP_SUFFIX = "temp"


def get_extension(uri: str, default: str = DEFAULT_EXTENSION) -> str:
    """
    Extracts the file extension from the last path segment of a URI.

    The query string is ignored and the extension runs from the first '.' of
    the segment, so 'https://host/a/photo.png?w=200' gives '.png'.

    Examples:
        >>> get_extension("https://host/img/cat.png")
        '.png'
        >>> get_extension("https://host/img/avatar?size=large")
        '.jpg'
    """
    segment = uri[uri.rfind("/") + 1 :]
    segment = segment.split("?", 1)[0]
    dot = segment.find(".")
    if dot == -1:
        return default
    ext = sanitize_filename(segment[dot:], platform="auto")
    if len(ext) < 2 or not ext.startswith("."):
        return default
    return ext


def hash_identifier(uri: str) -> str:
    """Returns a stable, filesystem-safe token for a URI."""
    return hashlib.sha1(uri.encode("utf-8")).hexdigest()  # noqa: S324


def resolve_cache_path(
    uri: str,
    cache_dir: Path,
    immutable: bool = False,
    temp: bool = False,
    *,
    default_extension: str = DEFAULT_EXTENSION,
    temp_suffix: str = TEMP_SUFFIX,
) -> Path:
    """
    Resolves where the content of a URI is stored in the cache.

    Immutable URIs map to the SHA-1 of the URI, so the same URI always lands on
    the same file across runs. Mutable URIs get a new random name on every call.
    Temporary paths carry an extra suffix before the extension so an in-flight
    download never collides with a committed file. Does not touch the filesystem.

    Args:
        uri: The image URI.
        cache_dir: The cache root.
        immutable: Whether the URI's content never changes.
        temp: Whether to return the in-flight download path.
        default_extension: Extension used when the URI has none.
        temp_suffix: Marker inserted before the extension of temporary paths.
    """
    ext = get_extension(uri, default_extension)
    token = hash_identifier(uri) if immutable else str(uuid.uuid4())
    suffix = temp_suffix if temp else ""
    return cache_dir / f"{token}{suffix}{ext}"
