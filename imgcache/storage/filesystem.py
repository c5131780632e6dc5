"""
Local filesystem implementation of the cache storage port.
"""

import asyncio
import logging
import shutil
from pathlib import Path

import aiofiles.os

from imgcache.exceptions import CacheStorageError

log = logging.getLogger(__name__)


class LocalStorage:
    """Performs the cache's file operations without blocking the event loop."""

    async def exists(self, path: Path) -> bool:
        """Checks whether a cached file is still on disk."""
        return await aiofiles.os.path.isfile(path)

    async def move(self, src: Path, dst: Path) -> None:
        """
        Renames a finished download into place. The replace is atomic when both
        paths are on the same filesystem, which holds inside the cache directory.
        """
        try:
            await aiofiles.os.replace(src, dst)
        except OSError as e:
            raise CacheStorageError(f"Failed to move '{src}' to '{dst}': {e}") from e

    async def delete(self, path: Path) -> None:
        """Removes a single file. A file that is already gone is not an error."""
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            log.debug(f"Nothing to delete at '{path}'.")
        except OSError as e:
            raise CacheStorageError(f"Failed to delete '{path}': {e}") from e

    async def delete_recursive(self, path: Path) -> None:
        """Removes a directory tree. A missing directory is not an error."""
        if not await aiofiles.os.path.exists(path):
            log.debug(f"Cache directory '{path}' does not exist, nothing to clear.")
            return
        try:
            await asyncio.to_thread(shutil.rmtree, path)
        except OSError as e:
            raise CacheStorageError(f"Failed to delete '{path}': {e}") from e
