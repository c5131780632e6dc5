"""
Handles the low-level downloading of images over HTTP into local files.
"""

import asyncio
import logging
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os
import aiohttp

from imgcache.models.config import CacheConfig
from imgcache.ports import TransferResult

log = logging.getLogger(__name__)

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock: asyncio.Lock | None = None
_pool_loop: asyncio.AbstractEventLoop | None = None


def _get_pool_lock() -> asyncio.Lock:
    """
    Returns the pool lock for the running loop. A pool and lock left behind by
    an earlier loop (a previous asyncio.run call) cannot be used from this one,
    so both are replaced.
    """
    global _connection_pool, _pool_lock, _pool_loop
    loop = asyncio.get_running_loop()
    if _pool_lock is None or _pool_loop is not loop:
        if _connection_pool is not None and not _connection_pool.closed:
            log.warning("Dropping a download pool left open by a finished loop.")
        _connection_pool = None
        _pool_lock = asyncio.Lock()
        _pool_loop = loop
    return _pool_lock


async def get_connection_pool(
    max_workers: int = 8,
    connect_timeout: float = 15.0,
    read_timeout: float = 90.0,
) -> aiohttp.ClientSession:
    """
    Gets or creates a shared aiohttp ClientSession for downloads.

    This function ensures that only one connection pool is created for the
    lifetime of the running event loop.

    Args:
        max_workers: Maximum concurrent connections per host.
        connect_timeout: Seconds allowed to establish a connection.
        read_timeout: Seconds allowed between two reads of the body.
    """
    global _connection_pool
    async with _get_pool_lock():
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=max_workers * 2,  # Total connections
            limit_per_host=max_workers,
            ttl_dns_cache=600,  # 10 minutes
            keepalive_timeout=30,
            enable_cleanup_closed=True,
            force_close=False,
        )
        timeout = aiohttp.ClientTimeout(
            total=None, sock_connect=connect_timeout, sock_read=read_timeout
        )
        _connection_pool = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            headers={"Accept-Encoding": "gzip, deflate"},
        )
        log.debug(f"Created download pool with limit_per_host={max_workers}")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _get_pool_lock():
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared downloader connection pool closed.")


class HttpTransfer:
    """A running download. Settles into a TransferResult instead of raising."""

    def __init__(self, url: str, coro: Coroutine[Any, Any, int]):
        self.url = url
        self._task: asyncio.Task[int] = asyncio.get_running_loop().create_task(coro)

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        """Aborts the download. wait() then reports a CancelledError."""
        if not self._task.done():
            log.debug(f"Cancelling download of '{self.url}'.")
            self._task.cancel()

    async def wait(self) -> TransferResult:
        """Waits for the download to finish and reports its status or error."""
        try:
            status = await self._task
        except asyncio.CancelledError as e:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            return TransferResult(error=e)
        except Exception as e:
            log.debug(f"Download of '{self.url}' failed: {e!r}")
            return TransferResult(error=e)
        return TransferResult(status=status)


class HttpTransport:
    """Streams HTTP responses to files using a shared connection pool."""

    def __init__(
        self,
        max_workers: int = 8,
        chunk_size: int = 131072,
        connect_timeout: float = 15.0,
        read_timeout: float = 90.0,
    ):
        self.max_workers = max_workers
        self.chunk_size = chunk_size
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    @classmethod
    def from_config(cls, config: CacheConfig) -> "HttpTransport":
        return cls(
            max_workers=config.max_workers,
            chunk_size=config.chunk_size,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
        )

    def fetch(
        self, method: str, url: str, headers: dict[str, str], destination: Path
    ) -> HttpTransfer:
        """
        Starts downloading url into destination and returns a handle to it.
        Must be called from a running event loop.
        """
        return HttpTransfer(url, self._download(method, url, headers, destination))

    async def _download(
        self, method: str, url: str, headers: dict[str, str], destination: Path
    ) -> int:
        """
        Performs the request. The body is only written for a 200 response, other
        statuses are returned to the caller as-is.
        """
        session = await get_connection_pool(
            self.max_workers, self.connect_timeout, self.read_timeout
        )
        await aiofiles.os.makedirs(destination.parent, exist_ok=True)
        async with session.request(
            method, url, headers=headers or None, allow_redirects=True
        ) as response:
            if response.status != 200:
                log.debug(f"'{url}' answered with status {response.status}.")
                return response.status

            bytes_downloaded = 0
            async with aiofiles.open(destination, "wb") as f:
                async for chunk in response.content.iter_chunked(self.chunk_size):
                    await f.write(chunk)
                    bytes_downloaded += len(chunk)
            log.debug(f"Downloaded {bytes_downloaded} bytes from '{url}'.")
            return response.status

    async def close(self) -> None:
        """Closes the shared connection pool."""
        await close_connection_pool()
