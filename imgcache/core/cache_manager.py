"""
The image cache: tracks one entry per URI, downloads each image at most once at
a time, and tells every subscriber when the cached file changes.
"""

import asyncio
import logging
import time
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

from imgcache.models.config import CacheConfig
from imgcache.models.entry import CacheEntry, CacheHandler
from imgcache.models.stats import CacheStats
from imgcache.ports import StoragePort, TransferHandle, TransportPort
from imgcache.utils.path import resolve_cache_path
from imgcache.utils.structured_logger import CacheLogger, StructuredLogger

from .observer import SourceLike, check_source

log = logging.getLogger(__name__)


class ImageCache:
    """
    Caches remote images on disk and notifies subscribers of their state.

    Every method except clear_all() and join() is synchronous but must be called
    from inside a running event loop: existence checks and downloads continue as
    tasks owned by the cache. All entry bookkeeping happens between awaits on
    the loop's thread, so no locking is needed.

    Subscribers are called as handler(path, loading, failed):
      - (current path, True, False) when a download starts,
      - (final path, False, False) when a file is available,
      - (current path, False, True) when a download attempt failed.
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        storage: StoragePort | None = None,
        transport: TransportPort | None = None,
        logger: CacheLogger | None = None,
    ):
        """
        Args:
            config: Cache settings. Defaults are used if None.
            storage: Filesystem operations. Defaults to LocalStorage.
            transport: Downloader. Defaults to an HttpTransport built from config.
            logger: Structured cache event logger.
        """
        self.config = config or CacheConfig()
        if storage is None:
            from imgcache.storage.filesystem import LocalStorage

            storage = LocalStorage()
        if transport is None:
            from imgcache.transport.http import HttpTransport

            transport = HttpTransport.from_config(self.config)
        self.storage = storage
        self.transport = transport
        self.events = logger or CacheLogger(
            StructuredLogger("imgcache.events", enable_json=False)
        )
        self.stats = CacheStats()
        self._entries: dict[str, CacheEntry] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def cache_dir(self) -> Path:
        """The directory holding every cached file."""
        return self.config.cache_dir

    def entry(self, uri: str) -> CacheEntry | None:
        """Returns the entry tracked for a URI, if any."""
        return self._entries.get(uri)

    def __contains__(self, uri: object) -> bool:
        return uri in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def resolve_path(self, uri: str, immutable: bool, temp: bool = False) -> Path:
        """Resolves the cache path of a URI using this cache's settings."""
        return resolve_cache_path(
            uri,
            self.cache_dir,
            immutable,
            temp,
            default_extension=self.config.default_extension,
            temp_suffix=self.config.temp_suffix,
        )

    async def clear_all(self) -> None:
        """
        Forgets every entry and deletes the cache directory.

        Downloads that are still running keep updating their (now unreachable)
        entries and notify the subscribers those entries already had.

        Raises:
            CacheStorageError: If the directory could not be deleted.
        """
        count = len(self._entries)
        self._entries = {}
        log.info(f"Clearing image cache at '{self.cache_dir}'...")
        await self.storage.delete_recursive(self.cache_dir)
        self.events.cache_cleared(self.cache_dir, count)

    def subscribe(
        self, source: SourceLike, handler: CacheHandler, immutable: bool = False
    ) -> CacheEntry:
        """
        Registers a handler for an image and makes sure the image gets loaded.

        The first subscription for a URI creates its entry; later ones only add
        the handler (the same handler may be added more than once). Either way
        the cached file is validated, or downloaded if there is none.

        Args:
            source: An ImageSource, a URI string, or a mapping with a 'uri' key.
            handler: Called as handler(path, loading, failed).
            immutable: True if the content behind the URI never changes. Only
                honoured when the entry is created.

        Raises:
            UnsupportedSourceError: If source is a list of URIs.
            ValueError: If source has no URI.
        """
        checked = check_source(source)
        if checked is None:
            raise ValueError(f"Image source has no URI: {source!r}")

        uri = checked.identifier
        entry = self._entries.get(uri)
        if entry is None:
            entry = CacheEntry(
                source=checked,
                immutable=immutable,
                local_path=self.resolve_path(uri, True) if immutable else None,
                handlers=[handler],
            )
            self._entries[uri] = entry
            kind = "immutable" if immutable else "mutable"
            log.debug(f"Tracking new {kind} image '{uri}'.")
        else:
            entry.handlers.append(handler)

        self._fetch_or_validate(entry)
        return entry

    def unsubscribe(self, uri: str, handler: CacheHandler) -> None:
        """
        Removes every registration of a handler. Running downloads continue and
        the entry stays cached.
        """
        entry = self._entries.get(uri)
        if entry is None:
            return
        entry.handlers[:] = [h for h in entry.handlers if h is not handler]

    def invalidate(self, uri: str) -> None:
        """
        Busts the cached file of a mutable image and loads it again. Immutable
        images and unknown URIs are left alone.
        """
        entry = self._entries.get(uri)
        if entry is None or entry.immutable:
            return
        log.debug(f"Busting cached file of '{uri}'.")
        entry.local_path = None
        self._fetch_or_validate(entry)

    def cancel(self, uri: str) -> None:
        """
        Asks the transport to abort the running download of an image. The entry
        is updated once the transfer reports the cancellation as a failure.
        """
        entry = self._entries.get(uri)
        if entry is not None and entry.downloading and entry.transfer is not None:
            entry.transfer.cancel()

    async def join(self) -> None:
        """Waits until every pending check and download has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and (exc := task.exception()) is not None:
            log.error("Image cache task failed.", exc_info=exc)

    def _fetch_or_validate(self, entry: CacheEntry) -> None:
        if entry.local_path is not None:
            self._spawn(self._validate(entry, entry.local_path))
        else:
            self._download(entry)

    async def _validate(self, entry: CacheEntry, path: Path) -> None:
        """
        Confirms a cached file still exists. The platform may evict cache files
        without telling us, in which case the image is downloaded again.
        """
        exists = await self.storage.exists(path)
        if entry.local_path != path:
            log.debug(f"Discarding stale existence check for '{entry.identifier}'.")
            return
        if exists:
            self.stats.hits += 1
            self._notify(entry, loading=False, failed=False)
        else:
            log.debug(f"Cached file '{path}' disappeared, downloading again.")
            self._download(entry)

    def _download(self, entry: CacheEntry) -> None:
        """Starts a download unless one is running or the attempts are used up."""
        if entry.downloading:
            return
        if entry.attempts >= self.config.max_attempts:
            self.stats.downloads_refused += 1
            self.events.download_refused(entry.identifier, entry.attempts)
            return

        source = entry.source
        temp_path = self.resolve_path(source.uri, entry.immutable, temp=True)
        dest_path = self.resolve_path(source.uri, entry.immutable, temp=False)

        entry.downloading = True
        entry.generation += 1
        self.stats.misses += 1
        self.stats.downloads_started += 1
        self.events.download_started(source.uri, entry.attempts + 1, dest_path)

        self._notify(entry, loading=True, failed=False)
        try:
            entry.transfer = self.transport.fetch(
                source.method, source.uri, dict(source.headers), temp_path
            )
        except Exception as e:
            # Nothing was written, so there is no temp file to remove.
            log.debug(f"Transport rejected '{entry.identifier}'.", exc_info=True)
            entry.downloading = False
            entry.transfer = None
            self._record_failure(entry, None, repr(e))
            return
        self._spawn(
            self._finish_download(
                entry, entry.generation, entry.transfer, temp_path, dest_path
            )
        )

    async def _finish_download(
        self,
        entry: CacheEntry,
        generation: int,
        transfer: TransferHandle,
        temp_path: Path,
        dest_path: Path,
    ) -> None:
        started = time.monotonic()
        result = await transfer.wait()
        if generation != entry.generation:
            log.debug(f"Discarding late download result for '{entry.identifier}'.")
            if entry.transfer is transfer:
                # No newer attempt took over, so release the entry.
                entry.downloading = False
                entry.transfer = None
            return

        error = None
        if result.ok:
            try:
                await self.storage.move(temp_path, dest_path)
            except Exception as e:
                error = str(e) or repr(e)
        elif result.error is not None:
            error = repr(result.error)
        else:
            error = f"unexpected status {result.status}"

        if error is None:
            entry.downloading = False
            entry.transfer = None
            entry.local_path = dest_path
            self.stats.downloads_completed += 1
            self.events.download_completed(
                entry.identifier, dest_path, time.monotonic() - started
            )
            self._notify(entry, loading=False, failed=False)
            return

        # Parts of the image may have been written already. The entry stays
        # busy until the temp file is gone so a new attempt cannot race it.
        try:
            await self.storage.delete(temp_path)
        except Exception:
            log.debug(f"Could not remove '{temp_path}'.", exc_info=True)
        entry.downloading = False
        entry.transfer = None
        self._record_failure(entry, result.status, error)

    def _record_failure(
        self, entry: CacheEntry, status: int | None, error: str
    ) -> None:
        entry.attempts += 1
        self.stats.downloads_failed += 1
        self.events.download_failed(entry.identifier, entry.attempts, status, error)
        self._notify(entry, loading=False, failed=True)

    def _notify(self, entry: CacheEntry, loading: bool, failed: bool) -> None:
        """
        Calls every handler with the entry's current path. Iterates over a copy,
        so handlers may subscribe or unsubscribe while being notified; such
        changes take effect from the next notification.
        """
        path = entry.local_path
        for handler in list(entry.handlers):
            try:
                handler(path, loading, failed)
            except Exception:
                log.exception(f"Handler for '{entry.identifier}' raised.")


_shared_cache: ImageCache | None = None


def get_image_cache() -> ImageCache:
    """
    Returns the process-wide image cache, creating it with default settings on
    first use. Applications that need other settings should call
    set_image_cache() first, or construct and pass around their own ImageCache.
    """
    global _shared_cache
    if _shared_cache is None:
        _shared_cache = ImageCache()
    return _shared_cache


def set_image_cache(cache: ImageCache | None) -> None:
    """Replaces the process-wide image cache. None resets it."""
    global _shared_cache
    _shared_cache = cache
