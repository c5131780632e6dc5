"""Shared fixtures: in-memory storage and a scriptable transport."""

import asyncio
from pathlib import Path

import pytest

from imgcache.core.cache_manager import ImageCache
from imgcache.exceptions import CacheStorageError
from imgcache.models.config import CacheConfig
from imgcache.ports import TransferResult


class FakeStorage:
    """Keeps 'files' in a dict instead of on disk."""

    def __init__(self):
        self.files: dict[Path, bytes] = {}
        self.deleted: list[Path] = []
        self.cleared: list[Path] = []
        self.fail_move = False
        self.fail_clear = False

    async def exists(self, path: Path) -> bool:
        await asyncio.sleep(0)
        return path in self.files

    async def move(self, src: Path, dst: Path) -> None:
        await asyncio.sleep(0)
        if self.fail_move or src not in self.files:
            raise CacheStorageError(f"cannot move {src}")
        self.files[dst] = self.files.pop(src)

    async def delete(self, path: Path) -> None:
        self.deleted.append(path)
        self.files.pop(path, None)

    async def delete_recursive(self, path: Path) -> None:
        if self.fail_clear:
            raise CacheStorageError(f"cannot delete {path}")
        self.cleared.append(path)
        for file_path in list(self.files):
            if path in file_path.parents:
                del self.files[file_path]


class FakeTransfer:
    """A transfer that settles when the test says so."""

    def __init__(self, storage, method, url, headers, destination):
        self.storage = storage
        self.method = method
        self.url = url
        self.headers = headers
        self.destination = destination
        self.cancelled = False
        self._future = asyncio.get_running_loop().create_future()

    def complete(self, status: int = 200, body: bytes = b"\x89PNG") -> None:
        if status == 200:
            self.storage.files[self.destination] = body
        self._future.set_result(TransferResult(status=status))

    def fail(self, error: BaseException) -> None:
        self._future.set_result(TransferResult(error=error))

    def cancel(self) -> None:
        self.cancelled = True
        if not self._future.done():
            self.fail(asyncio.CancelledError())

    async def wait(self) -> TransferResult:
        return await self._future


class FakeTransport:
    """
    Records every fetch. With a status configured, transfers settle at once
    with that status (a list is consumed one status per fetch); with
    status=None they stay pending until completed by the test.
    """

    def __init__(self, storage: FakeStorage, status=200):
        self.storage = storage
        self.status = status
        self.transfers: list[FakeTransfer] = []

    def fetch(self, method, url, headers, destination) -> FakeTransfer:
        transfer = FakeTransfer(self.storage, method, url, headers, destination)
        self.transfers.append(transfer)
        status = self.status.pop(0) if isinstance(self.status, list) else self.status
        if status is not None:
            transfer.complete(status)
        return transfer


class Recorder:
    """A subscriber that remembers every notification."""

    def __init__(self, name: str = "", log: list | None = None):
        self.name = name
        self.calls: list[tuple[Path | None, bool, bool]] = []
        self._log = log

    def __call__(self, path, loading, failed):
        self.calls.append((path, loading, failed))
        if self._log is not None:
            self._log.append((self.name, path, loading, failed))

    @property
    def loading_events(self) -> int:
        return sum(1 for _, loading, _ in self.calls if loading)


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "imgcache"


@pytest.fixture
def config(cache_dir):
    return CacheConfig(cache_dir=cache_dir)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def transport(storage):
    return FakeTransport(storage)


@pytest.fixture
def make_cache(config, storage, transport):
    """Builds an ImageCache wired to the fakes. Must be called inside a loop."""

    def _make(**kwargs) -> ImageCache:
        return ImageCache(
            kwargs.get("config", config),
            storage=kwargs.get("storage", storage),
            transport=kwargs.get("transport", transport),
        )

    return _make
