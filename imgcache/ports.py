"""
Port interfaces for the collaborators the image cache depends on.

The cache only talks to storage and transport through these protocols, so
tests and embedding applications can supply their own implementations.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True)
class TransferResult:
    """
    Outcome of a finished transfer.

    Attributes:
        status: HTTP status code, or None if no response was received.
        error: The exception that ended the transfer early (including
            asyncio.CancelledError for cancelled transfers), or None.
    """

    status: int | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status == 200


class TransferHandle(Protocol):
    """An in-flight transfer that can be awaited or cancelled."""

    def cancel(self) -> None:
        """Ask the transport to abort. The outcome is reported through wait()."""
        ...

    async def wait(self) -> TransferResult:
        """Wait for the transfer to settle. Never raises for transfer failures."""
        ...


class TransportPort(Protocol):
    """Port for fetching a URL into a local file."""

    def fetch(
        self, method: str, url: str, headers: dict[str, str], destination: Path
    ) -> TransferHandle:
        """Start streaming the response body of a request into destination."""
        ...


class StoragePort(Protocol):
    """Port for the filesystem operations of the cache."""

    async def exists(self, path: Path) -> bool:
        """Check whether a file is still present."""
        ...

    async def move(self, src: Path, dst: Path) -> None:
        """Atomically rename src to dst, replacing dst."""
        ...

    async def delete(self, path: Path) -> None:
        """Remove a single file."""
        ...

    async def delete_recursive(self, path: Path) -> None:
        """Remove a directory tree. A missing directory is not an error."""
        ...
