"""
The per-URI bookkeeping record kept by the image cache.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from imgcache.models.source import ImageSource
from imgcache.ports import TransferHandle

# Called with (path, loading, failed) on every state change of an entry.
CacheHandler = Callable[[Path | None, bool, bool], None]


@dataclass(eq=False)
class CacheEntry:
    """
    Download state and subscribers for a single image URI.

    Attributes:
        source: The request the entry was created from. Never replaced.
        immutable: True if the URI's content never changes. Immutable entries
            live at a content-addressed path and are never busted.
        local_path: Location of the committed file, or None until a download
            succeeds (and again after a bust).
        downloading: True while a transfer is in flight.
        transfer: Handle of the in-flight transfer, used for cancellation.
        attempts: Number of failed download attempts so far.
        handlers: Subscribers, in registration order. Duplicates are allowed.
        generation: Incremented whenever a download attempt starts.
    """

    source: ImageSource
    immutable: bool = False
    local_path: Path | None = None
    downloading: bool = False
    transfer: TransferHandle | None = field(default=None, repr=False)
    attempts: int = 0
    handlers: list[CacheHandler] = field(default_factory=list, repr=False)
    generation: int = 0

    @property
    def identifier(self) -> str:
        return self.source.uri
