"""
Framework-independent glue between an image widget and the image cache.
"""

import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

from pydantic import ValidationError

from imgcache.exceptions import UnsupportedSourceError
from imgcache.models.source import ImageSource

if TYPE_CHECKING:
    from .cache_manager import ImageCache

log = logging.getLogger(__name__)

SourceLike = Union[ImageSource, str, Mapping[str, Any], list, tuple, int, None]
PathCallback = Callable[[Path | None], None]


def check_source(source: SourceLike) -> ImageSource | None:
    """
    Normalizes an image source.

    Returns an ImageSource for anything carrying a URI and None for sources
    the cache has nothing to do with, such as bundled resource ids.

    Raises:
        UnsupportedSourceError: If several sources are given at once.
        ValueError: If a mapping carries a URI but is otherwise invalid.
    """
    if isinstance(source, (list, tuple)):
        raise UnsupportedSourceError(
            "Giving multiple URIs to a cached image is not supported. "
            "Pass a single source instead."
        )
    if isinstance(source, ImageSource):
        return source
    if isinstance(source, str):
        return ImageSource(uri=source) if source.strip() else None
    if isinstance(source, Mapping):
        if not source.get("uri"):
            return None
        try:
            return ImageSource.model_validate(dict(source))
        except ValidationError as e:
            raise ValueError(f"Invalid image source: {e}") from e
    return None


class ImageObserver:
    """
    Follows one image at a time on behalf of a widget.

    Subscribes to the cache for the current source, switches subscriptions when
    the source changes, and dispatches cache notifications to the widget's
    callbacks. The last committed path is kept in `path`.
    """

    def __init__(
        self,
        cache: "ImageCache",
        on_load_start: PathCallback | None = None,
        on_load_end: PathCallback | None = None,
        on_error: PathCallback | None = None,
    ):
        self.cache = cache
        self.on_load_start = on_load_start
        self.on_load_end = on_load_end
        self.on_error = on_error
        self.uri: str | None = None
        self.path: Path | None = None
        # Bound once: the cache removes handlers by identity.
        self._handler = self._handle

    def observe(self, source: SourceLike, mutable: bool = False) -> None:
        """
        Starts following a source. Observing the URI already followed does
        nothing; a new URI drops the previous subscription first.

        Raises:
            UnsupportedSourceError: If several sources are given at once.
        """
        checked = check_source(source)
        if checked is None or checked.uri == self.uri:
            return
        self.dispose()
        self.uri = checked.uri
        self.path = None
        self.cache.subscribe(checked, self._handler, immutable=not mutable)

    def dispose(self) -> None:
        """Stops following the current source."""
        if self.uri is not None:
            self.cache.unsubscribe(self.uri, self._handler)
            self.uri = None

    def _handle(self, path: Path | None, loading: bool, failed: bool) -> None:
        if loading:
            if self.on_load_start:
                self.on_load_start(path)
            return
        if failed:
            if self.on_error:
                self.on_error(path)
            return
        if self.on_load_end:
            self.on_load_end(path)
        self.path = path
