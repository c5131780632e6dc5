"""
Structured logging system for cache events.
Provides human-readable console messages and optional JSON-formatted log files.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any


class StructuredLogger:
    """
    Logger that outputs both human-readable and machine-parseable logs.

    Usage:
        logger = StructuredLogger("imgcache")
        logger.info("download_completed",
                    uri="https://example.com/cat.png",
                    path="/home/me/.cache/imgcache/3f2a.png")
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
            enable_console: Enable output through the standard logging module
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console

        self._logger = logging.getLogger(name)

        self._json_file = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            json_log_path = log_dir / f"imgcache_{timestamp}.jsonl"
            self._json_file = open(json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Session context (added to all JSON entries)
        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    @property
    def json_log_path(self) -> Path | None:
        """Path of the JSONL file being written, if any."""
        return Path(self._json_file.name) if self._json_file else None

    def set_session_context(self, **kwargs) -> None:
        """Set session-level context that appears in all JSON entries."""
        self._session_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        """Format message for console output."""
        parts = [f"[{event}]"]
        for key, value in context.items():
            if key not in ("level", "timestamp"):
                parts.append(f"{key}={value}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        """Write structured log entry to JSON file."""
        if not self._json_file or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }

        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except (OSError, ValueError) as e:
            # Fallback to stderr if JSON logging fails
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def _log(self, level: int, event: str, **context) -> None:
        if self.enable_console:
            # Plain formatting: URIs may contain '[' which Rich would parse.
            self._logger.log(
                level,
                self._format_message(event, **context),
                extra={"markup": False},
            )
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        """Log debug event."""
        self._log(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        """Log info event."""
        self._log(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        """Log warning event."""
        self._log(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        """Log error event."""
        self._log(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class CacheLogger:
    """Specialized logger for image cache events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def download_started(self, uri: str, attempt: int, destination: Path):
        """Log a download attempt starting."""
        self.logger.debug(
            "download_started",
            uri=uri,
            attempt=attempt,
            destination=str(destination),
        )

    def download_completed(self, uri: str, path: Path, duration_s: float):
        """Log a download committed to its final path."""
        self.logger.info(
            "download_completed",
            uri=uri,
            path=str(path),
            duration_s=round(duration_s, 3),
        )

    def download_failed(self, uri: str, attempt: int, status: int | None, error: str):
        """Log a failed download attempt."""
        self.logger.warning(
            "download_failed",
            uri=uri,
            attempt=attempt,
            status=status,
            error=error,
        )

    def download_refused(self, uri: str, attempts: int):
        """Log a download skipped because the attempt budget is used up."""
        self.logger.debug("download_refused", uri=uri, attempts=attempts)

    def cache_cleared(self, cache_dir: Path, entries: int):
        """Log the cache being wiped."""
        self.logger.info("cache_cleared", cache_dir=str(cache_dir), entries=entries)


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, CacheLogger]:
    """
    Create the structured loggers.

    Returns:
        Tuple of (base_logger, cache_logger)
    """
    base = StructuredLogger("imgcache", log_dir=log_dir, enable_json=enable_json)
    return base, CacheLogger(base)
