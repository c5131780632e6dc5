"""
Pydantic model for cache configuration.
Provides robust validation for all settings.
"""

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


def get_default_cache_dir() -> Path:
    """Returns the platform's per-user cache directory for downloaded images."""
    if os.name == "nt":
        base_dir = Path(os.getenv("LOCALAPPDATA", "~\\AppData\\Local"))
    else:
        base_dir = Path(os.getenv("XDG_CACHE_HOME", "~/.cache"))
    return base_dir.expanduser() / "imgcache"


class CacheConfig(BaseModel):
    """A validated configuration model for the image cache."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Storage Settings
    cache_dir: Path = Field(default_factory=get_default_cache_dir)
    default_extension: str = ".jpg"
    temp_suffix: str = "temp"

    # Download Settings
    max_attempts: int = 3
    max_workers: int = 8
    connect_timeout: float = 15.0
    read_timeout: float = 90.0
    chunk_size: int = 131072  # 128 KB

    @field_validator("cache_dir")
    @classmethod
    def expand_cache_dir(cls, v: Path) -> Path:
        """Expands '~' so every path derived from the cache root is absolute-ish."""
        return v.expanduser()

    @field_validator("default_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        """Ensures the fallback extension looks like '.ext'."""
        if len(v) < 2 or not v.startswith("."):
            raise ValueError("Default extension must start with '.', e.g. '.jpg'.")
        if "/" in v or "\\" in v:
            raise ValueError("Default extension cannot contain path separators.")
        return v

    @field_validator("temp_suffix")
    @classmethod
    def validate_temp_suffix(cls, v: str) -> str:
        """
        The temp suffix is inserted before the extension, so it must not be able
        to change the extension or escape the cache directory.
        """
        if not v:
            raise ValueError("Temp suffix cannot be empty.")
        if "." in v or "/" in v or "\\" in v:
            raise ValueError("Temp suffix cannot contain '.' or path separators.")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Max attempts must be between 1 and 10.")
        return v

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a reasonable number of pooled connections."""
        if v < 1 or v > 32:
            raise ValueError("Max workers must be between 1 and 32.")
        return v

    @field_validator("connect_timeout", "read_timeout")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be positive.")
        return v

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        if v < 1024:
            raise ValueError("Chunk size must be at least 1024 bytes.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        return set(cls.model_fields)
