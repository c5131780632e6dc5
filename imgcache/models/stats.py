"""
Dataclass for tracking cache activity statistics.
"""

from dataclasses import dataclass


@dataclass
class CacheStats:
    """Counts cache hits and the outcome of every download attempt."""

    hits: int = 0
    misses: int = 0
    downloads_started: int = 0
    downloads_completed: int = 0
    downloads_failed: int = 0
    downloads_refused: int = 0

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups answered from disk, 0.0 when nothing was looked up."""
        total = self.hits + self.misses
        return self.hits / total if total else 0.0
