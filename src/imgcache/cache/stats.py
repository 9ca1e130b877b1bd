"""Cache entry and statistics models."""

from __future__ import annotations

import time

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field


class CacheEntry(BaseModel):
    """A decoded image held by the memory tier."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: str
    locator: str = ""
    image: Image.Image
    created_at: float = Field(default_factory=time.time)
    last_accessed: float = Field(default_factory=time.time)

    @property
    def cost(self) -> int:
        """Approximate decoded size in bytes (width x height x bands)."""
        width, height = self.image.size
        return width * height * len(self.image.getbands())


class DiskRecord(BaseModel):
    """Serialized image bytes held by the disk tier."""

    key: str
    locator: str = ""
    data: bytes
    created_at: float = Field(default_factory=time.time)
    last_accessed: float = Field(default_factory=time.time)

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def is_expired(self, expiration_seconds: float, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        return now - self.created_at > expiration_seconds


class CacheStats(BaseModel):
    """Aggregate cache statistics."""

    memory_entries: int = 0
    memory_bytes: int = 0
    disk_entries: int = 0
    disk_bytes: int = 0
    memory_hits: int = 0
    disk_hits: int = 0
    misses: int = 0
    fetches: int = 0
    coalesced: int = 0
    failures: int = 0

    @property
    def hits(self) -> int:
        return self.memory_hits + self.disk_hits

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    @property
    def memory_mb(self) -> float:
        return self.memory_bytes / (1024 * 1024)

    @property
    def disk_mb(self) -> float:
        return self.disk_bytes / (1024 * 1024)
