"""Cache entry metadata model."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

CACHE_FORMAT_VERSION = "1.0"
METADATA_FILE = ".scaffold-cache.json"
DEFAULT_TTL_HOURS = 24


class CacheEntry(BaseModel):
    """Metadata written next to every cached clone.

    ``last_updated`` and ``ttl_hours`` are optional so that partially written
    or hand-edited files still parse; an entry without ``last_updated`` is
    always considered expired.
    """

    source_url: str
    branch: Optional[str] = None
    key: str = ""
    local_path: Optional[Path] = None
    last_updated: Optional[datetime] = None
    ttl_hours: Optional[int] = Field(default=None, ge=0)
    cache_format_version: str = CACHE_FORMAT_VERSION

    def age(self, now: datetime | None = None) -> timedelta | None:
        if self.last_updated is None:
            return None
        current = now or datetime.now(timezone.utc)
        updated = self.last_updated
        if updated.tzinfo is None:
            updated = updated.replace(tzinfo=timezone.utc)
        return current - updated
