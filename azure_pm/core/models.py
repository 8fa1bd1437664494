"""Domain data models for work items, sprints and sync bookkeeping."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .config import CACHE_CATEGORIES, DEFAULT_PRIORITY, UNASSIGNED

SECONDS_PER_DAY = 86400.0


@dataclass(slots=True)
class WorkItem:
    id: int
    title: str
    type: str
    state: str
    assignee: str | None = None
    priority: int = DEFAULT_PRIORITY
    story_points: float = 0.0
    remaining_work: float = 0.0
    completed_work: float = 0.0
    original_estimate: float = 0.0
    tags: list[str] = field(default_factory=list)
    iteration_path: str = ""
    created_date: datetime | None = None
    changed_date: datetime | None = None

    @property
    def assignee_name(self) -> str:
        return self.assignee or UNASSIGNED

    def has_tag(self, *tokens: str) -> bool:
        """Case-insensitive membership test against any of ``tokens``."""
        wanted = {t.lower() for t in tokens}
        return any(tag.lower() in wanted for tag in self.tags)


@dataclass(slots=True)
class Sprint:
    name: str
    path: str
    start_date: datetime | None = None
    end_date: datetime | None = None

    @property
    def has_dates(self) -> bool:
        return self.start_date is not None and self.end_date is not None

    @property
    def total_days(self) -> int:
        if not self.has_dates:
            return 0
        span = (self.end_date - self.start_date).total_seconds() / SECONDS_PER_DAY
        return max(math.ceil(span), 0)

    def days_elapsed(self, now: datetime) -> int:
        if not self.has_dates:
            return 0
        elapsed = math.ceil((now - self.start_date).total_seconds() / SECONDS_PER_DAY)
        return min(max(elapsed, 0), self.total_days)

    def days_remaining(self, now: datetime) -> int:
        return self.total_days - self.days_elapsed(now)

    def progress_percent(self, now: datetime) -> int:
        if not self.has_dates:
            return 0
        if now < self.start_date:
            return 0
        if now > self.end_date:
            return 100
        total = (self.end_date - self.start_date).total_seconds()
        if total <= 0:
            return 100
        return round((now - self.start_date).total_seconds() / total * 100)


class SyncMode(str, Enum):
    FULL = "full"
    QUICK = "quick"


class SyncState(str, Enum):
    IDLE = "idle"
    LOADING_CREDENTIALS = "loading_credentials"
    FULL_SYNC = "full_sync"
    QUICK_SYNC = "quick_sync"
    QUERYING = "querying"
    FETCHING_DETAILS = "fetching_details"
    CACHING = "caching"
    EVICTING = "evicting"
    WRITING_METADATA = "writing_metadata"
    FAILED = "failed"


def _zero_counts() -> dict[str, int]:
    return {category: 0 for category in CACHE_CATEGORIES}


@dataclass(slots=True)
class SyncMetadata:
    timestamp: datetime
    mode: str
    items_synced: dict[str, int] = field(default_factory=_zero_counts)
    cached_items: dict[str, int] = field(default_factory=_zero_counts)
    evicted: dict[str, int] = field(default_factory=_zero_counts)
    cache_size: str = "0 B"
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "mode": self.mode,
            "cache_size": self.cache_size,
            "items_synced": dict(self.items_synced),
            "cached_items": dict(self.cached_items),
            "evicted": dict(self.evicted),
            "errors": list(self.errors),
            "duration_seconds": round(self.duration_seconds, 3),
        }

    @classmethod
    def from_dict(cls, data: dict) -> SyncMetadata:
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            mode=data.get("mode", SyncMode.FULL.value),
            items_synced={**_zero_counts(), **(data.get("items_synced") or {})},
            cached_items={**_zero_counts(), **(data.get("cached_items") or {})},
            evicted={**_zero_counts(), **(data.get("evicted") or {})},
            cache_size=data.get("cache_size", "0 B"),
            errors=list(data.get("errors") or []),
            duration_seconds=float(data.get("duration_seconds") or 0.0),
        )
