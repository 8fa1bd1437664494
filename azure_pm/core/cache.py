"""File-backed work item cache partitioned by category.

Layout::

    <root>/features/<id>.json
    <root>/stories/<id>.json
    <root>/tasks/<id>.json      (tasks and bugs)

Each file holds the raw REST payload from the last successful fetch. Payloads
are written opaque and reparsed into ``WorkItem`` on read. Every ``put`` is a
full overwrite, so repeated syncs of the same item are idempotent.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
from collections.abc import Mapping
from contextlib import suppress
from pathlib import Path
from typing import Any

from .config import CACHE_CATEGORIES
from .mappers import map_work_item
from .models import SECONDS_PER_DAY, WorkItem

logger = logging.getLogger(__name__)

_SIZE_UNITS = ("B", "KB", "MB", "GB")


def format_size(num_bytes: int) -> str:
    size = float(num_bytes)
    for unit in _SIZE_UNITS:
        if size < 1024 or unit == _SIZE_UNITS[-1]:
            return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} {_SIZE_UNITS[-1]}"


class CacheStore:
    def __init__(self, root: str | Path):
        self.root = Path(root)
        self._locks: dict[Path, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ------------------ Paths ------------------
    def _category_dir(self, category: str) -> Path:
        if category not in CACHE_CATEGORIES:
            raise ValueError(f"Unknown cache category: {category!r}")
        return self.root / category

    def path_for(self, category: str, item_id: int) -> Path:
        return self._category_dir(category) / f"{int(item_id)}.json"

    def _lock_for(self, path: Path) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(path)
            if lock is None:
                lock = self._locks[path] = threading.Lock()
            return lock

    # ------------------ Write ------------------
    def put(self, category: str, item_id: int, payload: Mapping[str, Any]) -> Path:
        """Serialize ``payload`` to ``<category>/<id>.json``, replacing any previous copy."""
        path = self.path_for(category, item_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps(payload, indent=2, sort_keys=True, default=str)
        with self._lock_for(path):
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                with suppress(OSError):
                    os.unlink(tmp_name)
                raise
        return path

    # ------------------ Read ------------------
    def get_raw(self, category: str, item_id: int) -> dict[str, Any] | None:
        path = self.path_for(category, item_id)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable cache entry %s: %s", path, exc)
            return None

    def get(self, category: str, item_id: int) -> WorkItem | None:
        raw = self.get_raw(category, item_id)
        if raw is None:
            return None
        try:
            return map_work_item(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("Corrupt cache entry %s/%s: %s", category, item_id, exc)
            return None

    def list(self, category: str) -> list[int]:
        directory = self._category_dir(category)
        if not directory.is_dir():
            return []
        ids = []
        for entry in directory.glob("*.json"):
            try:
                ids.append(int(entry.stem))
            except ValueError:
                continue
        return sorted(ids)

    def load(self, category: str) -> list[WorkItem]:
        items = []
        for item_id in self.list(category):
            item = self.get(category, item_id)
            if item is not None:
                items.append(item)
        return items

    def load_all(self) -> list[WorkItem]:
        out: list[WorkItem] = []
        for category in CACHE_CATEGORIES:
            out.extend(self.load(category))
        return out

    # ------------------ Maintenance ------------------
    def evict_older_than(self, category: str, max_age_days: float, *, now: float | None = None) -> int:
        """Delete entries whose last write is more than ``max_age_days`` old.

        Returns the number of removed entries. A failed delete is logged and
        skipped so one bad file never aborts the cleanup pass.
        """
        directory = self._category_dir(category)
        if not directory.is_dir():
            return 0
        now = time.time() if now is None else now
        threshold = max_age_days * SECONDS_PER_DAY
        removed = 0
        for entry in directory.glob("*.json"):
            try:
                age = now - entry.stat().st_mtime
                if age > threshold:
                    with self._lock_for(entry):
                        entry.unlink()
                    removed += 1
                    logger.debug("Evicted %s (%.1f days old)", entry, age / SECONDS_PER_DAY)
            except OSError as exc:
                logger.warning("Failed to evict cache entry %s: %s", entry, exc)
        return removed

    def counts(self) -> dict[str, int]:
        return {category: len(self.list(category)) for category in CACHE_CATEGORIES}

    def size_bytes(self) -> int:
        total = 0
        for category in CACHE_CATEGORIES:
            directory = self.root / category
            if not directory.is_dir():
                continue
            for entry in directory.glob("*.json"):
                try:
                    total += entry.stat().st_size
                except OSError:
                    continue
        return total

    def size_label(self) -> str:
        return format_size(self.size_bytes())
