"""SyncOrchestrator: pulls work items into the local cache (full or quick mode)."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from contextlib import suppress
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import pytz

from .cache import CacheStore
from .config import CACHE_CATEGORIES, SYNC_WORK_ITEM_TYPES, SyncSettings
from .devops_client import AuthenticationError, DevOpsAPI
from .mappers import map_work_item
from .models import SyncMetadata, SyncMode, SyncState
from .status import category_for_type
from .wiql import changed_items_query

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int | None, int | None], None]
FetchOutcome = tuple[int, Any]  # (id, raw payload dict or the Exception raised)


def _utcnow() -> datetime:
    return datetime.now(pytz.UTC)


class SyncOrchestrator:
    def __init__(
        self,
        api: DevOpsAPI,
        cache: CacheStore,
        settings: SyncSettings | None = None,
        *,
        progress: ProgressCallback | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.api = api
        self.cache = cache
        self.settings = settings or SyncSettings()
        self.progress = progress
        self._clock = clock
        self.state = SyncState.IDLE

    # ------------------ Entry points ------------------
    def run(self, mode: str | SyncMode = SyncMode.FULL) -> SyncMetadata:
        try:
            mode = SyncMode(mode)
        except ValueError:
            raise ValueError(f"Unknown sync mode: {mode!r} (expected 'full' or 'quick')") from None
        if mode is SyncMode.FULL:
            return self.full_sync()
        return self.quick_sync()

    def full_sync(self) -> SyncMetadata:
        """Sync each category over the long window, then evict stale entries."""
        return self._execute(SyncMode.FULL)

    def quick_sync(self) -> SyncMetadata:
        """Sync recently changed items of all types in one pass, no eviction."""
        return self._execute(SyncMode.QUICK)

    # ------------------ Pipeline ------------------
    def _execute(self, mode: SyncMode) -> SyncMetadata:
        started = time.monotonic()
        self.state = SyncState.LOADING_CREDENTIALS
        try:
            self.api.credentials.validate()
        except Exception:
            self.state = SyncState.FAILED
            raise

        # Every run must see fresh server data
        self.api.clear_cache()
        now = self._clock()
        metadata = SyncMetadata(timestamp=now, mode=mode.value)
        try:
            if mode is SyncMode.FULL:
                self.state = SyncState.FULL_SYNC
                self._run_full(metadata, now)
                self.state = SyncState.EVICTING
                self._evict(metadata, now)
            else:
                self.state = SyncState.QUICK_SYNC
                self._run_quick(metadata, now)
        except AuthenticationError:
            self.state = SyncState.FAILED
            raise

        self.state = SyncState.WRITING_METADATA
        metadata.cached_items = self.cache.counts()
        metadata.cache_size = self.cache.size_label()
        metadata.duration_seconds = time.monotonic() - started
        self._write_metadata(metadata)
        self.state = SyncState.IDLE
        logger.info(
            "%s sync finished: synced=%s cached=%s errors=%d",
            mode.value,
            metadata.items_synced,
            metadata.cached_items,
            len(metadata.errors),
        )
        logger.debug("Query cache: %s", self.api.cache_stats())
        return metadata

    def _run_full(self, metadata: SyncMetadata, now: datetime) -> None:
        since = now - timedelta(days=self.settings.full_window_days)
        for work_item_type in SYNC_WORK_ITEM_TYPES:
            category = category_for_type(work_item_type)
            ids = self._query(
                changed_items_query([work_item_type], since, self.api.credentials.project),
                label=work_item_type,
                metadata=metadata,
            )
            if not ids:
                continue
            self._report(f"Fetching {len(ids)} {work_item_type} items", 0, len(ids))
            results = self.fetch_details(ids)
            self.state = SyncState.CACHING
            for item_id, raw in self._successful(results, metadata):
                self._store(category, item_id, raw, metadata)

    def _run_quick(self, metadata: SyncMetadata, now: datetime) -> None:
        since = now - timedelta(days=self.settings.quick_window_days)
        ids = self._query(
            changed_items_query(SYNC_WORK_ITEM_TYPES, since, self.api.credentials.project),
            label="quick sync",
            metadata=metadata,
        )
        if not ids:
            return
        self._report(f"Fetching {len(ids)} recently changed items", 0, len(ids))
        results = self.fetch_details(ids)

        # Group locally by type; no second query
        grouped: dict[str, list[tuple[int, dict]]] = {c: [] for c in CACHE_CATEGORIES}
        for item_id, raw in self._successful(results, metadata):
            try:
                work_item_type = map_work_item(raw).type
            except (TypeError, ValueError) as exc:
                metadata.errors.append(f"Failed to parse work item {item_id}: {exc}")
                continue
            category = category_for_type(work_item_type)
            if category is None:
                logger.warning("Skipping work item %s of uncached type %s", item_id, work_item_type)
                continue
            grouped[category].append((item_id, raw))

        self.state = SyncState.CACHING
        for category, entries in grouped.items():
            for item_id, raw in entries:
                self._store(category, item_id, raw, metadata)

    def _query(self, wiql: str, *, label: str, metadata: SyncMetadata) -> list[int]:
        self.state = SyncState.QUERYING
        self._report(f"Querying {label}", None, None)
        try:
            refs = self.api.query(wiql)
        except AuthenticationError:
            raise
        except Exception as exc:
            message = f"Query failed for {label}: {exc}"
            logger.warning(message)
            metadata.errors.append(message)
            return []
        return [ref["id"] for ref in refs]

    def fetch_details(self, ids: Sequence[int]) -> list[FetchOutcome]:
        self.state = SyncState.FETCHING_DETAILS
        return fetch_details(
            self.api,
            ids,
            max_workers=self.settings.max_workers,
            min_parallel=self.settings.min_parallel,
            progress=self.progress,
        )

    def _successful(self, results: Iterable[FetchOutcome], metadata: SyncMetadata):
        for item_id, outcome in results:
            if isinstance(outcome, AuthenticationError):
                raise outcome
            if isinstance(outcome, Exception):
                message = f"Failed to fetch work item {item_id}: {outcome}"
                logger.warning(message)
                metadata.errors.append(message)
                continue
            yield item_id, outcome

    def _store(self, category: str, item_id: int, raw: dict, metadata: SyncMetadata) -> None:
        try:
            self.cache.put(category, item_id, raw)
        except OSError as exc:
            message = f"Failed to cache work item {item_id}: {exc}"
            logger.warning(message)
            metadata.errors.append(message)
            return
        metadata.items_synced[category] += 1

    def _evict(self, metadata: SyncMetadata, now: datetime) -> None:
        for category in CACHE_CATEGORIES:
            removed = self.cache.evict_older_than(
                category, self.settings.max_cache_age_days, now=now.timestamp()
            )
            metadata.evicted[category] = removed
            if removed:
                logger.info("Evicted %d stale %s entries", removed, category)

    def _write_metadata(self, metadata: SyncMetadata) -> None:
        path = self.settings.metadata_path
        try:
            write_sync_metadata(path, metadata)
        except OSError as exc:
            message = f"Failed to write sync metadata {path}: {exc}"
            logger.error(message)
            metadata.errors.append(message)

    def _report(self, message: str, current: int | None, total: int | None) -> None:
        if self.progress:
            self.progress(message, current, total)


def write_sync_metadata(path: str | Path, metadata: SyncMetadata) -> None:
    """Overwrite ``path`` with the metadata snapshot (never appends)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".last-sync.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(metadata.to_dict(), fh, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        with suppress(OSError):
            os.unlink(tmp_name)
        raise


def read_last_sync(path: str | Path) -> SyncMetadata | None:
    path = Path(path)
    if not path.exists():
        return None
    try:
        return SyncMetadata.from_dict(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError, KeyError, TypeError) as exc:
        logger.warning("Unreadable sync metadata %s: %s", path, exc)
        return None


def fetch_details(
    api: DevOpsAPI,
    ids: Sequence[int],
    *,
    max_workers: int,
    min_parallel: int,
    progress: ProgressCallback | None = None,
) -> list[FetchOutcome]:
    """Fetch full payloads for ``ids`` on a bounded worker pool.

    Returns ``(id, payload-or-exception)`` pairs in the order of ``ids``; one
    failed fetch never affects the others. Timeouts surface as per-item
    ``DevOpsAPIError`` outcomes.
    """
    if not ids:
        return []

    def _task(item_id: int) -> FetchOutcome:
        try:
            return item_id, api.fetch_work_item_raw(item_id)
        except Exception as exc:
            return item_id, exc

    total = len(ids)
    out: list[FetchOutcome] = []
    # Sequential short-circuit
    if total < min_parallel or max_workers <= 1:
        for idx, item_id in enumerate(ids, start=1):
            out.append(_task(item_id))
            if progress:
                progress("Fetching work item details", idx, total)
        return out

    # Parallel fetch using threads (I/O bound HTTP calls)
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        for idx, outcome in enumerate(pool.map(_task, ids), start=1):
            out.append(outcome)
            if progress:
                progress("Fetching work item details", idx, total)
    return out
