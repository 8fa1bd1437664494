"""WorkItemService: loads sprint work items from the cache or a live fetch."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .cache import CacheStore
from .config import SyncSettings
from .devops_client import AuthenticationError, DevOpsAPI, DevOpsAPIError
from .mappers import map_work_item
from .models import Sprint, WorkItem
from .sync import ProgressCallback, fetch_details
from .wiql import blocked_items_query, sprint_items_query

logger = logging.getLogger(__name__)

SOURCES = ("cache", "live")


class WorkItemService:
    def __init__(
        self,
        api: DevOpsAPI | None,
        cache: CacheStore,
        settings: SyncSettings | None = None,
    ):
        self.api = api
        self.cache = cache
        self.settings = settings or SyncSettings()

    def _require_api(self) -> DevOpsAPI:
        if self.api is None:
            raise RuntimeError("A live Azure DevOps client is required for this operation")
        return self.api

    def current_sprint(self) -> Sprint | None:
        """Current iteration, or ``None`` when there is none or the lookup fails."""
        try:
            return self._require_api().get_current_iteration()
        except AuthenticationError:
            raise
        except DevOpsAPIError as exc:
            logger.warning("Current iteration lookup failed: %s", exc)
            return None

    def _query_ids(self, wiql: str) -> list[int]:
        try:
            refs = self._require_api().query(wiql)
        except AuthenticationError:
            raise
        except DevOpsAPIError as exc:
            logger.warning("Work item query failed: %s", exc)
            return []
        return [r["id"] for r in refs]

    # ------------------ Fetch Methods ------------------
    def sprint_items(
        self,
        sprint: Sprint,
        *,
        source: str = "cache",
        progress: ProgressCallback | None = None,
    ) -> list[WorkItem]:
        """Return the items whose iteration path equals the sprint's path.

        ``source="cache"`` reads the local snapshots only; ``source="live"``
        queries the tracker and fetches every item's detail.
        """
        if source not in SOURCES:
            raise ValueError(f"Unknown item source: {source!r} (expected one of {SOURCES})")
        if source == "cache":
            items = [i for i in self.cache.load_all() if i.iteration_path == sprint.path]
            logger.debug("Loaded %d cached items for %s", len(items), sprint.path)
            return items
        return self.fetch_items(self._query_ids(sprint_items_query(sprint.path)), progress=progress)

    def blocked_items(self, *, progress: ProgressCallback | None = None) -> list[WorkItem]:
        return self.fetch_items(self._query_ids(blocked_items_query()), progress=progress)

    def fetch_items(
        self,
        ids: Sequence[int],
        *,
        progress: ProgressCallback | None = None,
    ) -> list[WorkItem]:
        """Fetch and map ``ids`` in order; failed items are logged and skipped."""
        results = fetch_details(
            self._require_api(),
            ids,
            max_workers=self.settings.max_workers,
            min_parallel=self.settings.min_parallel,
            progress=progress,
        )
        items: list[WorkItem] = []
        for item_id, outcome in results:
            if isinstance(outcome, AuthenticationError):
                raise outcome
            if isinstance(outcome, Exception):
                logger.warning("Failed to fetch work item %s: %s", item_id, outcome)
                continue
            try:
                items.append(map_work_item(outcome))
            except (TypeError, ValueError) as exc:
                logger.warning("Failed to parse work item %s: %s", item_id, exc)
        return items
