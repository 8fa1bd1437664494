"""NextTaskService: candidate query + detail fetch + dependency-aware ranking."""

from __future__ import annotations

import logging

from azure_pm.core.devops_client import AuthenticationError, DevOpsAPI, DevOpsAPIError
from azure_pm.core.service import WorkItemService
from azure_pm.core.sync import ProgressCallback
from azure_pm.core.wiql import ME, candidate_tasks_query
from azure_pm.features.next_task.engine import Recommendation, recommend_next_task, select_candidates

logger = logging.getLogger(__name__)


class NextTaskService:
    def __init__(self, api: DevOpsAPI, items: WorkItemService):
        self.api = api
        self.items = items

    def _current_sprint_path(self) -> str | None:
        try:
            sprint = self.api.get_current_iteration()
        except AuthenticationError:
            raise
        except DevOpsAPIError as exc:
            logger.warning("Current iteration lookup failed, using all sprints: %s", exc)
            return None
        if sprint is None:
            logger.info("No current iteration; considering candidates from all sprints")
            return None
        return sprint.path

    def recommend(
        self,
        *,
        user: str = ME,
        all_sprints: bool = False,
        progress: ProgressCallback | None = None,
    ) -> Recommendation:
        """Recommend the next task for ``user`` (``@Me`` by default).

        Candidates are limited to the current sprint unless ``all_sprints`` is
        set or the current iteration cannot be determined. A failed candidate
        query yields an empty recommendation; only authentication errors raise.
        """
        sprint_path = None if all_sprints else self._current_sprint_path()
        if progress:
            progress("Querying candidate tasks", None, None)
        try:
            refs = self.api.query(candidate_tasks_query(sprint_path, who=user))
        except AuthenticationError:
            raise
        except DevOpsAPIError as exc:
            logger.warning("Candidate query failed: %s", exc)
            refs = []
        if not refs:
            return recommend_next_task([])
        fetched = self.items.fetch_items([r["id"] for r in refs], progress=progress)
        # Assignment was filtered server-side, @Me cannot be matched locally
        candidates = select_candidates(fetched, sprint_path=sprint_path)
        logger.debug("Ranking %d candidates", len(candidates))
        return recommend_next_task(candidates, self.api.has_open_predecessor)
