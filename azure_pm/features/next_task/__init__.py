"""Next task recommendation feature."""

from azure_pm.features.next_task.engine import (
    Recommendation,
    ScoredCandidate,
    analyze_pool,
    rank_candidates,
    recommend_next_task,
    select_candidates,
)
from azure_pm.features.next_task.scoring import is_quick_win, score_candidate
from azure_pm.features.next_task.service import NextTaskService

__all__ = [
    "NextTaskService",
    "Recommendation",
    "ScoredCandidate",
    "analyze_pool",
    "is_quick_win",
    "rank_candidates",
    "recommend_next_task",
    "score_candidate",
    "select_candidates",
]
