"""Candidate selection and next task recommendation (no network access)."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from azure_pm.core.config import CANDIDATE_STATES, CANDIDATE_TYPES, MAX_ALTERNATIVES
from azure_pm.core.models import WorkItem
from azure_pm.features.next_task.scoring import score_candidate

logger = logging.getLogger(__name__)

DependencyCheck = Callable[[int], bool]


@dataclass(slots=True)
class ScoredCandidate:
    item: WorkItem
    score: int
    factors: list[str] = field(default_factory=list)
    has_dependency: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.item.id,
            "title": self.item.title,
            "type": self.item.type,
            "state": self.item.state,
            "priority": self.item.priority,
            "assignee": self.item.assignee_name,
            "remainingWork": self.item.remaining_work,
            "score": self.score,
            "factors": list(self.factors),
            "hasDependency": self.has_dependency,
        }


@dataclass(slots=True)
class Recommendation:
    task: ScoredCandidate | None
    alternatives: list[ScoredCandidate] = field(default_factory=list)
    analysis: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "task": self.task.to_dict() if self.task else None,
            "alternatives": [c.to_dict() for c in self.alternatives],
            "analysis": dict(self.analysis),
        }


def select_candidates(
    items: Iterable[WorkItem],
    *,
    sprint_path: str | None = None,
    user: str | None = None,
) -> list[WorkItem]:
    """Open Task/Bug items, optionally limited to a sprint and to ``user`` or unassigned.

    ``user`` is compared case-insensitively against the assignee display name.
    """
    wanted_user = user.strip().lower() if user else None
    out = []
    for item in items:
        if item.type not in CANDIDATE_TYPES or item.state not in CANDIDATE_STATES:
            continue
        if sprint_path and item.iteration_path != sprint_path:
            continue
        if wanted_user and item.assignee and item.assignee.strip().lower() != wanted_user:
            continue
        out.append(item)
    return out


def analyze_pool(candidates: Sequence[WorkItem]) -> dict[str, Any]:
    return {
        "totalTasks": len(candidates),
        "totalHours": float(sum(c.remaining_work for c in candidates)),
        "p1Count": sum(1 for c in candidates if c.priority == 1),
        "p2Count": sum(1 for c in candidates if c.priority == 2),
        "bugCount": sum(1 for c in candidates if c.type == "Bug"),
    }


def _check_dependency(item: WorkItem, dependency_check: DependencyCheck | None) -> bool | None:
    if dependency_check is None:
        return None
    try:
        return bool(dependency_check(item.id))
    except Exception as exc:
        # Fail open: treated as "no dependency"
        logger.warning("Dependency check failed for work item %s: %s", item.id, exc)
        return False


def rank_candidates(
    candidates: Sequence[WorkItem],
    dependency_check: DependencyCheck | None = None,
) -> list[ScoredCandidate]:
    """Score every candidate and sort ascending; ties keep input order."""
    scored = []
    for item in candidates:
        has_dependency = _check_dependency(item, dependency_check)
        score, factors = score_candidate(item, has_dependency)
        scored.append(ScoredCandidate(item, score, factors, has_dependency))
    return sorted(scored, key=lambda c: c.score)


def recommend_next_task(
    candidates: Sequence[WorkItem],
    dependency_check: DependencyCheck | None = None,
    *,
    max_alternatives: int = MAX_ALTERNATIVES,
) -> Recommendation:
    """Pick the most urgent candidate.

    An empty pool yields ``Recommendation(task=None)`` rather than an error.
    """
    candidates = list(candidates)
    analysis = analyze_pool(candidates)
    if not candidates:
        return Recommendation(task=None, analysis=analysis)
    ranked = rank_candidates(candidates, dependency_check)
    return Recommendation(
        task=ranked[0],
        alternatives=ranked[1 : 1 + max_alternatives],
        analysis=analysis,
    )
