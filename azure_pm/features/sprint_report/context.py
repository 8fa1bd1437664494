"""Pure helpers assembling the sprint report mapping (no rendering)."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import pytz

from azure_pm.analytics.aggregations.team import group_counts, team_performance
from azure_pm.analytics.metrics.burndown import compute_burndown
from azure_pm.analytics.metrics.statistics import compute_statistics
from azure_pm.analytics.metrics.velocity import compute_velocity
from azure_pm.analytics.segments.alerts import build_alerts
from azure_pm.analytics.segments.blockers import find_blockers
from azure_pm.analytics.segments.risks import assess_risks
from azure_pm.core.config import VELOCITY_WINDOW
from azure_pm.core.mappers import items_to_dataframe
from azure_pm.core.models import Sprint, WorkItem
from azure_pm.features.next_task.engine import Recommendation


@dataclass(slots=True)
class SprintReport:
    """Analytics for one sprint, handed to an external renderer."""

    sprint: Sprint
    generated_at: datetime
    statistics: dict[str, Any]
    by_type: dict[str, int]
    by_assignee: dict[str, int]
    blockers: list[dict[str, Any]]
    risks: list[dict[str, str]]
    burndown: dict[str, Any] | None
    velocity: dict[str, Any]
    team_performance: dict[str, Any]
    alerts: list[dict[str, Any]] = field(default_factory=list)
    recommendation: Recommendation | None = None

    @property
    def by_state(self) -> dict[str, int]:
        return self.statistics.get("byState", {})

    def sprint_summary(self) -> dict[str, Any]:
        return {
            "name": self.sprint.name,
            "path": self.sprint.path,
            "startDate": self.sprint.start_date.isoformat() if self.sprint.start_date else None,
            "endDate": self.sprint.end_date.isoformat() if self.sprint.end_date else None,
            "generatedAt": self.generated_at.isoformat(),
        }

    def to_dict(self) -> dict[str, Any]:
        out = {
            "sprint": self.sprint_summary(),
            "statistics": self.statistics,
            "byState": self.by_state,
            "byType": self.by_type,
            "byAssignee": self.by_assignee,
            "blockers": self.blockers,
            "risks": self.risks,
            "burndown": self.burndown,
            "velocity": self.velocity,
            "teamPerformance": self.team_performance,
            "alerts": self.alerts,
        }
        if self.recommendation is not None:
            out["recommendation"] = self.recommendation.to_dict()
        return out


def build_sprint_report(
    sprint: Sprint,
    items: Iterable[WorkItem],
    *,
    velocity_history: Sequence[float] = (),
    velocity_window: int = VELOCITY_WINDOW,
    now: datetime | None = None,
    recommendation: Recommendation | None = None,
) -> SprintReport:
    """Compute every analytics section for ``sprint`` from ``items``.

    Parameters
    ----------
    sprint : Sprint
        Sprint being reported; burndown is ``None`` when it has no dates.
    items : Iterable[WorkItem]
        The sprint's work items, from the cache or a live fetch.
    velocity_history : Sequence[float]
        Completed points of previous sprints, oldest first.
    now : datetime, optional
        Reference time for burndown, blocker age and staleness (UTC now).
    recommendation : Recommendation, optional
        Next task result to embed in the report.
    """
    now = now or datetime.now(pytz.UTC)
    df = items_to_dataframe(items)
    stats = compute_statistics(df)
    return SprintReport(
        sprint=sprint,
        generated_at=now,
        statistics=stats,
        by_type=group_counts(df, "type"),
        by_assignee=group_counts(df, "assignee"),
        blockers=find_blockers(df, now),
        risks=assess_risks(stats, df),
        burndown=compute_burndown(stats, sprint, now),
        velocity=compute_velocity(velocity_history, velocity_window),
        team_performance=team_performance(df),
        alerts=build_alerts(df, now),
        recommendation=recommendation,
    )
