"""Assignee and type aggregations for team performance."""

from __future__ import annotations

from typing import Any

import pandas as pd

from azure_pm.analytics.metrics.statistics import NOT_AVAILABLE, completed_mask, format_percent
from azure_pm.core.config import UNASSIGNED


def group_counts(df: pd.DataFrame, column: str) -> dict[str, int]:
    """Item counts per value of ``column``, largest first."""
    if df.empty:
        return {}
    counts = df[column].fillna(UNASSIGNED if column == "assignee" else "Unknown").value_counts()
    return {str(k): int(v) for k, v in counts.items()}


def aggregate_by_assignee(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return df
    out = df.copy()
    out["assignee"] = out["assignee"].fillna(UNASSIGNED)
    out["is_completed"] = completed_mask(out).astype(int)
    out["completed_points"] = out["story_points"].where(out["is_completed"] == 1, 0.0)
    out["is_bug"] = (out["type"] == "Bug").astype(int)
    agg = (
        out.groupby("assignee", dropna=False)
        .agg(
            items=("id", "count"),
            completed=("is_completed", "sum"),
            storyPoints=("story_points", "sum"),
            completedPoints=("completed_points", "sum"),
            bugs=("is_bug", "sum"),
        )
        .sort_values(by=["items", "completed"], ascending=False)
    )
    return agg.reset_index()


def team_performance(df: pd.DataFrame) -> dict[str, Any]:
    members: dict[str, dict[str, Any]] = {}
    for row in aggregate_by_assignee(df).itertuples(index=False):
        members[row.assignee] = {
            "items": int(row.items),
            "completed": int(row.completed),
            "storyPoints": float(row.storyPoints),
            "completedPoints": float(row.completedPoints),
            "bugs": int(row.bugs),
        }
    total = len(df)
    bugs = int((df["type"] == "Bug").sum()) if total else 0
    original = float(df["original_estimate"].sum()) if total else 0.0
    completed_work = float(df["completed_work"].sum()) if total else 0.0
    return {
        "members": members,
        "capacityUtilization": format_percent(completed_work, original, empty=NOT_AVAILABLE),
        "defectRate": format_percent(bugs, total),
        "teamSize": len([name for name in members if name != UNASSIGNED]),
    }
