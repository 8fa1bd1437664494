"""Sprint statistics: state counts, completion ratios and the burndown trend."""

from __future__ import annotations

from typing import Any

import pandas as pd

from azure_pm.core.config import (
    BURNDOWN_BEHIND_RATIO,
    BURNDOWN_ON_TRACK_RATIO,
    COMPLETED_STATES,
    STARTED_STATES,
    STATE_DISPLAY_ORDER,
)

NOT_AVAILABLE = "N/A"


def format_percent(numerator: float, denominator: float, *, empty: str = "0.0%") -> str:
    """Format ``numerator / denominator`` as a one-decimal percentage.

    Returns ``empty`` when the denominator is zero.
    """
    if not denominator:
        return empty
    return f"{numerator / denominator * 100:.1f}%"


def classify_burndown(remaining: float, original: float) -> str:
    """Classify the remaining/original work ratio.

    A ratio of exactly 0.40 or exactly 0.70 is "On track".

    Examples
    --------
    >>> classify_burndown(70, 100)
    'On track'
    >>> classify_burndown(40, 100)
    'On track'
    >>> classify_burndown(71, 100)
    'Behind schedule'
    >>> classify_burndown(10, 0)
    'No estimates'
    """
    if not original:
        return "No estimates"
    ratio = remaining / original
    if ratio > BURNDOWN_BEHIND_RATIO:
        return "Behind schedule"
    if ratio >= BURNDOWN_ON_TRACK_RATIO:
        return "On track"
    return "Ahead of schedule"


def state_counts(df: pd.DataFrame) -> dict[str, int]:
    """Item counts per state, canonical states first, unknown labels after."""
    if df.empty:
        return {}
    counts = df["state"].value_counts(sort=False)
    ordered = {s: int(counts[s]) for s in STATE_DISPLAY_ORDER if s in counts.index}
    for state in df["state"].drop_duplicates():
        if state not in ordered:
            ordered[state] = int(counts[state])
    return ordered


def completed_mask(df: pd.DataFrame) -> pd.Series:
    return df["state"].isin(COMPLETED_STATES)


def compute_statistics(df: pd.DataFrame) -> dict[str, Any]:
    total = len(df)
    if total == 0:
        return {
            "byState": {},
            "totalItems": 0,
            "completedItems": 0,
            "inProgressItems": 0,
            "newItems": 0,
            "totalStoryPoints": 0.0,
            "completedStoryPoints": 0.0,
            "completionRate": format_percent(0, 0),
            "storyPointsCompletion": format_percent(0, 0),
            "workCompletion": NOT_AVAILABLE,
            "totalOriginalEstimate": 0.0,
            "totalRemainingWork": 0.0,
            "totalCompletedWork": 0.0,
            "burndownTrend": classify_burndown(0, 0),
        }

    done = completed_mask(df)
    completed = int(done.sum())
    total_points = float(df["story_points"].sum())
    completed_points = float(df.loc[done, "story_points"].sum())
    original = float(df["original_estimate"].sum())
    remaining = float(df["remaining_work"].sum())
    completed_work = float(df["completed_work"].sum())
    return {
        "byState": state_counts(df),
        "totalItems": total,
        "completedItems": completed,
        "inProgressItems": int(df["state"].isin(STARTED_STATES).sum()),
        "newItems": int((df["state"] == "New").sum()),
        "totalStoryPoints": total_points,
        "completedStoryPoints": completed_points,
        "completionRate": format_percent(completed, total),
        "storyPointsCompletion": format_percent(completed_points, total_points),
        "workCompletion": format_percent(completed_work, original, empty=NOT_AVAILABLE),
        "totalOriginalEstimate": original,
        "totalRemainingWork": remaining,
        "totalCompletedWork": completed_work,
        "burndownTrend": classify_burndown(remaining, original),
    }
