"""Velocity from historical completed-sprint point totals."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pandas as pd

from azure_pm.core.config import (
    VELOCITY_DECLINING_RATIO,
    VELOCITY_IMPROVING_RATIO,
    VELOCITY_WINDOW,
)


def velocity_trend(latest: float, previous: float) -> str:
    if previous <= 0:
        return "Improving" if latest > 0 else "Stable"
    if latest >= previous * VELOCITY_IMPROVING_RATIO:
        return "Improving"
    if latest <= previous * VELOCITY_DECLINING_RATIO:
        return "Declining"
    return "Stable"


def compute_velocity(history: Sequence[float], window: int = VELOCITY_WINDOW) -> dict[str, Any]:
    """Average the last ``window`` sprint totals (oldest first) and classify the trend."""
    series = pd.to_numeric(pd.Series(list(history), dtype="float64"), errors="coerce").dropna()
    recent = series.tail(max(int(window), 1))
    average = round(float(recent.mean()), 1) if not recent.empty else 0.0
    if len(series) < 2:
        trend = "Insufficient data"
    else:
        trend = velocity_trend(float(series.iloc[-1]), float(series.iloc[-2]))
    return {
        "average": average,
        "trend": trend,
        "sprints": [float(v) for v in recent],
    }
