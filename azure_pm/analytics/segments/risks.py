"""Sprint risk rules. Every rule is evaluated; all matches are reported."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pandas as pd

from azure_pm.core.config import (
    CRITICAL_PRIORITY,
    LOW_COMPLETION_RISK_PCT,
    NEW_ITEMS_RISK_RATIO,
    UNASSIGNED,
)


def _risk(level: str, description: str) -> dict[str, str]:
    return {"level": level, "description": description}


def assess_risks(stats: Mapping[str, Any], df: pd.DataFrame) -> list[dict[str, str]]:
    total = int(stats.get("totalItems") or 0)
    risks = []
    # An empty sprint has a 0% completion rate
    completion_pct = int(stats.get("completedItems") or 0) / total * 100 if total else 0.0
    if completion_pct < LOW_COMPLETION_RISK_PCT:
        risks.append(_risk("High", "Low completion rate - sprint goals at risk"))

    if total and int(stats.get("newItems") or 0) / total > NEW_ITEMS_RISK_RATIO:
        risks.append(_risk("Medium", "Many items not started - scope may be unclear"))

    if not df.empty:
        unassigned = df["assignee"].fillna(UNASSIGNED) == UNASSIGNED
        critical = int(((df["priority"] <= CRITICAL_PRIORITY) & unassigned).sum())
        if critical:
            risks.append(_risk("High", f"{critical} critical items are unassigned"))

    if stats.get("burndownTrend") == "Behind schedule":
        risks.append(_risk("High", "Burndown behind schedule - team is behind schedule"))
    return risks
