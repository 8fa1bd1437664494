"""Burndown rates for a dated sprint."""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import pytz

from azure_pm.core.models import Sprint


def compute_burndown(
    totals: Mapping[str, Any],
    sprint: Sprint,
    now: datetime | None = None,
) -> dict[str, Any] | None:
    """Compare the ideal and actual burn rates of ``sprint``.

    Parameters
    ----------
    totals : Mapping
        Statistics mapping providing ``totalOriginalEstimate`` and
        ``totalRemainingWork`` (hours).
    sprint : Sprint
        The sprint; both start and end dates are required.
    now : datetime, optional
        Reference time, defaults to the current UTC time.

    Returns
    -------
    dict or None
        ``None`` when the sprint has no date bounds.
    """
    if not sprint.has_dates:
        return None
    now = now or datetime.now(pytz.UTC)
    original = float(totals.get("totalOriginalEstimate") or 0.0)
    remaining = float(totals.get("totalRemainingWork") or 0.0)

    total_days = sprint.total_days
    elapsed = sprint.days_elapsed(now)
    ideal = original / total_days if total_days else 0.0
    actual = (original - remaining) / elapsed if elapsed else 0.0
    projected: int | str = math.ceil(remaining / actual) if actual > 0 else "Unknown"
    return {
        "idealBurnRate": round(ideal, 2),
        "actualBurnRate": round(actual, 2),
        "status": "On Track" if actual >= ideal else "Behind",
        "projectedCompletionDays": projected,
        "totalDays": total_days,
        "daysElapsed": elapsed,
        "daysRemaining": sprint.days_remaining(now),
        "progressPercent": sprint.progress_percent(now),
    }
