"""Dashboard alerts: blocked items, untouched P1 items and stale active work."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import pandas as pd
import pytz

from azure_pm.analytics.segments.blockers import blocked_mask
from azure_pm.core.config import CRITICAL_PRIORITY, STALE_ITEM_DAYS
from azure_pm.core.models import SECONDS_PER_DAY

HIGH_PRIORITY_STATES = ("New", "Active")


def _alert(kind: str, level: str, message: str, ids: list[int]) -> dict[str, Any]:
    return {"type": kind, "level": level, "message": message, "count": len(ids), "items": ids}


def add_days_since_change(df: pd.DataFrame, now: datetime) -> pd.DataFrame:
    if df.empty:
        return df
    out = df.copy()
    changed = pd.to_datetime(out["changed_date"], utc=True, errors="coerce")
    out["days_since_change"] = (pd.Timestamp(now) - changed).dt.total_seconds() / SECONDS_PER_DAY
    return out


def stale_items(df: pd.DataFrame, now: datetime, stale_days: int = STALE_ITEM_DAYS) -> pd.DataFrame:
    """Active items not changed for more than ``stale_days`` days.

    Items without a change date are never stale.
    """
    if df.empty:
        return df
    out = add_days_since_change(df, now)
    mask = (out["state"] == "Active") & (out["days_since_change"] > stale_days)
    return out[mask.fillna(False)].copy()


def build_alerts(df: pd.DataFrame, now: datetime | None = None) -> list[dict[str, Any]]:
    now = now or datetime.now(pytz.UTC)
    alerts = []
    blocked_ids = [] if df.empty else [int(i) for i in df.loc[blocked_mask(df), "id"]]
    if blocked_ids:
        alerts.append(_alert("blocked", "error", f"{len(blocked_ids)} blocked items", blocked_ids))
    else:
        alerts.append(_alert("blocked", "info", "No blocked items", []))

    if not df.empty:
        p1 = df[(df["priority"] == CRITICAL_PRIORITY) & df["state"].isin(HIGH_PRIORITY_STATES)]
        if not p1.empty:
            ids = [int(i) for i in p1["id"]]
            alerts.append(_alert("high_priority", "warning", f"{len(ids)} P1 items need attention", ids))

        stale = stale_items(df, now)
        if not stale.empty:
            ids = [int(i) for i in stale["id"]]
            message = f"{len(ids)} active items not updated in {STALE_ITEM_DAYS}+ days"
            alerts.append(_alert("stale", "warning", message, ids))
    return alerts
