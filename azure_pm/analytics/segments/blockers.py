"""Blocked work item detection and reason inference."""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import pandas as pd
import pytz

from azure_pm.core.config import (
    BLOCK_REASON_KEYWORDS,
    BLOCKED_TAGS,
    DEFAULT_BLOCK_REASON,
    TERMINAL_STATES,
)
from azure_pm.core.models import SECONDS_PER_DAY

SEVERITY_ORDER = ("critical", "high", "normal")


def infer_block_reason(tag_text: str) -> str:
    """Reason for the first keyword found in ``tag_text``.

    Examples
    --------
    >>> infer_block_reason("blocked;waiting-on-api;approval")
    'Waiting for dependencies'
    >>> infer_block_reason("blocked")
    'Unspecified blocker'
    """
    text = (tag_text or "").lower()
    for keyword, reason in BLOCK_REASON_KEYWORDS:
        if keyword in text:
            return reason
    return DEFAULT_BLOCK_REASON


def blocker_severity(priority: Any) -> str:
    try:
        value = int(priority)
    except (TypeError, ValueError):
        return "normal"
    if value == 1:
        return "critical"
    if value == 2:
        return "high"
    return "normal"


def is_blocked_tags(tags: Iterable[str] | None) -> bool:
    if not isinstance(tags, (list, tuple, set)):
        return False
    return any(str(t).strip().lower() in BLOCKED_TAGS for t in tags)


def _days_since(ts, now: datetime) -> int:
    if ts is None or pd.isna(ts):
        return 0
    seconds = (pd.Timestamp(now) - pd.Timestamp(ts)).total_seconds()
    return max(math.floor(seconds / SECONDS_PER_DAY), 0)


def blocked_mask(df: pd.DataFrame) -> pd.Series:
    return df["tags"].apply(is_blocked_tags) & ~df["state"].isin(TERMINAL_STATES)


def find_blockers(df: pd.DataFrame, now: datetime | None = None) -> list[dict[str, Any]]:
    """Non-terminal items tagged ``blocked`` or ``blocker``, in input order."""
    if df.empty:
        return []
    now = now or datetime.now(pytz.UTC)
    out = []
    for row in df[blocked_mask(df)].itertuples(index=False):
        tag_text = ";".join(row.tags).lower()
        out.append(
            {
                "id": int(row.id),
                "title": row.title,
                "state": row.state,
                "assignee": row.assignee,
                "priority": int(row.priority),
                "reason": infer_block_reason(tag_text),
                "daysBlocked": _days_since(row.changed_date, now),
                "severity": blocker_severity(row.priority),
            }
        )
    return out


def group_blockers_by_severity(blockers: Iterable[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    grouped: dict[str, list[dict[str, Any]]] = {s: [] for s in SEVERITY_ORDER}
    for blocker in blockers:
        grouped.setdefault(blocker.get("severity", "normal"), []).append(blocker)
    return grouped
