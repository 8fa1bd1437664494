"""Mapping raw Azure DevOps REST payloads into WorkItem and Sprint instances."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

import pandas as pd

from .config import DEFAULT_PRIORITY, FIELD_IDS, STORY_POINT_TYPES, UNASSIGNED
from .models import Sprint, WorkItem
from .status import normalize_state, normalize_type

DATAFRAME_COLUMNS = (
    "id",
    "title",
    "type",
    "state",
    "assignee",
    "priority",
    "story_points",
    "remaining_work",
    "completed_work",
    "original_estimate",
    "tags",
    "iteration_path",
    "created_date",
    "changed_date",
)


def parse_dt(val: Any) -> datetime | None:
    if not val:
        return None
    ts = pd.to_datetime(val, utc=True, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    return ts.to_pydatetime()


def _non_negative(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if pd.isna(number) or number < 0:
        return 0.0
    return number


def _priority(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return DEFAULT_PRIORITY


def _identity_name(value: Any) -> str | None:
    """Display name from an identity ref dict or a ``Name <email>`` string."""
    if not value:
        return None
    if isinstance(value, dict):
        return value.get("displayName") or value.get("uniqueName") or None
    text = str(value).strip()
    if "<" in text:
        text = text.split("<", 1)[0].strip()
    return text or None


def split_tags(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        parts = value
    else:
        parts = str(value).split(";")
    return [p.strip() for p in parts if p and str(p).strip()]


def map_work_item(raw: dict[str, Any]) -> WorkItem:
    fields = raw.get("fields") or {}
    raw_id = raw.get("id", fields.get(FIELD_IDS["id"]))
    if raw_id is None:
        raise ValueError("Work item payload has no id")
    return WorkItem(
        id=int(raw_id),
        title=fields.get(FIELD_IDS["title"]) or "",
        type=normalize_type(fields.get(FIELD_IDS["type"])),
        state=normalize_state(fields.get(FIELD_IDS["state"])),
        assignee=_identity_name(fields.get(FIELD_IDS["assignee"])),
        priority=_priority(fields.get(FIELD_IDS["priority"])),
        story_points=_non_negative(fields.get(FIELD_IDS["story_points"])),
        remaining_work=_non_negative(fields.get(FIELD_IDS["remaining_work"])),
        completed_work=_non_negative(fields.get(FIELD_IDS["completed_work"])),
        original_estimate=_non_negative(fields.get(FIELD_IDS["original_estimate"])),
        tags=split_tags(fields.get(FIELD_IDS["tags"])),
        iteration_path=fields.get(FIELD_IDS["iteration_path"]) or "",
        created_date=parse_dt(fields.get(FIELD_IDS["created_date"])),
        changed_date=parse_dt(fields.get(FIELD_IDS["changed_date"])),
    )


def map_iteration(raw: dict[str, Any]) -> Sprint:
    """Build a Sprint from a team settings iteration payload."""
    path = raw.get("path") or raw.get("name") or ""
    attributes = raw.get("attributes") or {}
    return Sprint(
        name=path.split("\\")[-1] if path else (raw.get("name") or ""),
        path=path,
        start_date=parse_dt(attributes.get("startDate")),
        end_date=parse_dt(attributes.get("finishDate")),
    )


def items_to_dataframe(items: Iterable[WorkItem]) -> pd.DataFrame:
    rows = []
    for i in items:
        rows.append(
            {
                "id": i.id,
                "title": i.title,
                "type": i.type,
                "state": i.state,
                "assignee": i.assignee or UNASSIGNED,
                "priority": i.priority,
                "story_points": i.story_points if i.type in STORY_POINT_TYPES else 0.0,
                "remaining_work": i.remaining_work,
                "completed_work": i.completed_work,
                "original_estimate": i.original_estimate,
                "tags": list(i.tags),
                "iteration_path": i.iteration_path,
                "created_date": i.created_date,
                "changed_date": i.changed_date,
            }
        )
    if not rows:
        return pd.DataFrame(columns=list(DATAFRAME_COLUMNS))
    df = pd.DataFrame(rows)
    df["changed_date"] = pd.to_datetime(df["changed_date"], utc=True, errors="coerce")
    df["created_date"] = pd.to_datetime(df["created_date"], utc=True, errors="coerce")
    return df
