"""State and work item type normalization utilities.

Centralized handling shared by the mappers, the analytics modules and the
next task engine. Uses the workflow configuration from config.py
(STATE_ALIASES, CLOSED_STATES, TYPE_CATEGORY, WORK_ITEM_TYPE_ALIASES).
"""

from __future__ import annotations

from .config import (
    CLOSED_STATES,
    STATE_ALIASES,
    TYPE_CATEGORY,
    WORK_ITEM_TYPE_ALIASES,
)


def normalize_state(value: str | None) -> str:
    """Map a raw tracker state to its canonical label.

    Known spellings collapse onto the canonical names ("in progress" ->
    "In Progress"). Unrecognized states pass through under their literal,
    whitespace-trimmed label so new workflow states stay visible in reports.

    Examples
    --------
    >>> normalize_state("resolved")
    'Resolved'
    >>> normalize_state("Waiting On Customer")
    'Waiting On Customer'
    >>> normalize_state(None)
    'Unknown'
    """
    if not value:
        return "Unknown"
    text = str(value).strip()
    if not text:
        return "Unknown"
    return STATE_ALIASES.get(text.lower(), text)


def normalize_type(value: str | None) -> str:
    """Map a raw work item type to its canonical name, or the literal label."""
    if not value:
        return "Unknown"
    text = str(value).strip()
    return WORK_ITEM_TYPE_ALIASES.get(text.lower(), text)


def is_closed_state(value: str | None) -> bool:
    return normalize_state(value) in CLOSED_STATES


def category_for_type(work_item_type: str | None) -> str | None:
    """Return the cache category for a work item type (``None`` if uncached)."""
    return TYPE_CATEGORY.get(normalize_type(work_item_type))
