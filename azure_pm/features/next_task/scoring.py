"""Urgency scoring for next task candidates (lower score = more urgent)."""

from __future__ import annotations

from azure_pm.core.config import (
    BUG_BONUS,
    NO_DEPENDENCY_BONUS,
    PRIORITY_WEIGHT,
    QUICK_WIN_BONUS,
    QUICK_WIN_MAX_HOURS,
    URGENT_TAG_BONUS,
    URGENT_TAGS,
)
from azure_pm.core.models import WorkItem


def is_quick_win(item: WorkItem) -> bool:
    return 0 < item.remaining_work <= QUICK_WIN_MAX_HOURS


def score_candidate(item: WorkItem, has_dependency: bool | None = None) -> tuple[int, list[str]]:
    """Score ``item`` and list the factors that were applied.

    Parameters
    ----------
    item : WorkItem
        Candidate Task or Bug.
    has_dependency : bool or None
        True when the item still has an open predecessor; such items lose the
        no-dependency bonus but stay eligible. ``None`` means the dependency
        check was not performed and no bonus is applied.

    Returns
    -------
    tuple[int, list[str]]
        The score and human readable factor labels, in evaluation order.

    Examples
    --------
    >>> score_candidate(WorkItem(id=1, title="", type="Bug", state="New", priority=1, remaining_work=1))
    (20, ['Priority 1', 'Bug fix', 'Quick win (1h)'])
    """
    score = item.priority * PRIORITY_WEIGHT
    factors = [f"Priority {item.priority}"]
    if item.type == "Bug":
        score -= BUG_BONUS
        factors.append("Bug fix")
    if is_quick_win(item):
        score -= QUICK_WIN_BONUS
        factors.append(f"Quick win ({item.remaining_work:g}h)")
    if item.has_tag(*URGENT_TAGS):
        score -= URGENT_TAG_BONUS
        factors.append("Urgent tag")
    if has_dependency is False:
        score -= NO_DEPENDENCY_BONUS
        factors.append("No blocking dependencies")
    return score, factors
