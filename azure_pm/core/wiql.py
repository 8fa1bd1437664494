"""WIQL (Work Item Query Language) builder and the canned queries used by sync,
sprint reporting and next task selection."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

from .config import (
    CANDIDATE_STATES,
    CANDIDATE_TYPES,
    FIELD_IDS,
    TERMINAL_STATES,
    WIQL_SELECT_FIELDS,
)

ME = "@Me"


def quote(value: str) -> str:
    """Quote a WIQL string literal, doubling embedded single quotes."""
    return "'" + str(value).replace("'", "''") + "'"


def _bracket(field_name: str) -> str:
    return f"[{field_name}]"


def _as_date(value: date | datetime | str) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


@dataclass
class WiqlQuery:
    """Small fluent builder producing ``SELECT ... FROM workitems WHERE ...``."""

    fields: Sequence[str] = WIQL_SELECT_FIELDS
    predicates: list[str] = field(default_factory=list)
    order_by: list[str] = field(default_factory=list)

    def where(self, predicate: str) -> WiqlQuery:
        self.predicates.append(predicate)
        return self

    def types_in(self, types: Iterable[str]) -> WiqlQuery:
        values = ", ".join(quote(t) for t in types)
        return self.where(f"{_bracket(FIELD_IDS['type'])} IN ({values})")

    def states_in(self, states: Iterable[str]) -> WiqlQuery:
        values = ", ".join(quote(s) for s in states)
        return self.where(f"{_bracket(FIELD_IDS['state'])} IN ({values})")

    def states_not_in(self, states: Iterable[str]) -> WiqlQuery:
        values = ", ".join(quote(s) for s in sorted(states))
        return self.where(f"{_bracket(FIELD_IDS['state'])} NOT IN ({values})")

    def iteration(self, path: str) -> WiqlQuery:
        return self.where(f"{_bracket(FIELD_IDS['iteration_path'])} = {quote(path)}")

    def changed_since(self, since: date | datetime | str) -> WiqlQuery:
        return self.where(f"{_bracket(FIELD_IDS['changed_date'])} >= {quote(_as_date(since))}")

    def assigned_to_me_or_unassigned(self, who: str = ME) -> WiqlQuery:
        target = ME if who == ME else quote(who)
        column = _bracket(FIELD_IDS["assignee"])
        return self.where(f"({column} = '' OR {column} = {target})")

    def tags_contain(self, token: str) -> WiqlQuery:
        return self.where(f"{_bracket(FIELD_IDS['tags'])} CONTAINS {quote(token)}")

    def in_project(self, project: str) -> WiqlQuery:
        return self.where(f"{_bracket(FIELD_IDS['team_project'])} = {quote(project)}")

    def order(self, field_name: str, direction: str = "ASC") -> WiqlQuery:
        direction = direction.upper()
        if direction not in {"ASC", "DESC"}:
            raise ValueError(f"Invalid sort direction: {direction}")
        self.order_by.append(f"{_bracket(field_name)} {direction}")
        return self

    def build(self) -> str:
        text = "SELECT " + ", ".join(_bracket(f) for f in self.fields) + " FROM workitems"
        if self.predicates:
            text += " WHERE " + " AND ".join(self.predicates)
        if self.order_by:
            text += " ORDER BY " + ", ".join(self.order_by)
        return text

    def __str__(self) -> str:
        return self.build()


# ------------------ Canned queries ------------------
def changed_items_query(types: Iterable[str], since: date | datetime, project: str | None = None) -> str:
    q = WiqlQuery().types_in(types).changed_since(since)
    if project:
        q.in_project(project)
    return q.order(FIELD_IDS["changed_date"], "DESC").build()


def sprint_items_query(iteration_path: str) -> str:
    return (
        WiqlQuery()
        .iteration(iteration_path)
        .order(FIELD_IDS["priority"], "ASC")
        .order(FIELD_IDS["id"], "ASC")
        .build()
    )


def candidate_tasks_query(iteration_path: str | None = None, who: str | None = ME) -> str:
    q = WiqlQuery().types_in(sorted(CANDIDATE_TYPES)).states_in(CANDIDATE_STATES)
    if iteration_path:
        q.iteration(iteration_path)
    if who:
        q.assigned_to_me_or_unassigned(who)
    return q.order(FIELD_IDS["priority"], "ASC").build()


def blocked_items_query() -> str:
    return (
        WiqlQuery()
        .tags_contain("blocked")
        .states_not_in(TERMINAL_STATES)
        .order(FIELD_IDS["priority"], "ASC")
        .order(FIELD_IDS["created_date"], "ASC")
        .build()
    )
