from datetime import datetime, timedelta

import pytz

from azure_pm.core.models import Sprint, WorkItem
from azure_pm.features.next_task import recommend_next_task
from azure_pm.features.sprint_report import build_sprint_report

START = datetime(2025, 3, 3, tzinfo=pytz.UTC)
NOW = START + timedelta(days=5)


def _items():
    return [
        WorkItem(id=1, title="Login", type="User Story", state="Done", assignee="Alice", story_points=5),
        WorkItem(
            id=2,
            title="API",
            type="Task",
            state="Active",
            assignee="Bob",
            original_estimate=100,
            remaining_work=70,
            tags=["blocked", "approval"],
            changed_date=NOW - timedelta(days=2),
        ),
        WorkItem(id=3, title="Crash", type="Bug", state="New", priority=1, remaining_work=1),
    ]


def test_build_sprint_report_sections():
    end = START + timedelta(days=10)
    sprint = Sprint(name="Sprint 4", path="Web\\Sprint 4", start_date=START, end_date=end)
    report = build_sprint_report(sprint, _items(), velocity_history=[20, 25], now=NOW)
    data = report.to_dict()
    assert set(data) == {
        "sprint",
        "statistics",
        "byState",
        "byType",
        "byAssignee",
        "blockers",
        "risks",
        "burndown",
        "velocity",
        "teamPerformance",
        "alerts",
    }
    assert data["sprint"]["name"] == "Sprint 4"
    assert data["statistics"]["totalItems"] == 3
    assert data["byState"] == {"New": 1, "Active": 1, "Done": 1}
    assert data["byAssignee"] == {"Alice": 1, "Bob": 1, "Unassigned": 1}
    assert data["blockers"][0]["reason"] == "Pending approval"
    assert data["burndown"]["status"] == "Behind"
    assert data["velocity"]["trend"] == "Improving"
    assert data["teamPerformance"]["teamSize"] == 2
    assert "1 critical items are unassigned" in [r["description"] for r in data["risks"]]


def test_report_without_dates_and_with_recommendation():
    sprint = Sprint(name="Sprint 4", path="Web\\Sprint 4")
    recommendation = recommend_next_task([i for i in _items() if i.type in ("Task", "Bug")])
    data = build_sprint_report(sprint, _items(), now=NOW, recommendation=recommendation).to_dict()
    assert data["burndown"] is None
    assert data["velocity"]["trend"] == "Insufficient data"
    assert data["recommendation"]["task"]["id"] == 3


def test_empty_report():
    data = build_sprint_report(Sprint(name="S", path="S"), [], now=NOW).to_dict()
    assert data["statistics"]["completionRate"] == "0.0%"
    assert data["blockers"] == []
    assert [r["level"] for r in data["risks"]] == ["High"]
    assert data["byType"] == {}
