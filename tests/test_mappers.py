from datetime import datetime

import pytz

from azure_pm.core.mappers import items_to_dataframe, map_iteration, map_work_item, parse_dt, split_tags
from azure_pm.core.models import WorkItem
from azure_pm.core.status import category_for_type, is_closed_state, normalize_state


def test_map_work_item_fields(raw_item):
    raw = raw_item(
        42,
        "User Story",
        "resolved",
        **{
            "System.AssignedTo": {"displayName": "Alice Smith", "uniqueName": "alice@contoso.com"},
            "System.Tags": "blocked; waiting-on-api",
            "Microsoft.VSTS.Scheduling.StoryPoints": 5,
            "Microsoft.VSTS.Scheduling.RemainingWork": -2,
        },
    )
    item = map_work_item(raw)
    assert item.id == 42
    assert item.type == "User Story"
    assert item.state == "Resolved"
    assert item.assignee == "Alice Smith"
    assert item.tags == ["blocked", "waiting-on-api"]
    assert item.story_points == 5.0
    assert item.remaining_work == 0.0
    assert item.priority == 2
    assert item.changed_date == datetime(2025, 3, 1, 10, 0, tzinfo=pytz.UTC)


def test_map_work_item_defaults(raw_item):
    raw = raw_item(7, "Bug", "Doing", **{"Microsoft.VSTS.Common.Priority": None})
    item = map_work_item(raw)
    assert item.priority == 3
    assert item.assignee is None
    assert item.assignee_name == "Unassigned"
    assert item.state == "In Progress"


def test_identity_string_form(raw_item):
    raw = raw_item(8, **{"System.AssignedTo": "Bob Jones <bob@contoso.com>"})
    assert map_work_item(raw).assignee == "Bob Jones"


def test_split_tags_and_parse_dt():
    assert split_tags("a; b ;;c") == ["a", "b", "c"]
    assert split_tags(None) == []
    assert parse_dt("") is None
    assert parse_dt("garbage") is None


def test_map_iteration():
    sprint = map_iteration(
        {
            "path": "Proj\\Release 1\\Sprint 4",
            "attributes": {"startDate": "2025-03-03T00:00:00Z", "finishDate": "2025-03-14T00:00:00Z"},
        }
    )
    assert sprint.name == "Sprint 4"
    assert sprint.has_dates
    assert sprint.total_days == 11


def test_items_to_dataframe_empty_has_columns():
    df = items_to_dataframe([])
    assert df.empty
    assert {"state", "assignee", "story_points"} <= set(df.columns)


def test_items_to_dataframe_fills_unassigned():
    df = items_to_dataframe([WorkItem(id=1, title="x", type="Task", state="New")])
    assert df.loc[0, "assignee"] == "Unassigned"


def test_state_helpers():
    assert normalize_state("  ") == "Unknown"
    assert normalize_state("Waiting On Customer") == "Waiting On Customer"
    assert is_closed_state("closed")
    assert not is_closed_state("Active")
    assert category_for_type("bug") == "tasks"
    assert category_for_type("Epic") is None
