import pytest

from azure_pm.core.cache import CacheStore
from azure_pm.core.config import Credentials
from azure_pm.core.devops_client import AuthenticationError, DevOpsAPI, DevOpsAPIError
from azure_pm.core.models import Sprint, WorkItem
from azure_pm.core.service import WorkItemService
from azure_pm.features.next_task import (
    NextTaskService,
    recommend_next_task,
    score_candidate,
    select_candidates,
)


def _task(item_id, priority=2, type="Task", remaining=8.0, **kw):
    kw.setdefault("state", "New")
    return WorkItem(
        id=item_id, title=f"T{item_id}", type=type, priority=priority, remaining_work=remaining, **kw
    )


def test_bug_quick_win_beats_task():
    bug = _task(1, priority=1, type="Bug", remaining=1)
    task = _task(2, priority=1, remaining=8)
    assert score_candidate(bug)[0] == 20
    assert score_candidate(task)[0] == 100
    result = recommend_next_task([task, bug])
    assert result.task.item.id == 1
    assert [c.item.id for c in result.alternatives] == [2]


def test_priority_ordering():
    p3 = _task(1, priority=3)
    p1 = _task(2, priority=1)
    assert score_candidate(p1)[0] < score_candidate(p3)[0]
    assert recommend_next_task([p3, p1]).task.item.id == 2


def test_scoring_factors():
    item = _task(1, priority=2, remaining=0, tags=["Urgent"])
    score, factors = score_candidate(item, has_dependency=False)
    assert score == 200 - 75 - 20
    assert factors == ["Priority 2", "Urgent tag", "No blocking dependencies"]
    # Zero remaining work is not a quick win; an open predecessor loses the bonus
    assert score_candidate(item, has_dependency=True)[0] == 125


def test_ties_keep_first_seen_order_and_limit_alternatives():
    items = [_task(i, priority=2) for i in range(1, 7)]
    result = recommend_next_task(items)
    assert result.task.item.id == 1
    assert [c.item.id for c in result.alternatives] == [2, 3, 4]


def test_dependency_check_changes_score_and_fails_open():
    first = _task(1, priority=2)
    second = _task(2, priority=2)

    def check(item_id):
        if item_id == 2:
            raise DevOpsAPIError("links unavailable")
        return True

    result = recommend_next_task([first, second], dependency_check=check)
    assert result.task.item.id == 2
    assert result.task.has_dependency is False
    assert result.alternatives[0].has_dependency is True


def test_empty_pool_returns_no_task():
    result = recommend_next_task([])
    assert result.task is None
    assert result.to_dict() == {
        "task": None,
        "alternatives": [],
        "analysis": {"totalTasks": 0, "totalHours": 0.0, "p1Count": 0, "p2Count": 0, "bugCount": 0},
    }


def test_pool_analysis():
    items = [_task(1, priority=1, type="Bug", remaining=2), _task(2, priority=2, remaining=5), _task(3)]
    analysis = recommend_next_task(items).analysis
    assert analysis == {"totalTasks": 3, "totalHours": 15.0, "p1Count": 1, "p2Count": 2, "bugCount": 1}


def test_select_candidates_filters():
    items = [
        _task(1, iteration_path="P\\S1"),
        _task(2, state="Active", iteration_path="P\\S1"),
        _task(3, type="User Story", iteration_path="P\\S1"),
        _task(4, state="To Do", iteration_path="P\\S2"),
        _task(5, state="Ready", iteration_path="P\\S1", assignee="Alice"),
        _task(6, state="Ready", iteration_path="P\\S1", assignee="Bob"),
    ]
    assert [i.id for i in select_candidates(items)] == [1, 4, 5, 6]
    assert [i.id for i in select_candidates(items, sprint_path="P\\S1")] == [1, 5, 6]
    assert [i.id for i in select_candidates(items, sprint_path="P\\S1", user="alice")] == [1, 5]


class DummyAPI(DevOpsAPI):
    def __init__(self, raws, blocked_ids=(), *, iteration_error=None, query_error=None):
        self.credentials = Credentials("contoso", "Web", "pat")
        self.raws = {raw["id"]: raw for raw in raws}
        self.blocked_ids = set(blocked_ids)
        self.iteration_error = iteration_error
        self.query_error = query_error
        self.queries = []

    def get_current_iteration(self):
        if self.iteration_error:
            raise self.iteration_error
        return Sprint(name="Sprint 1", path="Proj\\Sprint 1")

    def query(self, wiql):
        self.queries.append(wiql)
        if self.query_error:
            raise self.query_error
        return [{"id": item_id} for item_id in self.raws]

    def fetch_work_item_raw(self, item_id, *, expand=None):
        return self.raws[item_id]

    def has_open_predecessor(self, item_id):
        return item_id in self.blocked_ids


@pytest.fixture
def service(tmp_path, raw_item):
    raws = [
        raw_item(1, "Task", "New", **{"Microsoft.VSTS.Common.Priority": 1}),
        raw_item(2, "Task", "New", **{"Microsoft.VSTS.Common.Priority": 1}),
        raw_item(3, "Task", "Active", **{"Microsoft.VSTS.Common.Priority": 1}),
    ]
    api = DummyAPI(raws, blocked_ids={1})
    return NextTaskService(api, WorkItemService(api, CacheStore(tmp_path)))


def test_next_task_service_uses_current_sprint_and_dependencies(service):
    result = service.recommend()
    assert "[System.IterationPath] = 'Proj\\Sprint 1'" in service.api.queries[0]
    assert "@Me" in service.api.queries[0]
    # Item 1 has an open predecessor, item 3 is not open for pickup
    assert result.task.item.id == 2
    assert [c.item.id for c in result.alternatives] == [1]


def test_next_task_service_all_sprints(service):
    service.recommend(user="dev@contoso.com", all_sprints=True)
    assert "[System.IterationPath]" not in service.api.queries[0]
    assert "'dev@contoso.com'" in service.api.queries[0]


def test_failed_candidate_query_returns_empty_recommendation():
    api = DummyAPI([], query_error=DevOpsAPIError("Request to wit/wiql timed out after 30s"))
    result = NextTaskService(api, None).recommend()
    assert result.task is None
    assert result.alternatives == []


def test_failed_iteration_lookup_falls_back_to_all_sprints(tmp_path, raw_item):
    api = DummyAPI([raw_item(1)], iteration_error=DevOpsAPIError("HTTP 503", status_code=503))
    result = NextTaskService(api, WorkItemService(api, CacheStore(tmp_path))).recommend()
    assert "[System.IterationPath]" not in api.queries[0]
    assert result.task.item.id == 1


def test_authentication_error_is_not_absorbed():
    api = DummyAPI([], query_error=AuthenticationError("expired", status_code=401))
    with pytest.raises(AuthenticationError):
        NextTaskService(api, None).recommend(all_sprints=True)
