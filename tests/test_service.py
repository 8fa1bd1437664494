import pytest

from azure_pm.core.cache import CacheStore
from azure_pm.core.config import Credentials
from azure_pm.core.devops_client import AuthenticationError, DevOpsAPI, DevOpsAPIError
from azure_pm.core.models import Sprint
from azure_pm.core.service import WorkItemService

SPRINT = Sprint(name="Sprint 1", path="Proj\\Sprint 1")


class DummyAPI(DevOpsAPI):
    def __init__(self, raws, *, fail_ids=(), auth_fail=False, query_error=None):
        self.credentials = Credentials("contoso", "Web", "pat")
        self.raws = {raw["id"]: raw for raw in raws}
        self.fail_ids = set(fail_ids)
        self.auth_fail = auth_fail
        self.query_error = query_error
        self.queries = []

    def get_current_iteration(self):
        if self.query_error:
            raise self.query_error
        return SPRINT

    def query(self, wiql):
        self.queries.append(wiql)
        if self.query_error:
            raise self.query_error
        return [{"id": item_id} for item_id in self.raws]

    def fetch_work_item_raw(self, item_id, *, expand=None):
        if self.auth_fail:
            raise AuthenticationError("expired", status_code=401)
        if item_id in self.fail_ids:
            raise DevOpsAPIError("boom")
        return self.raws[item_id]


def test_sprint_items_from_cache_filters_iteration(tmp_path, raw_item):
    cache = CacheStore(tmp_path)
    cache.put("tasks", 1, raw_item(1))
    cache.put("stories", 2, raw_item(2, "User Story"))
    cache.put("tasks", 3, raw_item(3, **{"System.IterationPath": "Proj\\Sprint 2"}))
    service = WorkItemService(None, cache)
    assert sorted(i.id for i in service.sprint_items(SPRINT)) == [1, 2]


def test_sprint_items_live_skips_failed_items(tmp_path, raw_item):
    api = DummyAPI([raw_item(1), raw_item(2)], fail_ids={2})
    service = WorkItemService(api, CacheStore(tmp_path))
    items = service.sprint_items(SPRINT, source="live")
    assert [i.id for i in items] == [1]
    assert "[System.IterationPath] = 'Proj\\Sprint 1'" in api.queries[0]


def test_live_fetch_authentication_error_propagates(tmp_path, raw_item):
    service = WorkItemService(DummyAPI([raw_item(1)], auth_fail=True), CacheStore(tmp_path))
    with pytest.raises(AuthenticationError):
        service.blocked_items()


def test_unknown_source_and_missing_api(tmp_path):
    service = WorkItemService(None, CacheStore(tmp_path))
    with pytest.raises(ValueError):
        service.sprint_items(SPRINT, source="s3")
    with pytest.raises(RuntimeError):
        service.sprint_items(SPRINT, source="live")


def test_failed_queries_yield_empty_results(tmp_path, raw_item):
    api = DummyAPI([raw_item(1)], query_error=DevOpsAPIError("Request to wit/wiql timed out after 30s"))
    service = WorkItemService(api, CacheStore(tmp_path))
    assert service.sprint_items(SPRINT, source="live") == []
    assert service.blocked_items() == []
    assert service.current_sprint() is None


def test_query_authentication_error_propagates(tmp_path, raw_item):
    api = DummyAPI([raw_item(1)], query_error=AuthenticationError("expired", status_code=401))
    service = WorkItemService(api, CacheStore(tmp_path))
    with pytest.raises(AuthenticationError):
        service.sprint_items(SPRINT, source="live")
    with pytest.raises(AuthenticationError):
        service.current_sprint()
