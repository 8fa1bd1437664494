import json

import pytest

from azure_pm.cli import main
from azure_pm.core.cache import CacheStore
from azure_pm.core.config import Credentials
from azure_pm.core.devops_client import DevOpsAPI, DevOpsAPIError


@pytest.fixture
def settings_file(tmp_path, monkeypatch):
    for name in ("AZURE_DEVOPS_ORG", "AZURE_DEVOPS_PROJECT", "AZURE_DEVOPS_PAT"):
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "settings.yaml"
    path.write_text(f"sync:\n  cache_root: {tmp_path / 'cache'}\n  sync_root: {tmp_path / 'sync'}\n")
    return path


def test_status_without_sync(settings_file, capsys):
    assert main(["--settings", str(settings_file), "status"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["lastSync"] is None
    assert out["cache"]["items"] == {"features": 0, "stories": 0, "tasks": 0}


def test_sync_without_credentials_exits_2(settings_file, capsys):
    assert main(["--settings", str(settings_file), "sync", "--quick"]) == 2
    err = capsys.readouterr().err
    assert "AZURE_DEVOPS_ORG" in err


def test_report_from_cache(settings_file, tmp_path, raw_item, capsys):
    cache = CacheStore(tmp_path / "cache")
    cache.put("stories", 1, raw_item(1, "User Story", "Done", **{"Microsoft.VSTS.Scheduling.StoryPoints": 3}))
    cache.put("tasks", 2, raw_item(2, "Task", "Active", **{"System.Tags": "blocked"}))
    argv = [
        "--settings",
        str(settings_file),
        "report",
        "--sprint",
        "Proj\\Sprint 1",
        "--start",
        "2025-03-03",
        "--end",
        "2025-03-13",
        "--velocity",
        "10",
        "12",
    ]
    assert main(argv) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["sprint"]["name"] == "Sprint 1"
    assert report["statistics"]["totalItems"] == 2
    assert report["statistics"]["storyPointsCompletion"] == "100.0%"
    assert [b["id"] for b in report["blockers"]] == [2]
    assert report["burndown"]["totalDays"] == 10
    assert report["velocity"]["average"] == 11.0


def test_report_needing_api_requires_credentials(settings_file, capsys):
    assert main(["--settings", str(settings_file), "report", "--source", "live", "--sprint", "X"]) == 2


def test_unknown_command_rejected(settings_file):
    with pytest.raises(SystemExit):
        main(["--settings", str(settings_file), "deploy"])


class DummyAPI(DevOpsAPI):
    def __init__(self, raws=(), error=None):
        self.credentials = Credentials("contoso", "Web", "pat")
        self.raws = {raw["id"]: raw for raw in raws}
        self.error = error

    def get_current_iteration(self):
        if self.error:
            raise self.error
        return None

    def query(self, wiql):
        if self.error:
            raise self.error
        return [{"id": item_id} for item_id in self.raws]

    def fetch_work_item_raw(self, item_id, *, expand=None):
        return self.raws[item_id]


def test_blocked_from_cache_groups_by_severity(settings_file, tmp_path, raw_item, capsys):
    cache = CacheStore(tmp_path / "cache")
    p1 = {"System.Tags": "blocked; approval", "Microsoft.VSTS.Common.Priority": 1}
    cache.put("tasks", 1, raw_item(1, "Task", "Active", **p1))
    cache.put("tasks", 2, raw_item(2, "Bug", "New", **{"System.Tags": "Blocker"}))
    cache.put("tasks", 3, raw_item(3, "Task", "Done", **{"System.Tags": "blocked"}))
    assert main(["--settings", str(settings_file), "blocked", "--source", "cache"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["total"] == 2
    assert [b["id"] for b in out["bySeverity"]["critical"]] == [1]
    assert out["bySeverity"]["critical"][0]["reason"] == "Pending approval"
    assert [b["id"] for b in out["bySeverity"]["high"]] == [2]
    assert out["bySeverity"]["normal"] == []


def test_blocked_live_uses_tracker_query(settings_file, raw_item, monkeypatch, capsys):
    api = DummyAPI([raw_item(7, "Task", "Active", **{"System.Tags": "blocked"})])
    monkeypatch.setattr("azure_pm.cli._connect", lambda settings: api)
    assert main(["--settings", str(settings_file), "blocked"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert [b["id"] for b in out["bySeverity"]["high"]] == [7]


def test_tracker_failures_degrade_to_partial_results(settings_file, monkeypatch, capsys):
    api = DummyAPI(error=DevOpsAPIError("Request to wit/wiql timed out after 30s"))
    monkeypatch.setattr("azure_pm.cli._connect", lambda settings: api)

    assert main(["--settings", str(settings_file), "report"]) == 0
    assert "error" in json.loads(capsys.readouterr().out)

    assert main(["--settings", str(settings_file), "blocked"]) == 0
    assert json.loads(capsys.readouterr().out)["total"] == 0

    assert main(["--settings", str(settings_file), "next-task"]) == 0
    assert json.loads(capsys.readouterr().out)["task"] is None
