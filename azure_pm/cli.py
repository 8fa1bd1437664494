"""Command line interface: sync, report, next-task, blocked and status sub-commands."""

from __future__ import annotations

import argparse
import logging
from typing import Any

from azure_pm.analytics.segments.blockers import find_blockers, group_blockers_by_severity
from azure_pm.app import main as run_app
from azure_pm.app import register_command
from azure_pm.core.cache import CacheStore
from azure_pm.core.config import Credentials, SyncSettings, load_settings
from azure_pm.core.devops_client import DevOpsAPI
from azure_pm.core.mappers import items_to_dataframe, parse_dt
from azure_pm.core.models import Sprint, SyncMode
from azure_pm.core.service import SOURCES, WorkItemService
from azure_pm.core.sync import SyncOrchestrator, read_last_sync
from azure_pm.core.wiql import ME
from azure_pm.features.next_task import NextTaskService
from azure_pm.features.sprint_report import build_sprint_report

logger = logging.getLogger(__name__)


def _log_progress(message: str, current: int | None, total: int | None) -> None:
    if current is not None and total:
        logger.debug("%s (%d/%d)", message, current, total)
    else:
        logger.info(message)


def _connect(settings: SyncSettings) -> DevOpsAPI:
    credentials = Credentials.from_env()
    credentials.validate()
    return DevOpsAPI(credentials, timeout=settings.timeout)


def _sprint_from_args(args: argparse.Namespace) -> Sprint:
    path = args.sprint
    return Sprint(
        name=path.split("\\")[-1],
        path=path,
        start_date=parse_dt(args.start),
        end_date=parse_dt(args.end),
    )


@register_command(
    "sync",
    help="Pull work items into the local cache",
    arguments=[
        (("--quick",), {"action": "store_true", "help": "Only items changed in the last 7 days"}),
    ],
)
def sync_command(args: argparse.Namespace) -> dict[str, Any]:
    settings = load_settings(args.settings)
    api = _connect(settings)
    orchestrator = SyncOrchestrator(api, CacheStore(settings.cache_root), settings, progress=_log_progress)
    metadata = orchestrator.run(SyncMode.QUICK if args.quick else SyncMode.FULL)
    return metadata.to_dict()


@register_command(
    "report",
    help="Sprint statistics, burndown, velocity, team performance, blockers and risks",
    arguments=[
        (("--sprint",), {"metavar": "PATH", "help": "Iteration path (default: current iteration)"}),
        (("--start",), {"metavar": "DATE", "help": "Sprint start date when --sprint is given"}),
        (("--end",), {"metavar": "DATE", "help": "Sprint end date when --sprint is given"}),
        (("--source",), {"choices": SOURCES, "default": "cache", "help": "Where to read items from"}),
        (
            ("--velocity",),
            {
                "type": float,
                "nargs": "*",
                "default": [],
                "metavar": "POINTS",
                "help": "Completed points of previous sprints, oldest first",
            },
        ),
        (("--with-next-task",), {"action": "store_true", "help": "Embed a next task recommendation"}),
    ],
)
def report_command(args: argparse.Namespace) -> dict[str, Any]:
    settings = load_settings(args.settings)
    needs_api = args.sprint is None or args.source == "live" or args.with_next_task
    api = _connect(settings) if needs_api else None
    items = WorkItemService(api, CacheStore(settings.cache_root), settings)

    if args.sprint:
        sprint = _sprint_from_args(args)
    else:
        sprint = items.current_sprint()
        if sprint is None:
            return {"error": "No current iteration found; pass --sprint"}

    work_items = items.sprint_items(sprint, source=args.source, progress=_log_progress)
    recommendation = None
    if args.with_next_task:
        recommendation = NextTaskService(api, items).recommend(progress=_log_progress)
    report = build_sprint_report(
        sprint,
        work_items,
        velocity_history=args.velocity,
        velocity_window=settings.velocity_window,
        recommendation=recommendation,
    )
    return report.to_dict()


@register_command(
    "next-task",
    help="Recommend the most urgent open Task or Bug",
    arguments=[
        (("--user",), {"default": ME, "metavar": "EMAIL", "help": "Assignee (default: @Me)"}),
        (("--all-sprints",), {"action": "store_true", "help": "Do not limit to the current iteration"}),
    ],
)
def next_task_command(args: argparse.Namespace) -> dict[str, Any]:
    settings = load_settings(args.settings)
    api = _connect(settings)
    service = NextTaskService(api, WorkItemService(api, CacheStore(settings.cache_root), settings))
    return service.recommend(user=args.user, all_sprints=args.all_sprints, progress=_log_progress).to_dict()


@register_command(
    "blocked",
    help="Open items tagged blocked, grouped by severity",
    arguments=[
        (("--source",), {"choices": SOURCES, "default": "live", "help": "Where to read items from"}),
    ],
)
def blocked_command(args: argparse.Namespace) -> dict[str, Any]:
    settings = load_settings(args.settings)
    if args.source == "live":
        items = WorkItemService(_connect(settings), CacheStore(settings.cache_root), settings)
        work_items = items.blocked_items(progress=_log_progress)
    else:
        work_items = CacheStore(settings.cache_root).load_all()
    blockers = find_blockers(items_to_dataframe(work_items))
    return {"total": len(blockers), "bySeverity": group_blockers_by_severity(blockers)}


@register_command("status", help="Show the last sync record and cache contents")
def status_command(args: argparse.Namespace) -> dict[str, Any]:
    settings = load_settings(args.settings)
    cache = CacheStore(settings.cache_root)
    last = read_last_sync(settings.metadata_path)
    return {
        "lastSync": last.to_dict() if last else None,
        "cache": {"root": str(settings.cache_root), "items": cache.counts(), "size": cache.size_label()},
    }


def main(argv=None) -> int:
    return run_app(argv)


if __name__ == "__main__":
    raise SystemExit(main())
