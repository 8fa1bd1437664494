"""Central configuration, constants, credentials, and sync tuning knobs."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

# =============================================================================
# Azure DevOps Connection Settings
# =============================================================================
AZURE_DEVOPS_BASE_URL = "https://dev.azure.com"
API_VERSION = "7.0"
TIMEZONE = "UTC"
DEFAULT_TIMEOUT_SECONDS: float = 30.0
QUERY_CACHE_TTL_SECONDS: float = 300.0

# Environment variable names holding the credentials
ENV_ORGANIZATION = "AZURE_DEVOPS_ORG"
ENV_PROJECT = "AZURE_DEVOPS_PROJECT"
ENV_TOKEN = "AZURE_DEVOPS_PAT"

# =============================================================================
# Work Item Types and Cache Categories
# =============================================================================
WORK_ITEM_TYPES: Sequence[str] = ("Epic", "Feature", "User Story", "Task", "Bug")

# Only stories carry story points; other types report 0
STORY_POINT_TYPES: frozenset[str] = frozenset({"User Story"})

# Types pulled by a sync, in the order the full sync walks them
SYNC_WORK_ITEM_TYPES: Sequence[str] = ("Feature", "User Story", "Task", "Bug")

CACHE_CATEGORIES: Sequence[str] = ("features", "stories", "tasks")

# Bugs share the tasks partition
TYPE_CATEGORY: dict[str, str] = {
    "Feature": "features",
    "User Story": "stories",
    "Task": "tasks",
    "Bug": "tasks",
}

# Keys are lowercase for case-insensitive matching
WORK_ITEM_TYPE_ALIASES: dict[str, str] = {
    "epic": "Epic",
    "feature": "Feature",
    "user story": "User Story",
    "userstory": "User Story",
    "story": "User Story",
    "task": "Task",
    "bug": "Bug",
}

# =============================================================================
# Workflow State Configuration
# =============================================================================
STATE_DISPLAY_ORDER: Sequence[str] = (
    "New",
    "Active",
    "In Progress",
    "Resolved",
    "Done",
    "Closed",
    "Removed",
)

# States counted as completed work
COMPLETED_STATES: frozenset[str] = frozenset({"Done", "Closed", "Resolved"})

# States excluded from blocker detection
TERMINAL_STATES: frozenset[str] = frozenset({"Done", "Closed", "Removed"})

# A predecessor in one of these states no longer blocks its successor
CLOSED_STATES: frozenset[str] = COMPLETED_STATES | {"Removed"}

STARTED_STATES: frozenset[str] = frozenset({"Active", "In Progress"})

STATE_ALIASES: dict[str, str] = {
    "new": "New",
    "active": "Active",
    "in progress": "In Progress",
    "inprogress": "In Progress",
    "in-progress": "In Progress",
    "doing": "In Progress",
    "committed": "In Progress",
    "resolved": "Resolved",
    "done": "Done",
    "completed": "Done",
    "closed": "Closed",
    "removed": "Removed",
    # Open backlog states used by some process templates
    "to do": "To Do",
    "todo": "To Do",
    "ready": "Ready",
}

UNASSIGNED = "Unassigned"
DEFAULT_PRIORITY = 3

# =============================================================================
# Tag Keywords
# =============================================================================
BLOCKED_TAGS: frozenset[str] = frozenset({"blocked", "blocker"})

# First match wins
BLOCK_REASON_KEYWORDS: Sequence[tuple[str, str]] = (
    ("waiting", "Waiting for dependencies"),
    ("approval", "Pending approval"),
    ("resource", "Resource constraints"),
    ("technical", "Technical blocker"),
)
DEFAULT_BLOCK_REASON = "Unspecified blocker"

URGENT_TAGS: frozenset[str] = frozenset({"critical", "urgent"})

# =============================================================================
# Sync Defaults
# =============================================================================
FULL_SYNC_WINDOW_DAYS: int = 30
QUICK_SYNC_WINDOW_DAYS: int = 7
MAX_CACHE_AGE_DAYS: int = 30

DEFAULT_CACHE_ROOT = Path(".claude") / "azure" / "cache"
DEFAULT_SYNC_ROOT = Path(".claude") / "azure" / "sync"
DEFAULT_SETTINGS_PATH = Path(".claude") / "azure" / "settings.yaml"
SYNC_METADATA_FILENAME = "last-sync.json"

# Parallel detail fetch tuning
# Threads because the HTTP client is synchronous and the calls are I/O bound.
# Keep worker count moderate to stay clear of Azure DevOps rate limits.
FETCH_MAX_WORKERS = 8
FETCH_MIN_PARALLEL = 4  # below this, stay sequential

# =============================================================================
# Analytics Thresholds
# =============================================================================
BURNDOWN_BEHIND_RATIO = 0.70
BURNDOWN_ON_TRACK_RATIO = 0.40

LOW_COMPLETION_RISK_PCT = 40.0
NEW_ITEMS_RISK_RATIO = 0.30
CRITICAL_PRIORITY = 1

VELOCITY_WINDOW = 3
VELOCITY_IMPROVING_RATIO = 1.10
VELOCITY_DECLINING_RATIO = 0.90

STALE_ITEM_DAYS = 14

# =============================================================================
# Next Task Scoring (lower score = more urgent)
# =============================================================================
CANDIDATE_TYPES: frozenset[str] = frozenset({"Task", "Bug"})
CANDIDATE_STATES: Sequence[str] = ("New", "To Do", "Ready")

PRIORITY_WEIGHT = 100
BUG_BONUS = 50
QUICK_WIN_BONUS = 30
QUICK_WIN_MAX_HOURS = 2.0
URGENT_TAG_BONUS = 75
NO_DEPENDENCY_BONUS = 20
MAX_ALTERNATIVES = 3

# =============================================================================
# Azure DevOps Field Reference Names
# =============================================================================
FIELD_IDS = {
    "id": "System.Id",
    "title": "System.Title",
    "type": "System.WorkItemType",
    "state": "System.State",
    "assignee": "System.AssignedTo",
    "tags": "System.Tags",
    "iteration_path": "System.IterationPath",
    "created_date": "System.CreatedDate",
    "changed_date": "System.ChangedDate",
    "team_project": "System.TeamProject",
    "priority": "Microsoft.VSTS.Common.Priority",
    "story_points": "Microsoft.VSTS.Scheduling.StoryPoints",
    "remaining_work": "Microsoft.VSTS.Scheduling.RemainingWork",
    "completed_work": "Microsoft.VSTS.Scheduling.CompletedWork",
    "original_estimate": "Microsoft.VSTS.Scheduling.OriginalEstimate",
}

PREDECESSOR_LINK_TYPE = "System.LinkTypes.Dependency-Reverse"

# Canonical field list selected by the sync queries
WIQL_SELECT_FIELDS: Sequence[str] = (
    FIELD_IDS["id"],
    FIELD_IDS["title"],
    FIELD_IDS["type"],
    FIELD_IDS["state"],
    FIELD_IDS["changed_date"],
)


class ConfigurationError(ValueError):
    """Raised when required credentials or settings are missing."""


@dataclass(slots=True)
class Credentials:
    organization: str | None
    project: str | None
    token: str | None = field(default=None, repr=False)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Credentials:
        env = os.environ if environ is None else environ
        return cls(
            organization=(env.get(ENV_ORGANIZATION) or "").strip() or None,
            project=(env.get(ENV_PROJECT) or "").strip() or None,
            token=(env.get(ENV_TOKEN) or "").strip() or None,
        )

    def missing(self) -> list[str]:
        out = []
        if not self.organization:
            out.append(ENV_ORGANIZATION)
        if not self.project:
            out.append(ENV_PROJECT)
        if not self.token:
            out.append(ENV_TOKEN)
        return out

    def validate(self) -> None:
        """Fail unless organization, project and token are all present."""
        missing = self.missing()
        if missing:
            raise ConfigurationError(
                "Azure DevOps configuration missing: " + ", ".join(missing)
            )


@dataclass(slots=True)
class SyncSettings:
    cache_root: Path = DEFAULT_CACHE_ROOT
    sync_root: Path = DEFAULT_SYNC_ROOT
    full_window_days: int = FULL_SYNC_WINDOW_DAYS
    quick_window_days: int = QUICK_SYNC_WINDOW_DAYS
    max_cache_age_days: int = MAX_CACHE_AGE_DAYS
    max_workers: int = FETCH_MAX_WORKERS
    min_parallel: int = FETCH_MIN_PARALLEL
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    velocity_window: int = VELOCITY_WINDOW

    @property
    def metadata_path(self) -> Path:
        return Path(self.sync_root) / SYNC_METADATA_FILENAME


_PATH_SETTINGS = {"cache_root", "sync_root"}


def load_settings(path: str | Path | None = None) -> SyncSettings:
    """Build ``SyncSettings`` from an optional YAML file.

    The file may hold the keys at top level or under a ``sync:`` section.
    Unknown keys are ignored; a missing or unreadable file yields defaults.
    """
    yaml_path = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    if not yaml_path.exists():
        return SyncSettings()
    try:
        data = yaml.safe_load(yaml_path.read_text()) or {}
        section = data.get("sync", data)
        known = {f.name for f in fields(SyncSettings)}
        overrides = {}
        for key, value in section.items():
            if key not in known or value is None:
                continue
            if key in _PATH_SETTINGS:
                overrides[key] = Path(value)
            elif key == "timeout":
                overrides[key] = float(value)
            else:
                overrides[key] = int(value)
        return SyncSettings(**overrides)
    except Exception as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", yaml_path, exc)
        return SyncSettings()
