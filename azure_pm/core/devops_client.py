"""Azure DevOps REST client wrapper (WIQL search + work item detail fetch)."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from typing import Any

import requests

from .config import (
    API_VERSION,
    AZURE_DEVOPS_BASE_URL,
    DEFAULT_TIMEOUT_SECONDS,
    FIELD_IDS,
    PREDECESSOR_LINK_TYPE,
    QUERY_CACHE_TTL_SECONDS,
    Credentials,
)
from .mappers import map_iteration, map_work_item
from .models import Sprint, WorkItem
from .status import is_closed_state

logger = logging.getLogger(__name__)


class DevOpsAPIError(RuntimeError):
    """Raised when an Azure DevOps call fails (HTTP error, network, timeout)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class AuthenticationError(DevOpsAPIError):
    """Raised on 401/403; the token is missing scopes, expired or wrong."""


class MalformedResponseError(DevOpsAPIError):
    """Raised when a response body is not the JSON shape we expect."""


class DevOpsAPI:
    def __init__(
        self,
        credentials: Credentials,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
        base_url: str = AZURE_DEVOPS_BASE_URL,
    ):
        credentials.validate()
        self.credentials = credentials
        self.timeout = timeout
        self.base_url = f"{base_url.rstrip('/')}/{credentials.organization}/{credentials.project}/_apis"
        self.session = session or requests.Session()
        # PAT basic auth: empty user name, token as password
        self.session.auth = ("", credentials.token)
        self.session.headers.update({"Accept": "application/json", "User-Agent": "azure-pm/1.0"})
        # Simple in-memory cache: {(hash): (timestamp, data)}
        self._cache: dict[str, tuple[float, list]] = {}
        self._cache_ttl = QUERY_CACHE_TTL_SECONDS
        self._cache_lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0}

    def clear_cache(self) -> None:
        """Reset the in-memory query cache and its counters."""
        with self._cache_lock:
            self._cache.clear()
            self._stats = {"hits": 0, "misses": 0}

    def cache_stats(self) -> dict[str, Any]:
        total = self._stats["hits"] + self._stats["misses"]
        hit_rate = self._stats["hits"] / total * 100 if total else 0.0
        return {**self._stats, "hitRate": f"{hit_rate:.2f}%", "size": len(self._cache)}

    def _cache_key(self, wiql: str) -> str:
        payload = {"query": wiql, "project": self.credentials.project}
        return hashlib.sha256(json.dumps(payload, sort_keys=True).encode()).hexdigest()

    # ------------------ Transport ------------------
    def _request(self, method: str, endpoint: str, *, params=None, body=None) -> dict[str, Any]:
        url = f"{self.base_url}/{endpoint}"
        query = {"api-version": API_VERSION, **(params or {})}
        try:
            resp = self.session.request(method, url, params=query, json=body, timeout=self.timeout)
        except requests.Timeout as exc:
            raise DevOpsAPIError(f"Request to {endpoint} timed out after {self.timeout}s") from exc
        except requests.RequestException as exc:
            raise DevOpsAPIError(f"Request to {endpoint} failed: {exc}") from exc
        if resp.status_code in (401, 403):
            raise AuthenticationError(
                f"Authentication failed ({resp.status_code}); check {self.credentials.organization} PAT",
                status_code=resp.status_code,
            )
        if resp.status_code >= 400:
            raise DevOpsAPIError(
                f"{method} {endpoint} failed {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise MalformedResponseError(f"Invalid JSON from {endpoint}") from exc
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Unexpected payload type from {endpoint}: {type(data)!r}")
        return data

    # ------------------ Queries ------------------
    def query(self, wiql: str) -> list[dict[str, Any]]:
        """Run a WIQL query and return the work item references (``{"id": ...}``)."""
        key = self._cache_key(wiql)
        now = time.time()
        with self._cache_lock:
            cached = self._cache.get(key)
            if cached and (now - cached[0]) < self._cache_ttl:
                self._stats["hits"] += 1
                return list(cached[1])
            self._stats["misses"] += 1
        data = self._request("POST", "wit/wiql", body={"query": wiql})
        refs = data.get("workItems")
        if refs is None:
            refs = []
        if not isinstance(refs, list) or any(not isinstance(r, dict) or "id" not in r for r in refs):
            raise MalformedResponseError("WIQL response has no valid workItems list")
        out = [{"id": int(r["id"])} for r in refs]
        with self._cache_lock:
            self._cache[key] = (now, out)
        return list(out)

    def fetch_work_item_raw(self, item_id: int, *, expand: str | None = None) -> dict[str, Any]:
        params = {"$expand": expand} if expand else None
        data = self._request("GET", f"wit/workitems/{int(item_id)}", params=params)
        if "fields" not in data:
            raise MalformedResponseError(f"Work item {item_id} payload has no fields")
        return data

    def fetch_work_item(self, item_id: int) -> WorkItem:
        return map_work_item(self.fetch_work_item_raw(item_id))

    def fetch_relations(self, item_id: int) -> list[dict[str, Any]]:
        raw = self.fetch_work_item_raw(item_id, expand="relations")
        return list(raw.get("relations") or [])

    def has_open_predecessor(self, item_id: int) -> bool:
        """True when any predecessor dependency of ``item_id`` is still open."""
        for relation in self.fetch_relations(item_id):
            if relation.get("rel") != PREDECESSOR_LINK_TYPE:
                continue
            url = relation.get("url") or ""
            try:
                predecessor_id = int(url.rstrip("/").rsplit("/", 1)[-1])
            except ValueError:
                logger.debug("Skipping relation with unparseable url %s", url)
                continue
            predecessor = self.fetch_work_item_raw(predecessor_id)
            state = (predecessor.get("fields") or {}).get(FIELD_IDS["state"])
            if not is_closed_state(state):
                return True
        return False

    def get_current_iteration(self) -> Sprint | None:
        data = self._request("GET", "work/teamsettings/iterations", params={"$timeframe": "current"})
        values = data.get("value") or []
        if not values:
            return None
        return map_iteration(values[0])
