"""Test configuration ensuring local package import when editable install not active.

If users invoke `pytest` outside the project's virtualenv, we still add the project
root to sys.path so `import azure_pm` works. Shared payload builders live here too.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _raw_item(item_id, work_item_type="Task", state="New", **extra):
    """Minimal Azure DevOps work item payload as returned by ``wit/workitems/<id>``."""
    fields = {
        "System.Id": item_id,
        "System.Title": f"Item {item_id}",
        "System.WorkItemType": work_item_type,
        "System.State": state,
        "System.IterationPath": "Proj\\Sprint 1",
        "System.ChangedDate": "2025-03-01T10:00:00Z",
        "System.CreatedDate": "2025-02-20T09:00:00Z",
        "Microsoft.VSTS.Common.Priority": 2,
    }
    fields.update(extra)
    return {"id": item_id, "rev": 1, "fields": fields}


@pytest.fixture
def raw_item():
    return _raw_item
