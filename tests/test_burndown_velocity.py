from datetime import datetime, timedelta

import pytz

from azure_pm.analytics.metrics.burndown import compute_burndown
from azure_pm.analytics.metrics.velocity import compute_velocity
from azure_pm.core.models import Sprint

START = datetime(2025, 3, 3, tzinfo=pytz.UTC)


def _sprint():
    end = START + timedelta(days=10)
    return Sprint(name="Sprint 4", path="Web\\Sprint 4", start_date=START, end_date=end)


def test_burndown_behind_scenario():
    totals = {"totalOriginalEstimate": 100, "totalRemainingWork": 70}
    result = compute_burndown(totals, _sprint(), START + timedelta(days=5))
    assert result["idealBurnRate"] == 10
    assert result["actualBurnRate"] == 6
    assert result["status"] == "Behind"
    assert result["projectedCompletionDays"] == 12
    assert result["totalDays"] == 10
    assert result["daysElapsed"] == 5
    assert result["daysRemaining"] == 5
    assert result["progressPercent"] == 50


def test_burndown_on_track_and_unknown_projection():
    totals = {"totalOriginalEstimate": 100, "totalRemainingWork": 40}
    assert compute_burndown(totals, _sprint(), START + timedelta(days=5))["status"] == "On Track"
    # Nothing elapsed yet: no actual rate, no projection
    before = compute_burndown(totals, _sprint(), START - timedelta(days=1))
    assert before["actualBurnRate"] == 0
    assert before["projectedCompletionDays"] == "Unknown"
    assert before["progressPercent"] == 0


def test_burndown_requires_dates():
    assert compute_burndown({"totalOriginalEstimate": 10}, Sprint(name="x", path="x")) is None


def test_velocity_trends():
    assert compute_velocity([20, 22, 30])["trend"] == "Improving"
    assert compute_velocity([30, 27])["trend"] == "Declining"
    assert compute_velocity([30, 31])["trend"] == "Stable"
    assert compute_velocity([30])["trend"] == "Insufficient data"
    assert compute_velocity([])["average"] == 0.0


def test_velocity_average_uses_window():
    result = compute_velocity([100, 20, 25, 30], window=3)
    assert result["average"] == 25.0
    assert result["sprints"] == [20.0, 25.0, 30.0]
