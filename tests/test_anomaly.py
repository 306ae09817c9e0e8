from __future__ import annotations

import asyncio

import pytest

from canvasgate.anomaly import ActivityType, AnomalyDetector, Severity
from canvasgate.anomaly.detector import DAY_MS, HOUR_MS
from canvasgate.exceptions import ValidationError

from conftest import ManualClock


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def detector(clock) -> AnomalyDetector:
    return AnomalyDetector(clock=clock)


async def test_request_rate_alert_fires_above_threshold(detector):
    for _ in range(100):
        assert await detector.track_activity("user-1", ActivityType.REQUEST) == []

    alerts = await detector.track_activity("user-1", ActivityType.REQUEST)

    assert len(alerts) == 1
    alert = alerts[0]
    assert alert.kind == "high_request_rate"
    assert alert.severity is Severity.HIGH
    assert (alert.value, alert.threshold) == (101, 100)


async def test_alert_repeats_while_condition_persists(detector):
    for _ in range(101):
        await detector.track_activity("user-1", "request")

    alerts = await detector.track_activity("user-1", "request")
    assert [a.value for a in alerts] == [102]


async def test_hourly_window_resets(detector, clock):
    for _ in range(5):
        await detector.track_activity("user-1", ActivityType.REQUEST)

    clock.advance(HOUR_MS + 1)
    await detector.track_activity("user-1", ActivityType.REQUEST)

    metrics = await detector.get_user_metrics("user-1")
    assert metrics["hourly_requests"] == 1
    assert metrics["request_count"] == 6


async def test_daily_cost_alert_and_reset(detector, clock):
    assert await detector.track_activity("user-1", ActivityType.REQUEST, cost=30.0) == []
    alerts = await detector.track_activity("user-1", ActivityType.REQUEST, cost=30.0)
    assert [a.kind for a in alerts] == ["high_daily_cost"]
    assert alerts[0].value == 60.0

    clock.advance(DAY_MS + 1)
    assert await detector.track_activity("user-1", ActivityType.REQUEST, cost=1.0) == []


async def test_export_rate_alert_is_medium(detector):
    for _ in range(10):
        await detector.track_activity("user-1", ActivityType.EXPORT)

    alerts = await detector.track_activity("user-1", ActivityType.EXPORT)
    assert [(a.kind, a.severity) for a in alerts] == [("high_export_rate", Severity.MEDIUM)]


async def test_failed_auth_alert(detector):
    alerts = []
    for _ in range(6):
        alerts = await detector.track_activity("user-1", ActivityType.AUTH_FAILURE)
    assert [a.kind for a in alerts] == ["multiple_auth_failures"]


async def test_concurrent_sessions(detector):
    for _ in range(3):
        assert await detector.track_activity("user-1", ActivityType.SESSION_START) == []
    alerts = await detector.track_activity("user-1", ActivityType.SESSION_START)
    assert [(a.kind, a.severity) for a in alerts] == [("multiple_concurrent_sessions", Severity.MEDIUM)]

    for _ in range(6):
        await detector.track_activity("user-1", ActivityType.SESSION_END)
    assert (await detector.get_user_metrics("user-1"))["concurrent_sessions"] == 0


async def test_sinks_receive_alerts_and_failures_are_contained(clock):
    received = []

    def broken(alert):
        raise RuntimeError("pager down")

    detector = AnomalyDetector(clock=clock, sinks=[broken, received.append])
    detector.update_thresholds(requests_per_hour=1)

    await detector.track_activity("user-1", ActivityType.REQUEST)
    await detector.track_activity("user-1", ActivityType.REQUEST)

    assert [a.kind for a in received] == ["high_request_rate"]


async def test_cleanup_drops_idle_windows(detector, clock):
    await detector.track_activity("idle", ActivityType.REQUEST)
    clock.advance(DAY_MS)
    await detector.track_activity("active", ActivityType.REQUEST)
    clock.advance(1)

    assert await detector.cleanup() == {"cleaned_count": 1, "remaining_users": 1}
    assert (await detector.get_user_metrics("idle"))["request_count"] == 0


async def test_reset_user_metrics(detector):
    await detector.track_activity("user-1", ActivityType.REQUEST)
    await detector.reset_user_metrics("user-1")
    assert (await detector.get_user_metrics("user-1"))["request_count"] == 0


async def test_update_thresholds_validates(detector):
    updated = detector.update_thresholds(requests_per_hour=10, cost_per_day=None, unknown=5)
    assert updated.requests_per_hour == 10
    assert updated.cost_per_day == 50.0

    with pytest.raises(ValidationError):
        detector.update_thresholds(requests_per_hour=0)
    assert detector.thresholds.requests_per_hour == 10


async def test_system_metrics_lists_high_activity_users(detector):
    detector.update_thresholds(requests_per_hour=2)
    for _ in range(3):
        await detector.track_activity("busy-user-01", ActivityType.REQUEST)
    await detector.track_activity("quiet", ActivityType.REQUEST)

    metrics = await detector.get_system_metrics()

    assert metrics["total_users"] == 2
    assert metrics["total_requests"] == 4
    assert len(metrics["high_activity_users"]) == 1
    assert metrics["thresholds"]["requests_per_hour"] == 2


async def test_concurrent_updates_are_not_lost(detector):
    await asyncio.gather(*[detector.track_activity("user-1", ActivityType.REQUEST) for _ in range(200)])
    assert (await detector.get_user_metrics("user-1"))["request_count"] == 200
