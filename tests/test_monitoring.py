import pytest

from canvasgate.anomaly import ActivityType
from canvasgate.exceptions import AccessDenied, AuthenticationRequired, ValidationError
from canvasgate.monitoring import MonitoringService
from canvasgate.ratelimit import InMemoryCounter, RateLimiter

from conftest import OPERATOR, OWNER, STRANGER, ManualClock


@pytest.fixture
def monitoring(gateway):
    return gateway.monitoring


async def test_subjects_see_only_their_own_metrics(gateway, monitoring):
    await gateway.tracker.start_tracking("complete", OWNER)
    await gateway.tracker.start_tracking("complete", STRANGER)

    own = await monitoring.get_request_metrics(OWNER)
    activity = await monitoring.get_user_activity(OWNER)

    assert len(own) == 1
    assert activity["request_count"] == 1


async def test_every_call_needs_a_subject(monitoring):
    with pytest.raises(AuthenticationRequired):
        await monitoring.get_request_metrics(None)
    with pytest.raises(AuthenticationRequired):
        await monitoring.get_system_metrics(None)


@pytest.mark.parametrize("call", ["get_system_metrics", "cleanup"])
async def test_operator_views_are_gated(monitoring, call):
    with pytest.raises(AccessDenied):
        await getattr(monitoring, call)(OWNER)

    assert await getattr(monitoring, call)(OPERATOR) is not None


async def test_system_metrics_for_operator(gateway, monitoring):
    await gateway.detector.track_activity(OWNER, ActivityType.REQUEST)

    metrics = await monitoring.get_system_metrics(OPERATOR)

    assert metrics["anomaly"]["total_users"] == 1
    assert "error_rate" in metrics["requests"]


async def test_self_reset_is_allowed(gateway, monitoring):
    await gateway.detector.track_activity(OWNER, ActivityType.REQUEST)

    await monitoring.reset_anomaly_metrics(OWNER)

    assert (await monitoring.get_anomaly_metrics(OWNER))["request_count"] == 0


async def test_resetting_someone_else_needs_operator(gateway, monitoring):
    await gateway.detector.track_activity(OWNER, ActivityType.REQUEST)

    with pytest.raises(AccessDenied):
        await monitoring.reset_anomaly_metrics(STRANGER, OWNER)
    assert (await monitoring.get_anomaly_metrics(OWNER))["request_count"] == 1

    await monitoring.reset_anomaly_metrics(OPERATOR, OWNER)
    assert (await monitoring.get_anomaly_metrics(OWNER))["request_count"] == 0


async def test_update_thresholds(gateway, monitoring):
    with pytest.raises(AccessDenied):
        await monitoring.update_thresholds(OWNER, requests_per_hour=5)

    updated = await monitoring.update_thresholds(OPERATOR, requests_per_hour=5)

    assert updated["requests_per_hour"] == 5
    assert gateway.detector.thresholds.requests_per_hour == 5
    with pytest.raises(ValidationError):
        await monitoring.update_thresholds(OPERATOR, cost_per_day=-1)


async def test_cleanup_reports_both_stores(monitoring):
    result = await monitoring.cleanup(OPERATOR)
    assert result == {"removed_metrics": 0, "cleaned_count": 0, "remaining_users": 0, "purged_windows": 0}


async def test_cleanup_purges_expired_rate_limit_windows(gateway):
    clock = ManualClock()
    limiter = RateLimiter(InMemoryCounter(clock=clock))
    monitoring = MonitoringService(gateway.settings, gateway.tracker, gateway.detector, limiter)
    await limiter.allow("complete:owner", 5, 1_000)
    await limiter.allow("stream:owner", 5, 1_000)
    clock.advance(2_000)

    result = await monitoring.cleanup(OPERATOR)

    assert result["purged_windows"] == 2
