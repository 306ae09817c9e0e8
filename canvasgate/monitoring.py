"""Operator-facing metrics and anomaly controls.

Every call is authenticated. Subjects may read their own metrics and reset
their own anomaly counters; system-wide views, threshold changes, purges
and resetting someone else's counters require an operator.
"""

from __future__ import annotations

from typing import Any

from canvasgate.anomaly import AnomalyDetector
from canvasgate.config import GatewaySettings
from canvasgate.exceptions import AccessDenied, AuthenticationRequired
from canvasgate.observability import RequestTracker
from canvasgate.observability.logging import get_logger, log_security_event
from canvasgate.ratelimit import RateLimiter

logger = get_logger(__name__)


class MonitoringService:
    def __init__(
        self,
        settings: GatewaySettings,
        tracker: RequestTracker,
        detector: AnomalyDetector,
        limiter: RateLimiter | None = None,
    ) -> None:
        self.settings = settings
        self.tracker = tracker
        self.detector = detector
        self.limiter = limiter

    def is_operator(self, subject_id: str | None) -> bool:
        return bool(subject_id) and subject_id in self.settings.operator_ids

    def _require_subject(self, subject_id: str | None) -> str:
        if not subject_id:
            raise AuthenticationRequired()
        return subject_id

    def require_operator(self, subject_id: str | None, action: str) -> str:
        subject_id = self._require_subject(subject_id)
        if not self.is_operator(subject_id):
            log_security_event("operator_access_denied", "medium", user_id=subject_id, action=action)
            raise AccessDenied("operator", action)
        return subject_id

    async def get_request_metrics(self, subject_id: str | None, limit: int = 100) -> list[dict[str, Any]]:
        return await self.tracker.get_request_metrics(self._require_subject(subject_id), limit)

    async def get_user_activity(self, subject_id: str | None) -> dict[str, Any]:
        return await self.tracker.get_user_activity(self._require_subject(subject_id))

    async def get_anomaly_metrics(self, subject_id: str | None) -> dict[str, Any]:
        return await self.detector.get_user_metrics(self._require_subject(subject_id))

    async def reset_anomaly_metrics(self, subject_id: str | None, target_subject_id: str | None = None) -> None:
        subject_id = self._require_subject(subject_id)
        target = target_subject_id or subject_id
        if target != subject_id:
            self.require_operator(subject_id, "reset_anomaly_metrics")
        await self.detector.reset_user_metrics(target)
        logger.info("anomaly_metrics_reset", user_id=subject_id, target_user_id=target)

    async def get_system_metrics(self, subject_id: str | None) -> dict[str, Any]:
        self.require_operator(subject_id, "system_metrics")
        return {
            "requests": await self.tracker.get_system_metrics(),
            "anomaly": await self.detector.get_system_metrics(),
        }

    async def update_thresholds(self, subject_id: str | None, **changes: Any) -> dict[str, Any]:
        subject_id = self.require_operator(subject_id, "update_thresholds")
        thresholds = self.detector.update_thresholds(**changes)
        logger.info("thresholds_changed_by_operator", user_id=subject_id)
        return thresholds.model_dump()

    async def cleanup(self, subject_id: str | None) -> dict[str, int]:
        self.require_operator(subject_id, "cleanup")
        removed = await self.tracker.cleanup_old_metrics()
        activity = await self.detector.cleanup()
        purged = self.limiter.purge_expired() if self.limiter is not None else 0
        return {"removed_metrics": removed, **activity, "purged_windows": purged}
