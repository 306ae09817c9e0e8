"""Per-subject behavioral anomaly detection.

Each subject gets a SubjectActivityWindow, created lazily on first activity.
Hourly counters (requests, exports, failed auth) open a window on their
first event and reset once that window is older than an hour; the daily cost
accumulator does the same with a 24 hour window.

Thresholds are strict greater-than and are evaluated after every update, so
an alert fires again on each update while the condition persists.
Instrumentation never gates a request.
"""

from __future__ import annotations

import asyncio
import time
import zlib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Callable, Iterable

from pydantic import ValidationError as PydanticValidationError

from canvasgate.config import AnomalyThresholds
from canvasgate.exceptions import ValidationError
from canvasgate.observability.logging import display_user_id, get_logger, log_security_event

logger = get_logger(__name__)

HOUR_MS = 3_600_000
DAY_MS = 24 * HOUR_MS


def now_ms() -> int:
    return int(time.time() * 1000)


class ActivityType(str, Enum):
    REQUEST = "request"
    EXPORT = "export"
    AUTH_FAILURE = "auth_failure"
    SESSION_START = "session_start"
    SESSION_END = "session_end"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class SubjectActivityWindow:
    subject_id: str
    request_count: int = 0
    last_request_at: int = 0
    hourly_request_count: int = 0
    hourly_window_start: int = 0
    daily_cost: float = 0.0
    daily_window_start: int = 0
    export_count: int = 0
    export_window_start: int = 0
    failed_auth_count: int = 0
    last_failed_auth_at: int = 0
    concurrent_sessions: int = 0
    last_activity_at: int = 0

    def summary(self) -> dict[str, Any]:
        return {
            "user_id": display_user_id(self.subject_id),
            "request_count": self.request_count,
            "hourly_requests": self.hourly_request_count,
            "daily_cost": round(self.daily_cost, 10),
            "export_count": self.export_count,
            "failed_auth_attempts": self.failed_auth_count,
            "concurrent_sessions": self.concurrent_sessions,
            "last_activity_ms": self.last_activity_at or None,
        }


@dataclass(frozen=True)
class SecurityAlert:
    kind: str
    subject_id: str
    metric: str
    value: float
    threshold: float
    severity: Severity
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


AlertSink = Callable[[SecurityAlert], None]


class AnomalyDetector:
    """Rolling per-subject counters evaluated against configurable thresholds."""

    def __init__(
        self,
        thresholds: AnomalyThresholds | None = None,
        retention_hours: int = 24,
        clock: Callable[[], int] = now_ms,
        shards: int = 64,
        sinks: Iterable[AlertSink] = (),
    ) -> None:
        self.thresholds = thresholds or AnomalyThresholds()
        self.retention_ms = retention_hours * HOUR_MS
        self.clock = clock
        self.sinks = list(sinks)
        self._windows: dict[str, SubjectActivityWindow] = {}
        self._locks = [asyncio.Lock() for _ in range(shards)]

    def _lock_for(self, subject_id: str) -> asyncio.Lock:
        return self._locks[zlib.crc32(subject_id.encode("utf-8")) % len(self._locks)]

    async def track_activity(
        self,
        subject_id: str,
        activity_type: ActivityType | str,
        cost: float = 0.0,
    ) -> list[SecurityAlert]:
        """Update the subject's window and return any alerts raised."""
        activity_type = ActivityType(activity_type)
        async with self._lock_for(subject_id):
            now = self.clock()
            window = self._windows.get(subject_id)
            if window is None:
                window = SubjectActivityWindow(subject_id=subject_id, last_activity_at=now)
                self._windows[subject_id] = window

            self._roll_windows(window, now)
            self._apply(window, activity_type, cost, now)
            window.last_activity_at = now
            alerts = self.check_anomalies(window)

        for alert in alerts:
            self._emit(alert)
        return alerts

    @staticmethod
    def _roll_windows(window: SubjectActivityWindow, now: int) -> None:
        if now - window.hourly_window_start > HOUR_MS:
            window.hourly_request_count = 0
            window.hourly_window_start = now
        if now - window.daily_window_start > DAY_MS:
            window.daily_cost = 0.0
            window.daily_window_start = now
        if now - window.export_window_start > HOUR_MS:
            window.export_count = 0
            window.export_window_start = now
        if window.failed_auth_count and now - window.last_failed_auth_at > HOUR_MS:
            window.failed_auth_count = 0

    @staticmethod
    def _apply(window: SubjectActivityWindow, activity_type: ActivityType, cost: float, now: int) -> None:
        if activity_type is ActivityType.REQUEST:
            window.request_count += 1
            window.hourly_request_count += 1
            window.last_request_at = now
            if cost and cost > 0:
                window.daily_cost += cost
        elif activity_type is ActivityType.EXPORT:
            window.export_count += 1
        elif activity_type is ActivityType.AUTH_FAILURE:
            window.failed_auth_count += 1
            window.last_failed_auth_at = now
        elif activity_type is ActivityType.SESSION_START:
            window.concurrent_sessions += 1
        elif activity_type is ActivityType.SESSION_END:
            window.concurrent_sessions = max(0, window.concurrent_sessions - 1)

    def check_anomalies(self, window: SubjectActivityWindow) -> list[SecurityAlert]:
        t = self.thresholds
        checks = [
            ("high_request_rate", "request_rate", window.hourly_request_count, t.requests_per_hour,
             Severity.HIGH, "High request rate detected"),
            ("high_export_rate", "export_rate", window.export_count, t.exports_per_hour,
             Severity.MEDIUM, "High export rate detected"),
            ("high_daily_cost", "daily_cost", round(window.daily_cost, 10), t.cost_per_day,
             Severity.HIGH, "High daily cost detected"),
            ("multiple_auth_failures", "failed_auth", window.failed_auth_count, t.failed_auth_attempts,
             Severity.HIGH, "Multiple failed authentication attempts"),
            ("multiple_concurrent_sessions", "concurrent_sessions", window.concurrent_sessions,
             t.concurrent_sessions, Severity.MEDIUM, "Multiple concurrent sessions detected"),
        ]
        return [
            SecurityAlert(
                kind=kind,
                subject_id=window.subject_id,
                metric=metric,
                value=value,
                threshold=threshold,
                severity=severity,
                message=message,
            )
            for kind, metric, value, threshold, severity, message in checks
            if value > threshold
        ]

    def _emit(self, alert: SecurityAlert) -> None:
        log_security_event(
            alert.kind,
            alert.severity.value,
            user_id=alert.subject_id,
            metric=alert.metric,
            value=alert.value,
            threshold=alert.threshold,
        )
        for sink in self.sinks:
            try:
                sink(alert)
            except Exception:
                logger.exception("alert_sink_failed", kind=alert.kind)

    async def get_user_metrics(self, subject_id: str) -> dict[str, Any]:
        window = self._windows.get(subject_id)
        if window is None:
            return SubjectActivityWindow(subject_id=subject_id).summary()
        return window.summary()

    async def get_system_metrics(self) -> dict[str, Any]:
        windows = list(self._windows.values())
        t = self.thresholds
        high_activity = [
            {
                "user_id": display_user_id(w.subject_id),
                "hourly_requests": w.hourly_request_count,
                "daily_cost": round(w.daily_cost, 10),
                "export_count": w.export_count,
            }
            for w in windows
            if w.hourly_request_count > t.requests_per_hour
            or w.daily_cost > t.cost_per_day
            or w.export_count > t.exports_per_hour
        ]
        return {
            "total_users": len(windows),
            "total_requests": sum(w.request_count for w in windows),
            "total_cost": round(sum(w.daily_cost for w in windows), 10),
            "total_exports": sum(w.export_count for w in windows),
            "high_activity_users": high_activity,
            "thresholds": self.thresholds.model_dump(),
        }

    async def reset_user_metrics(self, subject_id: str) -> None:
        async with self._lock_for(subject_id):
            self._windows.pop(subject_id, None)

    def update_thresholds(self, **changes: Any) -> AnomalyThresholds:
        """Replace thresholds; unknown or ``None`` values are ignored."""
        current = self.thresholds.model_dump()
        current.update({k: v for k, v in changes.items() if v is not None and k in current})
        try:
            self.thresholds = AnomalyThresholds.model_validate(current)
        except PydanticValidationError as exc:
            raise ValidationError("invalid anomaly thresholds", field="thresholds") from exc
        logger.info("anomaly_thresholds_updated", **self.thresholds.model_dump())
        return self.thresholds

    async def cleanup(self) -> dict[str, int]:
        """Drop windows idle for longer than the retention horizon."""
        cutoff = self.clock() - self.retention_ms
        stale = [sid for sid, w in self._windows.items() if w.last_activity_at < cutoff]
        cleaned = 0
        for subject_id in stale:
            async with self._lock_for(subject_id):
                window = self._windows.get(subject_id)
                if window is not None and window.last_activity_at < cutoff:
                    del self._windows[subject_id]
                    cleaned += 1
        logger.info("anomaly_windows_cleaned", removed=cleaned, remaining=len(self._windows))
        return {"cleaned_count": cleaned, "remaining_users": len(self._windows)}

