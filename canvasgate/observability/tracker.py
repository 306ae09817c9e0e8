"""Per-request lifecycle tracking.

A RequestMetric is created when a request starts, completed exactly once,
and purged once it is older than the retention window.
"""

import asyncio
import secrets
import string
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from canvasgate.observability.logging import display_user_id, get_logger, truncate

logger = get_logger(__name__)

COMPLETION_ERROR_LENGTH = 100
_ID_ALPHABET = string.ascii_lowercase + string.digits


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_request_id(clock: Callable[[], int] = now_ms) -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"req_{clock()}_{suffix}"


class RequestStatus(str, Enum):
    """Request status enum."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RequestMetric:
    """Lifecycle record of one request.

    Attributes:
        request_id: Unique request ID
        subject_id: Subject that made the request, if authenticated
        operation: Logical operation name (e.g. "complete", "complete_stream")
        start_time_ms: Start timestamp in epoch milliseconds
        end_time_ms: Completion timestamp
        duration_ms: Wall time between start and completion
        token_count: Total tokens consumed
        cost: Estimated cost in USD
        status: pending until completed, then completed or failed
        error_summary: Truncated error description for failed requests
    """

    request_id: str
    subject_id: Optional[str]
    operation: str
    start_time_ms: int
    end_time_ms: Optional[int] = None
    duration_ms: Optional[int] = None
    token_count: Optional[int] = None
    cost: Optional[float] = None
    status: RequestStatus = RequestStatus.PENDING
    error_summary: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "operation": self.operation,
            "start_time_ms": self.start_time_ms,
            "duration_ms": self.duration_ms,
            "token_count": self.token_count,
            "cost": self.cost,
            "status": self.status.value,
            "error": self.error_summary,
        }


class RequestTracker:
    """In-process store of RequestMetrics with structured completion logs."""

    def __init__(self, retention_hours: int = 24, clock: Callable[[], int] = now_ms) -> None:
        self.retention_ms = retention_hours * 3_600_000
        self.clock = clock
        self._metrics: dict[str, RequestMetric] = {}
        self._lock = asyncio.Lock()

    async def start_tracking(self, operation: str, subject_id: Optional[str] = None) -> str:
        request_id = generate_request_id(self.clock)
        async with self._lock:
            self._metrics[request_id] = RequestMetric(
                request_id=request_id,
                subject_id=subject_id,
                operation=operation,
                start_time_ms=self.clock(),
            )
        logger.debug("request_started", request_id=request_id, operation=operation, user_id=subject_id)
        return request_id

    async def complete_tracking(
        self,
        request_id: str,
        status: RequestStatus = RequestStatus.COMPLETED,
        tokens: Optional[int] = None,
        cost: Optional[float] = None,
        error_summary: Optional[str] = None,
    ) -> Optional[RequestMetric]:
        """Complete a pending metric. Unknown or already completed ids are ignored."""
        async with self._lock:
            metric = self._metrics.get(request_id)
            if metric is None or metric.status is not RequestStatus.PENDING:
                return None
            end = self.clock()
            metric.end_time_ms = end
            metric.duration_ms = end - metric.start_time_ms
            metric.status = RequestStatus(status)
            metric.token_count = tokens
            metric.cost = cost
            metric.error_summary = (
                truncate(error_summary, COMPLETION_ERROR_LENGTH) if error_summary else None
            )

        log = logger.info if metric.status is RequestStatus.COMPLETED else logger.warning
        log(
            "request_completed",
            request_id=request_id,
            user_id=metric.subject_id,
            operation=metric.operation,
            duration_ms=metric.duration_ms,
            token_count=tokens,
            cost=cost,
            status=metric.status.value,
            error=metric.error_summary,
        )
        return metric

    async def get(self, request_id: str) -> Optional[RequestMetric]:
        return self._metrics.get(request_id)

    async def get_request_metrics(self, subject_id: str, limit: int = 100) -> list[dict[str, Any]]:
        """The subject's own metrics, newest first."""
        limit = max(1, min(int(limit), 1000))
        own = [m for m in self._metrics.values() if m.subject_id == subject_id]
        own.sort(key=lambda m: m.start_time_ms, reverse=True)
        return [m.to_dict() for m in own[:limit]]

    async def get_user_activity(self, subject_id: str) -> dict[str, Any]:
        own = [m for m in self._metrics.values() if m.subject_id == subject_id]
        by_status = {status.value: 0 for status in RequestStatus}
        by_operation: dict[str, int] = {}
        for metric in own:
            by_status[metric.status.value] += 1
            by_operation[metric.operation] = by_operation.get(metric.operation, 0) + 1
        return {
            "user_id": display_user_id(subject_id),
            "request_count": len(own),
            "by_status": by_status,
            "by_operation": by_operation,
            "total_tokens": sum(m.token_count or 0 for m in own),
            "total_cost": round(sum(m.cost or 0.0 for m in own), 10),
            "last_request_ms": max((m.start_time_ms for m in own), default=None),
        }

    async def get_system_metrics(self) -> dict[str, Any]:
        metrics = list(self._metrics.values())
        finished = [m for m in metrics if m.status is not RequestStatus.PENDING]
        failed = sum(1 for m in finished if m.status is RequestStatus.FAILED)
        durations = [m.duration_ms for m in finished if m.duration_ms is not None]
        return {
            "total_requests": len(metrics),
            "pending_requests": len(metrics) - len(finished),
            "failed_requests": failed,
            "error_rate": round(failed / len(finished), 4) if finished else 0.0,
            "avg_duration_ms": round(sum(durations) / len(durations), 2) if durations else None,
            "active_users": len({m.subject_id for m in metrics if m.subject_id}),
            "total_cost": round(sum(m.cost or 0.0 for m in metrics), 10),
        }

    async def cleanup_old_metrics(self) -> int:
        """Drop metrics that started before the retention horizon."""
        cutoff = self.clock() - self.retention_ms
        async with self._lock:
            stale = [rid for rid, m in self._metrics.items() if m.start_time_ms < cutoff]
            for request_id in stale:
                del self._metrics[request_id]
        logger.info("metrics_cleaned", removed=len(stale), remaining=len(self._metrics))
        return len(stale)
