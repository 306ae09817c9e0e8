"""Request tracking and privacy-redacted structured logging."""

from .logging import configure_logging, display_user_id, get_logger, log_context
from .tracker import RequestMetric, RequestStatus, RequestTracker, generate_request_id

__all__ = [
    "RequestMetric",
    "RequestStatus",
    "RequestTracker",
    "configure_logging",
    "display_user_id",
    "generate_request_id",
    "get_logger",
    "log_context",
]
