"""
Structured, privacy-redacted logging with structlog.

Every event passes through ``redact_event`` before rendering, so no secret,
full subject identifier or raw user content reaches the log sink:

- identifier fields are reduced to ``user_`` plus their last 8 characters
- ``error`` and ``exception`` fields are cut to 200 characters
- fields whose name contains a sensitive word are dropped
- other strings are cut to 100 characters
- dicts, lists and arbitrary objects become ``"[object]"``
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

MAX_ERROR_LENGTH = 200
MAX_STRING_LENGTH = 100
OBJECT_PLACEHOLDER = "[object]"

SENSITIVE_WORDS = frozenset(
    {
        "password",
        "token",
        "key",
        "secret",
        "auth",
        "authorization",
        "credential",
        "email",
        "phone",
        "ssn",
        "personal",
        "private",
        "content",
        "messages",
        "plaintext",
    }
)
IDENTITY_FIELDS = frozenset({"user_id", "subject_id", "owner_id", "target_user_id"})
PASSTHROUGH_FIELDS = frozenset({"event", "level", "logger", "timestamp"})
ERROR_FIELDS = frozenset({"error", "exception", "error_summary"})


def display_user_id(user_id: Optional[str]) -> Optional[str]:
    """Non-reversible display form of a subject identifier."""
    if user_id is None:
        return None
    return f"user_{str(user_id)[-8:]}"


def truncate(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    return value[:limit] + "..."


def is_sensitive_field(name: str) -> bool:
    # Match whole underscore-separated words so counters like input_tokens survive.
    return any(part in SENSITIVE_WORDS for part in name.lower().split("_"))


def redact_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return truncate(value, MAX_STRING_LENGTH)
    return OBJECT_PLACEHOLDER


def redact_event(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """structlog processor applying the redaction rules to every event."""
    redacted: EventDict = {}
    for name, value in event_dict.items():
        if name in PASSTHROUGH_FIELDS:
            redacted[name] = value
        elif name in IDENTITY_FIELDS:
            redacted[name] = display_user_id(value) if value is not None else None
        elif name in ERROR_FIELDS:
            redacted[name] = truncate(str(value), MAX_ERROR_LENGTH) if value is not None else None
        elif is_sensitive_field(name):
            continue
        else:
            redacted[name] = redact_value(value)
    return redacted


def _configure_structlog(json_logs: bool) -> None:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        redact_event,
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    # Not cached, so loggers created at import pick up a later reconfiguration.
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """Configure stdlib logging and structlog with the redaction chain."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    _configure_structlog(json_logs)


def redaction_installed() -> bool:
    return redact_event in structlog.get_config()["processors"]


def ensure_redaction(json_logs: bool = True) -> None:
    """Install the redaction chain unless structlog already runs it.

    Leaves stdlib handlers alone, so an embedding application keeps its own.
    """
    if not redaction_installed():
        _configure_structlog(json_logs)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance, installing redaction if nobody has.

    Usage:
        logger = get_logger(__name__)
        logger.info("completion_started", request_id=request_id, user_id=user_id)
    """
    ensure_redaction()
    return structlog.get_logger(name)  # type: ignore[no-any-return]


class log_context:
    """
    Context manager binding structured fields for every log line inside it.

    Usage:
        with log_context(request_id="req_1", user_id="abc"):
            logger.info("processing_request")
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs

    def __enter__(self) -> None:
        structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())


_logger = get_logger("canvasgate")


def log_api_call(
    provider: str,
    model: str,
    user_id: Optional[str] = None,
    input_tokens: Optional[int] = None,
    output_tokens: Optional[int] = None,
    cost: Optional[float] = None,
    duration_ms: Optional[float] = None,
    success: bool = True,
    error: Optional[str] = None,
) -> None:
    fields = dict(
        provider=provider,
        model=model,
        user_id=user_id,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cost=cost,
        duration_ms=duration_ms,
    )
    if success:
        _logger.info("api_call", **fields)
    else:
        _logger.error("api_call_failed", error=error, **fields)


def log_user_action(
    action: str,
    user_id: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    **metadata: Any,
) -> None:
    _logger.info(
        "user_action",
        action=action,
        user_id=user_id,
        resource_type=resource_type,
        resource_id=resource_id,
        **metadata,
    )


def log_security_event(event_type: str, severity: str, user_id: Optional[str] = None, **details: Any) -> None:
    """Emit a security event; ``high`` severity is logged at error level."""
    log = _logger.error if severity == "high" else _logger.warning
    log("security_event", event_type=event_type, severity=severity, user_id=user_id, **details)


def log_performance_metric(metric_name: str, value: float, unit: str, **metadata: Any) -> None:
    _logger.info("performance_metric", metric=metric_name, value=value, unit=unit, **metadata)
