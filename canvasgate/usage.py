"""Append-only usage ledger.

Each orchestrator invocation writes exactly one UsageEvent, whether the
provider call succeeded or failed. Events are never updated.
"""

from typing import Optional

from canvasgate.observability.logging import get_logger
from canvasgate.store import GraphStore, UsageEvent

logger = get_logger(__name__)


class UsageRecorder:
    """Writes UsageEvents for billing and anomaly cost accrual."""

    def __init__(self, store: GraphStore):
        self.store = store

    async def record(
        self,
        subject_id: str,
        resource_id: str,
        provider: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
        cost: float,
        status: str,
        node_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Optional[UsageEvent]:
        """Insert a usage event.

        Args:
            subject_id: Subject billed for the request
            resource_id: Board the request ran against
            provider: Provider that served the request
            model: Model used
            input_tokens: Prompt tokens
            output_tokens: Completion tokens
            cost: Estimated cost in USD
            status: "success" or "failed"
            node_id: Response node, if any
            request_id: Tracking id of the request

        Returns:
            The stored event, or None if the store rejected the write
        """
        event = UsageEvent(
            subject_id=subject_id,
            resource_id=resource_id,
            provider=provider,
            model=model,
            input_tokens=max(0, int(input_tokens)),
            output_tokens=max(0, int(output_tokens)),
            cost_estimate=max(0.0, float(cost)),
            status="success" if status == "success" else "failed",
            node_id=node_id,
            request_id=request_id,
        )
        try:
            await self.store.insert_usage_event(event)
        except Exception as exc:
            # Runs inside the orchestrator's finally block; raising here would
            # mask the request's own outcome.
            logger.error("usage_record_failed", request_id=request_id, error=str(exc))
            return None

        logger.info(
            "usage_recorded",
            request_id=request_id,
            user_id=subject_id,
            provider=provider,
            model=model,
            input_tokens=event.input_tokens,
            output_tokens=event.output_tokens,
            cost=event.cost_estimate,
            status=event.status,
        )
        return event
