"""Completion request lifecycle.

Both entry points share the pre-flight pipeline and a finalization step
that runs from a ``finally`` block, so every invocation that reaches the
provider writes exactly one UsageEvent whatever the outcome.
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator, Mapping, Sequence

import anyio

from canvasgate.anomaly import ActivityType, AnomalyDetector
from canvasgate.config import GatewaySettings
from canvasgate.exceptions import GatewayError, StreamInterrupted, UpstreamProviderError
from canvasgate.nodes import NodeWriter
from canvasgate.observability import RequestStatus, RequestTracker, log_context
from canvasgate.observability.logging import get_logger, log_api_call, log_performance_metric
from canvasgate.orchestrator.preflight import (
    COMPLETE_OPERATION,
    STREAM_OPERATION,
    Preflight,
    PreflightPipeline,
)
from canvasgate.orchestrator.stream_writer import StreamPersistence
from canvasgate.orchestrator.web_search import LexicalWebSearchPredicate, WebSearchPredicate
from canvasgate.pricing import completion_cost
from canvasgate.providers import BaseProvider
from canvasgate.ratelimit import RateLimiter
from canvasgate.security import AccessControl
from canvasgate.store import GraphStore
from canvasgate.token_counter import usage_or_estimate
from canvasgate.types import CompletionOptions, CompletionResult, StreamChunk, TokenUsage
from canvasgate.usage import UsageRecorder
from canvasgate.vault import KeyVault

logger = get_logger(__name__)


@dataclass
class _Outcome:
    """Mutable record of what happened, read by the finalizer."""

    subject_id: str | None
    board_id: str
    node_id: str | None = None
    provider: str | None = None
    model: str | None = None
    reached_provider: bool = False
    upstream_failed: bool = False
    succeeded: bool = False
    input_tokens: int = 0
    output_tokens: int = 0
    error: str | None = None


class CompletionOrchestrator:
    def __init__(
        self,
        settings: GatewaySettings,
        store: GraphStore,
        acl: AccessControl,
        limiter: RateLimiter,
        vault: KeyVault,
        providers: Mapping[str, BaseProvider],
        usage: UsageRecorder,
        tracker: RequestTracker,
        detector: AnomalyDetector,
        nodes: NodeWriter | None = None,
        web_search: WebSearchPredicate | None = None,
    ) -> None:
        self.settings = settings
        self.usage = usage
        self.tracker = tracker
        self.detector = detector
        self.nodes = nodes or NodeWriter(store)
        self.preflight = PreflightPipeline(
            settings=settings,
            store=store,
            acl=acl,
            limiter=limiter,
            vault=vault,
            providers=providers,
            web_search=web_search or LexicalWebSearchPredicate(),
        )

    async def complete(
        self,
        subject_id: str | None,
        board_id: str,
        messages: Sequence[Any],
        options: CompletionOptions | None = None,
        *,
        response_node_id: str | None = None,
    ) -> CompletionResult:
        request_id = await self.tracker.start_tracking("complete", subject_id)
        outcome = _Outcome(subject_id=subject_id, board_id=board_id)
        try:
            with log_context(request_id=request_id):
                pre = await self.preflight.run(
                    subject_id,
                    board_id,
                    messages,
                    options,
                    operation=COMPLETE_OPERATION,
                    response_node_id=response_node_id,
                )
                self._begin(outcome, pre)
                try:
                    response = await pre.provider.complete(pre.request, pre.api_key)
                finally:
                    pre.api_key = ""

                usage = usage_or_estimate(response.usage, pre.request.messages, response.text, pre.request.model)
                self._apply_usage(outcome, usage)
                outcome.succeeded = True

                if pre.response_node_id:
                    await self._final_node_write(pre, response.text, usage)

                return CompletionResult(
                    request_id=request_id,
                    text=response.text,
                    provider=pre.request.provider,
                    model=pre.request.model,
                    usage=usage,
                    cost_estimate=self._cost(outcome),
                    web_search=pre.request.web_search,
                )
        except BaseException as exc:
            outcome.error = _summarize(exc)
            if outcome.reached_provider and not outcome.succeeded:
                # Upstream failures are billed as zero-token failed events.
                outcome.upstream_failed = True
                outcome.input_tokens = outcome.output_tokens = 0
            raise
        finally:
            with anyio.CancelScope(shield=True):
                await self._finalize(request_id, outcome)

    async def complete_stream(
        self,
        subject_id: str | None,
        board_id: str,
        messages: Sequence[Any],
        options: CompletionOptions | None = None,
        *,
        response_node_id: str | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a completion.

        Yields chunks with ``delta`` and the accumulated ``text``; the last
        chunk has ``finished`` set and carries the final usage. If the
        consumer stops early or the task is cancelled, the provider stream
        is closed, the response node gets the text received so far, and a
        failed UsageEvent is written with the tokens seen so far. Sides the
        provider did not report are estimated with tiktoken.
        """
        request_id = await self.tracker.start_tracking("complete_stream", subject_id)
        outcome = _Outcome(subject_id=subject_id, board_id=board_id)
        pre: Preflight | None = None
        persistence: StreamPersistence | None = None
        text_parts: list[str] = []
        reported = TokenUsage()
        try:
            pre = await self.preflight.run(
                subject_id,
                board_id,
                messages,
                options,
                operation=STREAM_OPERATION,
                response_node_id=response_node_id,
            )
            self._begin(outcome, pre)

            if pre.response_node_id:
                node_id, model = pre.response_node_id, pre.request.model

                async def write_partial(text: str) -> None:
                    await self.nodes.update_response_node_stream(node_id, text, model)

                persistence = StreamPersistence(
                    write_partial,
                    min_chunks=self.settings.stream_persist_min_chunks,
                    interval_ms=self.settings.stream_persist_interval_ms,
                )

            stream = pre.provider.complete_stream(pre.request, pre.api_key)
            pre.api_key = ""
            async with aclosing(stream):
                async for chunk in stream:
                    if chunk.usage is not None:
                        reported = _merge_usage(reported, chunk.usage)
                    if chunk.delta:
                        text_parts.append(chunk.delta)
                        text = "".join(text_parts)
                        if persistence is not None:
                            persistence.offer(text)
                        yield StreamChunk(delta=chunk.delta, text=text)

            final_text = "".join(text_parts)
            final_usage = usage_or_estimate(reported, pre.request.messages, final_text, pre.request.model)
            self._apply_usage(outcome, final_usage)
            outcome.succeeded = True

            if persistence is not None:
                await persistence.aclose()
                persistence = None
                await self._final_node_write(pre, final_text, final_usage)

            yield StreamChunk(text=final_text, usage=final_usage, finished=True)
        except GeneratorExit:
            # Closing after the final chunk was delivered is a normal finish.
            if not outcome.succeeded:
                outcome.error = "cancelled"
            raise
        except BaseException as exc:
            outcome.succeeded = False
            outcome.error = _summarize(exc)
            if isinstance(exc, UpstreamProviderError) and not isinstance(exc, StreamInterrupted):
                outcome.upstream_failed = True
            raise
        finally:
            # A cancelled consumer's scope keeps cancelling every await, so
            # closing persistence and billing run shielded.
            with anyio.CancelScope(shield=True):
                partial_text = "".join(text_parts)
                if pre is not None and not outcome.succeeded:
                    if outcome.upstream_failed:
                        self._apply_usage(outcome, TokenUsage())
                    else:
                        self._apply_usage(
                            outcome,
                            usage_or_estimate(reported, pre.request.messages, partial_text, pre.request.model),
                        )
                if persistence is not None:
                    await persistence.aclose()
                    if partial_text:
                        usage = TokenUsage(input_tokens=outcome.input_tokens, output_tokens=outcome.output_tokens)
                        await self._final_node_write(pre, partial_text, usage)
                await self._finalize(request_id, outcome)

    def _begin(self, outcome: _Outcome, pre: Preflight) -> None:
        outcome.provider = pre.request.provider
        outcome.model = pre.request.model
        outcome.node_id = pre.response_node_id
        outcome.reached_provider = True

    @staticmethod
    def _apply_usage(outcome: _Outcome, usage: TokenUsage) -> None:
        outcome.input_tokens = usage.input_tokens
        outcome.output_tokens = usage.output_tokens

    async def _final_node_write(self, pre: Preflight, text: str, usage: TokenUsage) -> None:
        try:
            await self.nodes.update_response_node(pre.response_node_id, text, pre.request.model, usage)
        except Exception as exc:
            # Only the display copy is lost; billing still runs.
            logger.warning("response_node_write_failed", error=str(exc))

    def _cost(self, outcome: _Outcome) -> float:
        if not outcome.provider or not outcome.model:
            return 0.0
        return completion_cost(outcome.provider, outcome.model, outcome.input_tokens, outcome.output_tokens)

    async def _finalize(self, request_id: str, outcome: _Outcome) -> None:
        cost = self._cost(outcome)
        tokens = outcome.input_tokens + outcome.output_tokens

        metric = await self.tracker.complete_tracking(
            request_id,
            RequestStatus.COMPLETED if outcome.succeeded else RequestStatus.FAILED,
            tokens=tokens,
            cost=cost,
            error_summary=outcome.error,
        )
        duration_ms = metric.duration_ms if metric is not None else None

        if outcome.reached_provider and outcome.subject_id:
            await self.usage.record(
                subject_id=outcome.subject_id,
                resource_id=outcome.board_id,
                provider=outcome.provider,
                model=outcome.model,
                input_tokens=outcome.input_tokens,
                output_tokens=outcome.output_tokens,
                cost=cost,
                status="success" if outcome.succeeded else "failed",
                node_id=outcome.node_id,
                request_id=request_id,
            )
            log_api_call(
                outcome.provider,
                outcome.model,
                user_id=outcome.subject_id,
                input_tokens=outcome.input_tokens,
                output_tokens=outcome.output_tokens,
                cost=cost,
                duration_ms=duration_ms,
                success=outcome.succeeded,
                error=outcome.error,
            )
            if duration_ms is not None:
                log_performance_metric(
                    "completion_latency",
                    duration_ms,
                    "ms",
                    provider=outcome.provider,
                    model=outcome.model,
                    status="success" if outcome.succeeded else "failed",
                )

        if outcome.subject_id:
            try:
                await self.detector.track_activity(outcome.subject_id, ActivityType.REQUEST, cost)
            except Exception:
                logger.exception("anomaly_tracking_failed", request_id=request_id)


def _merge_usage(current: TokenUsage, update: TokenUsage) -> TokenUsage:
    # Providers report usage incrementally; later non-zero values win.
    return TokenUsage(
        input_tokens=update.input_tokens or current.input_tokens,
        output_tokens=update.output_tokens or current.output_tokens,
    )


def _summarize(exc: BaseException) -> str:
    if isinstance(exc, GatewayError):
        return f"{exc.type}: {exc.code}"
    if isinstance(exc, (GeneratorExit, asyncio.CancelledError)):
        return "cancelled"
    return type(exc).__name__
