"""Service container wiring every gateway component from settings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx
from redis.asyncio import Redis

from canvasgate.anomaly import AnomalyDetector
from canvasgate.config import GatewaySettings
from canvasgate.monitoring import MonitoringService
from canvasgate.nodes import NodeWriter
from canvasgate.observability import RequestTracker, get_logger
from canvasgate.observability.logging import ensure_redaction
from canvasgate.orchestrator import CompletionOrchestrator, WebSearchPredicate
from canvasgate.providers import BaseProvider, ProviderRegistry
from canvasgate.ratelimit import CounterBackend, InMemoryCounter, RateLimiter, RedisCounter
from canvasgate.security import AccessControl, AuditLogger
from canvasgate.shares import ShareService
from canvasgate.store import GraphStore, InMemoryGraphStore
from canvasgate.usage import UsageRecorder
from canvasgate.vault import EncryptionManager, KeyVault

logger = get_logger(__name__)


def build_providers(
    settings: GatewaySettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[str, BaseProvider]:
    base_urls = {
        "openai": settings.openai_base_url,
        "anthropic": settings.anthropic_base_url,
        "google": settings.google_base_url,
    }
    providers: dict[str, BaseProvider] = {}
    for name in ProviderRegistry.list_providers():
        provider_cls = ProviderRegistry.get(name)
        providers[name] = provider_cls(
            api_base=base_urls.get(name),
            timeout=settings.upstream_timeout,
            transport=transport,
        )
    return providers


@dataclass
class Gateway:
    settings: GatewaySettings
    store: GraphStore
    audit: AuditLogger
    acl: AccessControl
    limiter: RateLimiter
    cipher: EncryptionManager
    providers: dict[str, BaseProvider]
    vault: KeyVault
    usage: UsageRecorder
    tracker: RequestTracker
    detector: AnomalyDetector
    nodes: NodeWriter
    orchestrator: CompletionOrchestrator
    shares: ShareService
    monitoring: MonitoringService
    redis: Any = None

    @classmethod
    def build(
        cls,
        settings: GatewaySettings,
        *,
        store: GraphStore | None = None,
        counter: CounterBackend | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        web_search: WebSearchPredicate | None = None,
    ) -> "Gateway":
        """Build a gateway.

        Args:
            settings: Gateway settings
            store: Graph store; defaults to an in-memory store
            counter: Rate-limit counter; defaults to Redis when ``redis_url``
                is configured, otherwise in-process
            transport: Optional httpx transport shared by every provider
            web_search: Override for the web-search predicate
        """
        ensure_redaction(settings.log_json)
        if not settings.jwt_secret:
            logger.warning("jwt_secret_not_configured", effect="bearer tokens will be rejected")
        store = store or InMemoryGraphStore()
        redis_client = None
        if counter is None:
            if settings.redis_url:
                redis_client = Redis.from_url(settings.redis_url, decode_responses=True)
                counter = RedisCounter(redis_client)
            else:
                counter = InMemoryCounter()

        audit = AuditLogger(store)
        acl = AccessControl(store, audit=audit)
        limiter = RateLimiter(counter)
        cipher = EncryptionManager(settings.encryption_key, settings.previous_encryption_keys)
        providers = build_providers(settings, transport)
        vault = KeyVault(store, cipher, acl, settings, providers)
        usage = UsageRecorder(store)
        tracker = RequestTracker(retention_hours=settings.metrics_retention_hours)
        detector = AnomalyDetector(
            thresholds=settings.anomaly_thresholds,
            retention_hours=settings.activity_retention_hours,
        )
        nodes = NodeWriter(store)
        orchestrator = CompletionOrchestrator(
            settings=settings,
            store=store,
            acl=acl,
            limiter=limiter,
            vault=vault,
            providers=providers,
            usage=usage,
            tracker=tracker,
            detector=detector,
            nodes=nodes,
            web_search=web_search,
        )
        logger.info(
            "gateway_built",
            providers=sorted(providers),
            rate_limit_backend=type(counter).__name__,
        )
        return cls(
            settings=settings,
            store=store,
            audit=audit,
            acl=acl,
            limiter=limiter,
            cipher=cipher,
            providers=providers,
            vault=vault,
            usage=usage,
            tracker=tracker,
            detector=detector,
            nodes=nodes,
            orchestrator=orchestrator,
            shares=ShareService(store, acl),
            monitoring=MonitoringService(settings, tracker, detector, limiter),
            redis=redis_client,
        )

    async def aclose(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()
