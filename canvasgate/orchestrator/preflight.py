"""Shared pre-flight pipeline for the synchronous and streaming paths.

Steps run in order and fail closed, cheapest first, so nothing touches the
network or decrypts a credential until the subject is authenticated,
within its rate limit, authorized and its input validated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from canvasgate.config import GatewaySettings
from canvasgate.exceptions import AccessDenied, AuthenticationRequired
from canvasgate.orchestrator.web_search import WebSearchPredicate
from canvasgate.providers import BaseProvider
from canvasgate.ratelimit import RateLimiter
from canvasgate.security import AccessControl, AccessLevel, ResourceType
from canvasgate.store import Board, GraphStore
from canvasgate.types import CompletionOptions, PreparedRequest
from canvasgate.validation import (
    clamp_max_tokens,
    validate_messages,
    validate_model_name,
    validate_provider_name,
    validate_resource_id,
    validate_temperature,
)
from canvasgate.vault import KeyVault

COMPLETE_OPERATION = "llm"
STREAM_OPERATION = "llm-stream"


@dataclass
class Preflight:
    subject_id: str
    board: Board
    request: PreparedRequest
    provider: BaseProvider
    response_node_id: str | None = None
    api_key: str = field(default="", repr=False)


class PreflightPipeline:
    def __init__(
        self,
        settings: GatewaySettings,
        store: GraphStore,
        acl: AccessControl,
        limiter: RateLimiter,
        vault: KeyVault,
        providers: Mapping[str, BaseProvider],
        web_search: WebSearchPredicate,
    ) -> None:
        self.settings = settings
        self.store = store
        self.acl = acl
        self.limiter = limiter
        self.vault = vault
        self.providers = providers
        self.web_search = web_search

    def _limit_for(self, operation: str) -> int:
        if operation == STREAM_OPERATION:
            return self.settings.stream_rate_limit
        return self.settings.complete_rate_limit

    async def run(
        self,
        subject_id: str | None,
        board_id: str,
        messages: Sequence[Any],
        options: CompletionOptions | None = None,
        *,
        operation: str = COMPLETE_OPERATION,
        response_node_id: str | None = None,
    ) -> Preflight:
        options = options or CompletionOptions()

        # 1. authenticate
        if not subject_id:
            raise AuthenticationRequired()

        # 2. rate limit per operation class
        await self.limiter.enforce(
            RateLimiter.key_for(operation, subject_id),
            self._limit_for(operation),
            self.settings.rate_limit_window_ms,
        )

        # 3. authorize at write level
        board_id = validate_resource_id(board_id, field="board_id")
        await self.acl.require_access(subject_id, ResourceType.BOARD, board_id, AccessLevel.WRITE, action="generate")
        board = await self.store.get_board(board_id)
        if board is None:
            raise AccessDenied(ResourceType.BOARD.value, board_id)
        if response_node_id is not None:
            response_node_id = validate_resource_id(response_node_id, field="response_node_id")
            node = await self.store.get_node(response_node_id)
            if node is None or node.board_id != board_id:
                raise AccessDenied(ResourceType.NODE.value, response_node_id)

        # 4. validate and normalize
        provider_name = validate_provider_name(
            options.provider or self.settings.default_provider, tuple(self.providers)
        )
        model = validate_model_name(options.model or self.settings.default_model)
        temperature = validate_temperature(
            options.temperature if options.temperature is not None else self.settings.default_temperature
        )
        max_tokens = clamp_max_tokens(
            options.max_tokens if options.max_tokens is not None else self.settings.default_max_tokens,
            self.settings.hard_max_tokens,
        )
        validated = validate_messages(messages)

        # 5. web-search hint
        web_search = bool(self.web_search(validated))

        # 6. resolve the credential last
        api_key = await self.vault.resolve_credential(subject_id, provider_name, board.default_credential_id)

        return Preflight(
            subject_id=subject_id,
            board=board,
            request=PreparedRequest(
                provider=provider_name,
                model=model,
                temperature=temperature,
                max_tokens=max_tokens,
                messages=validated,
                web_search=web_search,
            ),
            provider=self.providers[provider_name],
            response_node_id=response_node_id,
            api_key=api_key,
        )
