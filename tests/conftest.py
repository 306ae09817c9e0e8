from __future__ import annotations

import json
from typing import Any

import httpx
import jwt
import pytest
from fastapi import FastAPI

from canvasgate.config import GatewaySettings
from canvasgate.gateway import Gateway
from canvasgate.main import create_app
from canvasgate.store import Board, InMemoryGraphStore, Node

OWNER = "owner-0001"
STRANGER = "stranger-0002"
OPERATOR = "operator-0003"
BOARD_ID = "board-1"
NODE_ID = "node-1"
OPENAI_KEY = "sk-test-" + "a" * 24
OPENAI_URL = "https://api.openai.com/v1/chat/completions"
JWT_SECRET = "test-jwt-secret-0123456789abcdef0123456789"


class ManualClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeRedis:
    def __init__(self) -> None:
        self.store: dict[str, int] = {}
        self.ttl: dict[str, int] = {}
        self.closed = False

    async def incrby(self, key: str, amount: int):
        self.store[key] = int(self.store.get(key, 0)) + amount
        return self.store[key]

    async def pexpire(self, key: str, ttl: int):
        self.ttl[key] = ttl
        return True

    async def pttl(self, key: str):
        if key not in self.store:
            return -2
        return self.ttl.get(key, -1)

    async def delete(self, *keys: str):
        for key in keys:
            self.store.pop(key, None)
            self.ttl.pop(key, None)

    async def aclose(self):
        self.closed = True


def make_token(subject_id: str, secret: str = JWT_SECRET) -> str:
    return jwt.encode({"sub": subject_id}, secret, algorithm="HS256")


def auth_headers(subject_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(subject_id)}"}


def openai_completion(text: str = "ok", prompt_tokens: int = 12, completion_tokens: int = 8) -> dict[str, Any]:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": text}, "finish_reason": "stop"}],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }


def openai_sse(*deltas: str, usage: tuple[int, int] | None = None) -> bytes:
    lines = []
    for delta in deltas:
        event = {"object": "chat.completion.chunk", "choices": [{"index": 0, "delta": {"content": delta}}]}
        lines.append(f"data: {json.dumps(event)}\n\n")
    if usage is not None:
        event = {"choices": [], "usage": {"prompt_tokens": usage[0], "completion_tokens": usage[1]}}
        lines.append(f"data: {json.dumps(event)}\n\n")
    lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    for name in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY", "REDIS_URL", "OPERATOR_IDS"):
        monkeypatch.delenv(f"CANVASGATE_{name}", raising=False)


@pytest.fixture
def settings() -> GatewaySettings:
    return GatewaySettings(
        encryption_key="test-encryption-key",
        jwt_secret=JWT_SECRET,
        operator_ids=[OPERATOR],
        log_json=False,
        config_path="does-not-exist.yaml",
    )


@pytest.fixture
def store() -> InMemoryGraphStore:
    store = InMemoryGraphStore()
    store.boards[BOARD_ID] = Board(id=BOARD_ID, owner_id=OWNER, title="Research board")
    store.nodes[NODE_ID] = Node(id=NODE_ID, board_id=BOARD_ID, type="response", role="assistant")
    return store


@pytest.fixture
def gateway(settings: GatewaySettings, store: InMemoryGraphStore) -> Gateway:
    return Gateway.build(settings, store=store)


@pytest.fixture
async def owner_credential(gateway: Gateway):
    return await gateway.vault.add_credential(OWNER, "openai", OPENAI_KEY, "Main key")


@pytest.fixture
def test_app(gateway: Gateway) -> FastAPI:
    return create_app(gateway=gateway)


@pytest.fixture
async def client(test_app: FastAPI):
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
