"""Records and the persistence interface the gateway talks to.

The gateway treats the store as the system of record and never caches
resource state across requests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal


def utcnow() -> datetime:
    return datetime.now(UTC)


CredentialStatus = Literal["active", "revoked"]
ShareCapability = Literal["view", "comment"]
UsageStatus = Literal["success", "failed"]


@dataclass
class Board:
    id: str
    owner_id: str
    title: str
    description: str | None = None
    is_public: bool = False
    default_credential_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class Node:
    id: str
    board_id: str
    type: str
    role: str
    content: str = ""
    meta: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class Edge:
    id: str
    board_id: str
    src: str
    dst: str
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Credential:
    id: str
    owner_id: str
    provider: str
    nickname: str
    last4: str
    encrypted_secret: str
    status: CredentialStatus = "active"
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def public_view(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "provider": self.provider,
            "nickname": self.nickname,
            "last4": self.last4,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class ShareGrant:
    id: str
    board_id: str
    token: str
    access: ShareCapability
    created_by: str
    expires_at: datetime
    grantee_id: str | None = None
    max_accesses: int | None = None
    access_count: int = 0
    created_at: datetime = field(default_factory=utcnow)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) > self.expires_at

    def is_exhausted(self) -> bool:
        return self.max_accesses is not None and self.access_count >= self.max_accesses

    def applies_to(self, subject_id: str) -> bool:
        return self.grantee_id is None or self.grantee_id == subject_id


@dataclass(frozen=True)
class UsageEvent:
    subject_id: str
    resource_id: str
    provider: str
    model: str
    input_tokens: int
    output_tokens: int
    cost_estimate: float
    status: UsageStatus
    node_id: str | None = None
    request_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class AuditEntry:
    subject_id: str | None
    action: str
    resource_type: str
    resource_id: str
    success: bool
    details: dict[str, Any] | None = None
    created_at: datetime = field(default_factory=utcnow)


class GraphStore(ABC):
    """Persistence collaborator for boards, nodes, credentials and ledgers."""

    # Boards, nodes, edges

    @abstractmethod
    async def get_board(self, board_id: str) -> Board | None:
        ...

    @abstractmethod
    async def save_board(self, board: Board) -> Board:
        ...

    @abstractmethod
    async def get_node(self, node_id: str) -> Node | None:
        ...

    @abstractmethod
    async def save_node(self, node: Node) -> Node:
        ...

    @abstractmethod
    async def list_nodes(self, board_id: str) -> list[Node]:
        ...

    @abstractmethod
    async def get_edge(self, edge_id: str) -> Edge | None:
        ...

    @abstractmethod
    async def save_edge(self, edge: Edge) -> Edge:
        ...

    @abstractmethod
    async def list_edges(self, board_id: str) -> list[Edge]:
        ...

    # Credentials

    @abstractmethod
    async def get_credential(self, credential_id: str) -> Credential | None:
        ...

    @abstractmethod
    async def list_credentials(
        self,
        owner_id: str,
        *,
        provider: str | None = None,
        status: CredentialStatus | None = "active",
    ) -> list[Credential]:
        ...

    @abstractmethod
    async def save_credential(self, credential: Credential) -> Credential:
        ...

    # Share grants

    @abstractmethod
    async def get_share_grant(self, grant_id: str) -> ShareGrant | None:
        ...

    @abstractmethod
    async def get_share_grant_by_token(self, token: str) -> ShareGrant | None:
        ...

    @abstractmethod
    async def list_share_grants(self, board_id: str) -> list[ShareGrant]:
        ...

    @abstractmethod
    async def save_share_grant(self, grant: ShareGrant) -> ShareGrant:
        ...

    @abstractmethod
    async def delete_share_grant(self, grant_id: str) -> None:
        ...

    # Append-only ledgers

    @abstractmethod
    async def insert_usage_event(self, event: UsageEvent) -> None:
        ...

    @abstractmethod
    async def list_usage_events(self, subject_id: str | None = None) -> list[UsageEvent]:
        ...

    @abstractmethod
    async def insert_audit_entry(self, entry: AuditEntry) -> None:
        ...

    @abstractmethod
    async def list_audit_entries(self, resource_id: str | None = None) -> list[AuditEntry]:
        ...
