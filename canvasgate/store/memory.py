from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace

from canvasgate.store.base import (
    AuditEntry,
    Board,
    Credential,
    CredentialStatus,
    Edge,
    GraphStore,
    Node,
    ShareGrant,
    UsageEvent,
    utcnow,
)


def new_id() -> str:
    return uuid.uuid4().hex


class InMemoryGraphStore(GraphStore):
    """Process-local store used for development and tests.

    Records are copied on the way in and out so callers cannot mutate stored
    state without going through ``save_*``.
    """

    def __init__(self) -> None:
        self.boards: dict[str, Board] = {}
        self.nodes: dict[str, Node] = {}
        self.edges: dict[str, Edge] = {}
        self.credentials: dict[str, Credential] = {}
        self.share_grants: dict[str, ShareGrant] = {}
        self.usage_events: list[UsageEvent] = []
        self.audit_entries: list[AuditEntry] = []
        self._lock = asyncio.Lock()

    async def get_board(self, board_id: str) -> Board | None:
        board = self.boards.get(board_id)
        return replace(board) if board else None

    async def save_board(self, board: Board) -> Board:
        board.updated_at = utcnow()
        self.boards[board.id] = replace(board)
        return board

    async def get_node(self, node_id: str) -> Node | None:
        node = self.nodes.get(node_id)
        return replace(node, meta=dict(node.meta)) if node else None

    async def save_node(self, node: Node) -> Node:
        node.updated_at = utcnow()
        self.nodes[node.id] = replace(node, meta=dict(node.meta))
        return node

    async def list_nodes(self, board_id: str) -> list[Node]:
        return [replace(n, meta=dict(n.meta)) for n in self.nodes.values() if n.board_id == board_id]

    async def get_edge(self, edge_id: str) -> Edge | None:
        edge = self.edges.get(edge_id)
        return replace(edge) if edge else None

    async def save_edge(self, edge: Edge) -> Edge:
        self.edges[edge.id] = replace(edge)
        return edge

    async def list_edges(self, board_id: str) -> list[Edge]:
        return [replace(e) for e in self.edges.values() if e.board_id == board_id]

    async def get_credential(self, credential_id: str) -> Credential | None:
        credential = self.credentials.get(credential_id)
        return replace(credential) if credential else None

    async def list_credentials(
        self,
        owner_id: str,
        *,
        provider: str | None = None,
        status: CredentialStatus | None = "active",
    ) -> list[Credential]:
        matches = [
            replace(c)
            for c in self.credentials.values()
            if c.owner_id == owner_id
            and (provider is None or c.provider == provider)
            and (status is None or c.status == status)
        ]
        return sorted(matches, key=lambda c: c.created_at)

    async def save_credential(self, credential: Credential) -> Credential:
        credential.updated_at = utcnow()
        self.credentials[credential.id] = replace(credential)
        return credential

    async def get_share_grant(self, grant_id: str) -> ShareGrant | None:
        grant = self.share_grants.get(grant_id)
        return replace(grant) if grant else None

    async def get_share_grant_by_token(self, token: str) -> ShareGrant | None:
        for grant in self.share_grants.values():
            if grant.token == token:
                return replace(grant)
        return None

    async def list_share_grants(self, board_id: str) -> list[ShareGrant]:
        return [replace(g) for g in self.share_grants.values() if g.board_id == board_id]

    async def save_share_grant(self, grant: ShareGrant) -> ShareGrant:
        self.share_grants[grant.id] = replace(grant)
        return grant

    async def delete_share_grant(self, grant_id: str) -> None:
        self.share_grants.pop(grant_id, None)

    async def insert_usage_event(self, event: UsageEvent) -> None:
        async with self._lock:
            self.usage_events.append(event)

    async def list_usage_events(self, subject_id: str | None = None) -> list[UsageEvent]:
        return [e for e in self.usage_events if subject_id is None or e.subject_id == subject_id]

    async def insert_audit_entry(self, entry: AuditEntry) -> None:
        async with self._lock:
            self.audit_entries.append(entry)

    async def list_audit_entries(self, resource_id: str | None = None) -> list[AuditEntry]:
        return [e for e in self.audit_entries if resource_id is None or e.resource_id == resource_id]
