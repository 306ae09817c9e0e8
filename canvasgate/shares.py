"""Time-bounded share links for boards."""

from __future__ import annotations

import asyncio
import secrets
import string
from datetime import datetime, timedelta
from typing import Any, Callable

from canvasgate.exceptions import NotFoundError, ValidationError
from canvasgate.observability.logging import log_user_action
from canvasgate.security import AccessControl, AccessLevel, ResourceType
from canvasgate.store import GraphStore, ShareGrant, new_id, utcnow
from canvasgate.validation import SHARE_TOKEN_LENGTH, validate_share_token


_TOKEN_ALPHABET = string.ascii_letters + string.digits
MAX_EXPIRY_HOURS = 24 * 30


def generate_share_token() -> str:
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(SHARE_TOKEN_LENGTH))


class ShareService:
    def __init__(
        self,
        store: GraphStore,
        acl: AccessControl,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.acl = acl
        self.clock = clock
        self._open_lock = asyncio.Lock()

    async def create_share_link(
        self,
        subject_id: str | None,
        board_id: str,
        access: str = "view",
        expires_in_hours: float = 24,
        max_accesses: int | None = None,
        grantee_id: str | None = None,
    ) -> ShareGrant:
        await self.acl.require_access(subject_id, ResourceType.BOARD, board_id, AccessLevel.ADMIN, action="share")
        if access not in ("view", "comment"):
            raise ValidationError("access must be 'view' or 'comment'", field="access")
        if not 0 < expires_in_hours <= MAX_EXPIRY_HOURS:
            raise ValidationError(f"expires_in_hours must be between 0 and {MAX_EXPIRY_HOURS}", field="expires_in_hours")
        if max_accesses is not None and max_accesses < 1:
            raise ValidationError("max_accesses must be at least 1", field="max_accesses")

        now = self.clock()
        grant = ShareGrant(
            id=new_id(),
            board_id=board_id,
            token=generate_share_token(),
            access=access,
            created_by=subject_id,
            expires_at=now + timedelta(hours=expires_in_hours),
            grantee_id=grantee_id,
            max_accesses=max_accesses,
            created_at=now,
        )
        await self.store.save_share_grant(grant)
        log_user_action("share_link_created", subject_id, "board", board_id, access=access)
        return grant

    async def open_shared_board(self, token: str) -> dict[str, Any]:
        """Resolve a share token to a read-only board snapshot.

        Expired and exhausted links are treated exactly like unknown ones.
        """
        token = validate_share_token(token)
        async with self._open_lock:
            grant = await self.store.get_share_grant_by_token(token)
            if grant is None or grant.is_expired(self.clock()) or grant.is_exhausted():
                raise NotFoundError("Invalid or expired share token.")

            board = await self.store.get_board(grant.board_id)
            if board is None:
                raise NotFoundError("Invalid or expired share token.")

            grant.access_count += 1
            await self.store.save_share_grant(grant)

        nodes = await self.store.list_nodes(board.id)
        edges = await self.store.list_edges(board.id)
        return {
            "board": {"id": board.id, "title": board.title, "description": board.description},
            "nodes": [
                {"id": n.id, "type": n.type, "role": n.role, "content": n.content}
                for n in nodes
            ],
            "edges": [{"id": e.id, "src": e.src, "dst": e.dst} for e in edges],
            "share": {
                "access": grant.access,
                "expires_at": grant.expires_at.isoformat(),
                "access_count": grant.access_count,
                "max_accesses": grant.max_accesses,
            },
        }

    async def revoke_share_link(self, subject_id: str | None, grant_id: str) -> None:
        await self.acl.require_access(
            subject_id, ResourceType.SHARE_GRANT, grant_id, AccessLevel.ADMIN, action="revoke"
        )
        await self.store.delete_share_grant(grant_id)
        log_user_action("share_link_revoked", subject_id, "share_grant", grant_id)
