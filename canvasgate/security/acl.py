"""Access control resolution.

Effective access is computed on every call from the store. Nothing is
cached, so an expired share grant is indistinguishable from a missing one.

Board rules, highest wins:

- the owner is ``ADMIN``
- a non-expired share grant applicable to the subject maps ``view`` to
  ``READ`` and ``comment`` to ``WRITE``
- a public board grants ``READ``

Nodes and edges inherit the level of their board. Credentials are owner
only. Share grants require ``ADMIN`` on their board.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum, IntEnum
from typing import Callable, Iterable

from canvasgate.exceptions import AccessDenied, AuthenticationRequired
from canvasgate.observability.logging import get_logger
from canvasgate.security.audit import AuditLogger
from canvasgate.store import Board, GraphStore, utcnow

logger = get_logger(__name__)


class AccessLevel(IntEnum):
    NONE = 0
    READ = 1
    WRITE = 2
    ADMIN = 3


class ResourceType(str, Enum):
    BOARD = "board"
    NODE = "node"
    EDGE = "edge"
    CREDENTIAL = "credential"
    SHARE_GRANT = "share_grant"


SHARE_CAPABILITY_LEVELS = {
    "view": AccessLevel.READ,
    "comment": AccessLevel.WRITE,
}

ACTION_LEVELS = {
    "read": AccessLevel.READ,
    "view": AccessLevel.READ,
    "create": AccessLevel.WRITE,
    "update": AccessLevel.WRITE,
    "edit": AccessLevel.WRITE,
    "delete": AccessLevel.ADMIN,
    "share": AccessLevel.ADMIN,
    "manage": AccessLevel.ADMIN,
}


def level_for_action(action: str) -> AccessLevel:
    return ACTION_LEVELS.get(action, AccessLevel.WRITE)


class AccessControl:
    """Resolve a subject's access level against a resource."""

    def __init__(
        self,
        store: GraphStore,
        audit: AuditLogger | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.audit = audit or AuditLogger(store)
        self.clock = clock

    async def get_access_level(
        self,
        subject_id: str | None,
        resource_type: ResourceType | str,
        resource_id: str,
    ) -> AccessLevel:
        if not subject_id:
            return AccessLevel.NONE

        resource_type = ResourceType(resource_type)
        if resource_type is ResourceType.BOARD:
            return await self._board_level(subject_id, resource_id)
        if resource_type is ResourceType.NODE:
            node = await self.store.get_node(resource_id)
            if node is None:
                return AccessLevel.NONE
            return await self._board_level(subject_id, node.board_id)
        if resource_type is ResourceType.EDGE:
            edge = await self.store.get_edge(resource_id)
            if edge is None:
                return AccessLevel.NONE
            return await self._board_level(subject_id, edge.board_id)
        if resource_type is ResourceType.CREDENTIAL:
            credential = await self.store.get_credential(resource_id)
            if credential is None or credential.owner_id != subject_id:
                return AccessLevel.NONE
            return AccessLevel.ADMIN
        if resource_type is ResourceType.SHARE_GRANT:
            grant = await self.store.get_share_grant(resource_id)
            if grant is None:
                return AccessLevel.NONE
            board_level = await self._board_level(subject_id, grant.board_id)
            return AccessLevel.ADMIN if board_level >= AccessLevel.ADMIN else AccessLevel.NONE
        return AccessLevel.NONE

    async def _board_level(self, subject_id: str, board_id: str) -> AccessLevel:
        board = await self.store.get_board(board_id)
        if board is None:
            return AccessLevel.NONE
        if board.owner_id == subject_id:
            return AccessLevel.ADMIN

        level = AccessLevel.READ if board.is_public else AccessLevel.NONE
        return max(level, await self._share_level(board, subject_id))

    async def _share_level(self, board: Board, subject_id: str) -> AccessLevel:
        now = self.clock()
        level = AccessLevel.NONE
        for grant in await self.store.list_share_grants(board.id):
            if grant.is_expired(now) or not grant.applies_to(subject_id):
                continue
            level = max(level, SHARE_CAPABILITY_LEVELS.get(grant.access, AccessLevel.NONE))
        return level

    async def check_access(
        self,
        subject_id: str | None,
        resource_type: ResourceType | str,
        resource_id: str,
        required: AccessLevel = AccessLevel.READ,
    ) -> bool:
        level = await self.get_access_level(subject_id, resource_type, resource_id)
        return level >= required

    async def require_access(
        self,
        subject_id: str | None,
        resource_type: ResourceType | str,
        resource_id: str,
        required: AccessLevel = AccessLevel.READ,
        action: str | None = None,
    ) -> None:
        """Raise unless the subject holds ``required`` on the resource.

        Both outcomes are written to the audit trail.
        """
        if not subject_id:
            raise AuthenticationRequired()

        resource_type = ResourceType(resource_type)
        allowed = await self.check_access(subject_id, resource_type, resource_id, required)
        await self.audit.log(
            action=action or required.name.lower(),
            subject_id=subject_id,
            resource_type=resource_type.value,
            resource_id=resource_id,
            success=allowed,
            details={"required_level": required.name.lower()},
        )
        if not allowed:
            logger.info(
                "access_denied",
                user_id=subject_id,
                resource_type=resource_type.value,
                resource_id=resource_id,
                required_level=required.name.lower(),
            )
            raise AccessDenied(resource_type.value, resource_id)

    async def filter_by_access(
        self,
        subject_id: str | None,
        resource_type: ResourceType | str,
        resource_ids: Iterable[str],
        required: AccessLevel = AccessLevel.READ,
    ) -> list[str]:
        return [
            resource_id
            for resource_id in resource_ids
            if await self.check_access(subject_id, resource_type, resource_id, required)
        ]

    async def can_perform_action(
        self,
        subject_id: str | None,
        resource_type: ResourceType | str,
        resource_id: str,
        action: str,
    ) -> bool:
        return await self.check_access(subject_id, resource_type, resource_id, level_for_action(action))
