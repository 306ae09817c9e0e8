from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from canvasgate.exceptions import AccessDenied, AuthenticationRequired
from canvasgate.security import AccessControl, AccessLevel, ResourceType
from canvasgate.store import Board, Edge, InMemoryGraphStore, Node, ShareGrant

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


def _grant(board_id: str, access: str, *, hours: float = 1, grantee_id: str | None = None, grant_id: str = "g1"):
    return ShareGrant(
        id=grant_id,
        board_id=board_id,
        token="t" * 32,
        access=access,
        created_by="owner",
        expires_at=NOW + timedelta(hours=hours),
        grantee_id=grantee_id,
    )


@pytest.fixture
def acl_store() -> InMemoryGraphStore:
    store = InMemoryGraphStore()
    store.boards["private"] = Board(id="private", owner_id="owner", title="Private")
    store.boards["public"] = Board(id="public", owner_id="owner", title="Public", is_public=True)
    store.nodes["n1"] = Node(id="n1", board_id="private", type="note", role="user")
    store.edges["e1"] = Edge(id="e1", board_id="private", src="n1", dst="n1")
    return store


@pytest.fixture
def acl(acl_store) -> AccessControl:
    return AccessControl(acl_store, clock=lambda: NOW)


async def test_owner_is_admin_and_stranger_has_nothing(acl):
    assert await acl.get_access_level("owner", ResourceType.BOARD, "private") == AccessLevel.ADMIN
    assert await acl.get_access_level("someone", ResourceType.BOARD, "private") == AccessLevel.NONE
    assert await acl.get_access_level(None, ResourceType.BOARD, "private") == AccessLevel.NONE


async def test_public_board_grants_read_only(acl):
    assert await acl.check_access("someone", ResourceType.BOARD, "public", AccessLevel.READ)
    assert not await acl.check_access("someone", ResourceType.BOARD, "public", AccessLevel.WRITE)


async def test_missing_board_resolves_to_none(acl):
    assert await acl.get_access_level("owner", "board", "missing") == AccessLevel.NONE


async def test_share_capabilities_map_to_levels(acl, acl_store):
    acl_store.share_grants["g1"] = _grant("private", "view")
    assert await acl.get_access_level("someone", ResourceType.BOARD, "private") == AccessLevel.READ

    acl_store.share_grants["g2"] = _grant("private", "comment", grant_id="g2")
    assert await acl.get_access_level("someone", ResourceType.BOARD, "private") == AccessLevel.WRITE


async def test_expired_grant_is_ignored(acl, acl_store):
    acl_store.share_grants["g1"] = _grant("private", "comment", hours=-1)
    assert await acl.get_access_level("someone", ResourceType.BOARD, "private") == AccessLevel.NONE


async def test_grant_for_named_grantee_does_not_apply_to_others(acl, acl_store):
    acl_store.share_grants["g1"] = _grant("private", "comment", grantee_id="friend")
    assert await acl.get_access_level("friend", ResourceType.BOARD, "private") == AccessLevel.WRITE
    assert await acl.get_access_level("other", ResourceType.BOARD, "private") == AccessLevel.NONE


async def test_nodes_and_edges_inherit_board_level(acl, acl_store):
    acl_store.share_grants["g1"] = _grant("private", "view")
    assert await acl.get_access_level("owner", ResourceType.NODE, "n1") == AccessLevel.ADMIN
    assert await acl.get_access_level("someone", ResourceType.NODE, "n1") == AccessLevel.READ
    assert await acl.get_access_level("someone", ResourceType.EDGE, "e1") == AccessLevel.READ
    assert await acl.get_access_level("owner", ResourceType.NODE, "missing") == AccessLevel.NONE


async def test_share_grants_need_board_admin(acl, acl_store):
    acl_store.share_grants["g1"] = _grant("private", "comment")
    assert await acl.get_access_level("owner", ResourceType.SHARE_GRANT, "g1") == AccessLevel.ADMIN
    assert await acl.get_access_level("someone", ResourceType.SHARE_GRANT, "g1") == AccessLevel.NONE


async def test_require_access_audits_both_outcomes(acl, acl_store):
    await acl.require_access("owner", ResourceType.BOARD, "private", AccessLevel.WRITE, action="edit")
    with pytest.raises(AccessDenied):
        await acl.require_access("someone", ResourceType.BOARD, "private", AccessLevel.READ)

    entries = await acl_store.list_audit_entries("private")
    assert [(e.subject_id, e.action, e.success) for e in entries] == [
        ("owner", "edit", True),
        ("someone", "read", False),
    ]


async def test_require_access_without_subject_is_unauthenticated(acl):
    with pytest.raises(AuthenticationRequired):
        await acl.require_access(None, ResourceType.BOARD, "public")


async def test_can_perform_action_uses_action_levels(acl, acl_store):
    acl_store.share_grants["g1"] = _grant("private", "comment")
    assert await acl.can_perform_action("someone", "board", "private", "edit")
    assert await acl.can_perform_action("someone", "board", "private", "view")
    assert not await acl.can_perform_action("someone", "board", "private", "share")
    # unknown actions need write
    assert await acl.can_perform_action("someone", "board", "private", "reorder")


async def test_filter_by_access(acl):
    visible = await acl.filter_by_access("someone", ResourceType.BOARD, ["private", "public", "missing"])
    assert visible == ["public"]


async def test_audit_store_failure_does_not_block_decision(acl, acl_store):
    async def broken(entry):
        raise RuntimeError("store down")

    acl_store.insert_audit_entry = broken
    await acl.require_access("owner", ResourceType.BOARD, "private", AccessLevel.ADMIN)
