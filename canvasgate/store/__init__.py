"""Persistence interface and the in-memory implementation."""

from .base import (
    AuditEntry,
    Board,
    Credential,
    Edge,
    GraphStore,
    Node,
    ShareGrant,
    UsageEvent,
    utcnow,
)
from .memory import InMemoryGraphStore, new_id

__all__ = [
    "AuditEntry",
    "Board",
    "Credential",
    "Edge",
    "GraphStore",
    "InMemoryGraphStore",
    "Node",
    "ShareGrant",
    "UsageEvent",
    "new_id",
    "utcnow",
]
