"""Access control and auditing."""

from .acl import AccessControl, AccessLevel, ResourceType, level_for_action
from .audit import AuditLogger

__all__ = ["AccessControl", "AccessLevel", "AuditLogger", "ResourceType", "level_for_action"]
