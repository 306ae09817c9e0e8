"""Audit trail for access decisions and credential operations.

Audit writes are best-effort: a failing store is logged locally and the
primary operation carries on.
"""

from typing import Any, Optional

from canvasgate.observability.logging import get_logger
from canvasgate.store import AuditEntry, GraphStore

logger = get_logger(__name__)


class AuditLogger:
    """Append-only audit writer.

    Example:
        audit = AuditLogger(store)
        await audit.log(
            action="decrypt",
            subject_id=subject_id,
            resource_type="credential",
            resource_id=credential_id,
            success=False,
        )
    """

    def __init__(self, store: GraphStore):
        self.store = store

    async def log(
        self,
        action: str,
        subject_id: Optional[str],
        resource_type: str,
        resource_id: str,
        success: bool,
        details: Optional[dict[str, Any]] = None,
    ) -> Optional[AuditEntry]:
        """Record an audit entry.

        Args:
            action: The attempted action (e.g. "read", "decrypt", "revoke")
            subject_id: The acting subject, if known
            resource_type: Type of resource touched
            resource_id: ID of the resource touched
            success: Whether the action was allowed
            details: Extra non-sensitive context

        Returns:
            The stored entry, or None if the write failed
        """
        entry = AuditEntry(
            subject_id=subject_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            success=success,
            details=details,
        )
        try:
            await self.store.insert_audit_entry(entry)
        except Exception as exc:
            logger.warning(
                "audit_write_failed",
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                error=str(exc),
            )
            return None
        return entry
