"""
Audit trail for commission changes.

Slab replacements and manual commission edits feed payroll, so every one of
them leaves an AuditLog row committed in the same transaction as the change.
"""

from typing import Any, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from slabline.models.audit import AuditAction, AuditLog
from slabline.models.user import User


def get_client_ip(request: Optional[Request]) -> Optional[str]:
    """Client address, honouring X-Forwarded-For from the reverse proxy."""
    if request is None:
        return None

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # First hop is the client
        return forwarded_for.split(",")[0].strip()

    return request.client.host if request.client else None


def log_action(
    db: AsyncSession,
    actor: User,
    action: AuditAction,
    target_type: str,
    target_id: Optional[int] = None,
    request: Optional[Request] = None,
    **metadata: Any,
) -> AuditLog:
    """
    Stage an audit entry on the session; the caller's commit persists it.

    Args:
        db: Database session
        actor: Admin performing the action
        action: What was done
        target_type: Entity affected ("user", "lead")
        target_id: ID of the affected entity
        request: Incoming request, for the client IP
        **metadata: Extra JSON context (counts, amounts)
    """
    entry = AuditLog(
        user_id=actor.id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        action_metadata=metadata or None,
        ip_address=get_client_ip(request),
    )
    db.add(entry)
    return entry
