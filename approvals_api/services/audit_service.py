"""Audit trail for approval requests: one entry per creation and per decision."""

from typing import Optional
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from approvals_api.models.approval import ApprovalRequest
from approvals_api.models.audit_log import AuditLog
from approvals_api.services.role_service import Principal

logger = structlog.get_logger()


def _compute_changed_fields(
    before: Optional[dict], after: Optional[dict]
) -> Optional[list[str]]:
    """Diff two state dicts and return list of changed field names."""
    if not before or not after:
        return None
    changed = [
        key
        for key in sorted(set(before) | set(after))
        if before.get(key) != after.get(key)
    ]
    return changed or None


def approval_snapshot(approval: ApprovalRequest) -> dict:
    """JSON-safe view of the mutable part of an approval request."""
    return {
        "approval_id": approval.id,
        "status": approval.status,
        "approver_id": approval.approver_id,
        "comments": approval.comments,
        "approval_date": approval.approval_date.isoformat() if approval.approval_date else None,
    }


async def create_audit_log(
    session: AsyncSession,
    actor_id: Optional[str],
    action: str,
    entity_type: str,
    entity_id: str,
    before_state: Optional[dict] = None,
    after_state: Optional[dict] = None,
    actor_email: Optional[str] = None,
) -> AuditLog:
    """
    Create an audit log entry.

    Uses session.flush(), so the entry commits or rolls back with the
    caller's transaction. The current request_id is copied from the
    structlog context when there is one.
    """
    audit = AuditLog(
        actor_id=str(actor_id) if actor_id else None,
        actor_email=actor_email,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_state=before_state,
        after_state=after_state,
        changed_fields=_compute_changed_fields(before_state, after_state),
        request_id=structlog.contextvars.get_contextvars().get("request_id"),
        created_at=datetime.utcnow(),
    )
    session.add(audit)
    await session.flush()

    logger.info(
        "audit_log_created",
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        actor_id=actor_id,
    )
    return audit


async def record_approval_event(
    session: AsyncSession,
    principal: Principal,
    action: str,
    approval: ApprovalRequest,
    before_state: Optional[dict] = None,
) -> AuditLog:
    """Audit an approval request against the business entity it points at."""
    return await create_audit_log(
        session,
        actor_id=principal.user_id,
        action=action,
        entity_type=approval.entity_type,
        entity_id=approval.entity_id,
        before_state=before_state,
        after_state=approval_snapshot(approval),
        actor_email=principal.email,
    )
