"""Approval history — ordered timeline of approval events for one entity."""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from approvals_api.models.approval import ApprovalRequest
from approvals_api.services.role_service import get_display_names

logger = structlog.get_logger()

UNKNOWN_USER = "Unknown user"


@dataclass
class ApprovalHistoryEntry:
    id: str
    status: str
    created_at: datetime
    requester_id: str
    requester_name: str
    approver_id: Optional[str] = None
    approval_date: Optional[datetime] = None
    title: Optional[str] = None
    comments: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


async def get_approval_details(
    session: AsyncSession, entity_type: str, entity_id: str
) -> list[ApprovalHistoryEntry]:
    """
    All approval requests for an entity, oldest first.

    Never raises for data-access problems: a failed primary query yields an
    empty list, a failed name lookup yields "Unknown user" for the affected
    rows.
    """
    try:
        async with session.begin_nested():
            result = await session.execute(
                select(ApprovalRequest)
                .where(
                    ApprovalRequest.entity_type == entity_type,
                    ApprovalRequest.entity_id == str(entity_id),
                )
                .order_by(ApprovalRequest.created_at.asc())
            )
            rows = list(result.scalars().all())
    except SQLAlchemyError as e:
        logger.error(
            "approval_history_fetch_failed",
            entity_type=entity_type,
            entity_id=str(entity_id),
            error=str(e),
        )
        return []

    if not rows:
        return []

    try:
        async with session.begin_nested():
            names = await get_display_names(session, [r.requester_id for r in rows])
    except SQLAlchemyError as e:
        logger.warning(
            "approval_history_name_lookup_failed",
            entity_type=entity_type,
            entity_id=str(entity_id),
            error=str(e),
        )
        names = {}

    return [
        ApprovalHistoryEntry(
            id=r.id,
            status=r.status,
            created_at=r.created_at,
            requester_id=r.requester_id,
            requester_name=names.get(r.requester_id) or UNKNOWN_USER,
            approver_id=r.approver_id,
            approval_date=r.approval_date,
            title=r.title,
            comments=r.comments,
        )
        for r in rows
    ]
