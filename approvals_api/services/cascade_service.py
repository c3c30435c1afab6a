"""
Cascade collaborators — push an approval outcome onto the business entity
the approval points at.

Each rule is a plain "set status field by id" update. Entity ids are weak
references: a rule that matches no row is logged and skipped. A database
error while applying it raises CascadeFailed so the caller's savepoint rolls
the approval change back with it.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from approvals_api.exceptions import CascadeFailed
from approvals_api.models.approval import ApprovalAction, ApprovalStatus, EntityType
from approvals_api.models.inventory_transaction import InventoryTransaction
from approvals_api.models.procurement_request import ProcurementRequest

logger = structlog.get_logger()


@dataclass(frozen=True)
class CascadeRule:
    model: type
    column: str
    value: str


# Reviewer decisions. Other entity types are cascaded by their own feature areas.
ACTION_CASCADES: dict[tuple[str, str], CascadeRule] = {
    (EntityType.PROCUREMENT_REQUEST.value, ApprovalAction.APPROVE.value): CascadeRule(
        ProcurementRequest, "status", "approved"
    ),
    (EntityType.PROCUREMENT_REQUEST.value, ApprovalAction.REJECT.value): CascadeRule(
        ProcurementRequest, "status", "rejected"
    ),
    (EntityType.PROCUREMENT_REQUEST.value, ApprovalAction.MORE_INFO.value): CascadeRule(
        ProcurementRequest, "status", "in_review"
    ),
}

# Requests that are born approved (administrator auto-approval)
CREATION_CASCADES: dict[tuple[str, str], CascadeRule] = {
    (EntityType.INVENTORY_CHECKOUT.value, ApprovalStatus.APPROVED.value): CascadeRule(
        InventoryTransaction, "approval_status", "approved"
    ),
}


def action_cascade_for(entity_type: str, action: str) -> Optional[CascadeRule]:
    return ACTION_CASCADES.get((entity_type, action))


def creation_cascade_for(entity_type: str, status: str) -> Optional[CascadeRule]:
    return CREATION_CASCADES.get((entity_type, status))


async def apply_cascade(
    session: AsyncSession,
    rule: CascadeRule,
    entity_type: str,
    entity_id: str,
) -> bool:
    """Apply one cascade rule to entity_id. Returns False when no row matched."""
    model = rule.model
    try:
        result = await session.execute(
            update(model)
            .where(model.id == str(entity_id))
            .values({rule.column: rule.value})
            .execution_options(synchronize_session="fetch")
        )
    except SQLAlchemyError as e:
        logger.error(
            "approval_cascade_failed",
            entity_type=entity_type,
            entity_id=str(entity_id),
            error=str(e),
        )
        raise CascadeFailed(
            f"Failed to update {entity_type} {entity_id}",
            details={"entity_type": entity_type, "entity_id": str(entity_id)},
        ) from e

    if result.rowcount == 0:
        logger.warning(
            "approval_cascade_target_missing",
            entity_type=entity_type,
            entity_id=str(entity_id),
        )
        return False

    logger.info(
        "approval_cascade_applied",
        entity_type=entity_type,
        entity_id=str(entity_id),
        field=rule.column,
        value=rule.value,
    )
    return True
