"""
Approval service — initial routing of new requests and reviewer decisions.

Workflow evaluator:
  requester is admin, no assigned approver   → stored as APPROVED
  requester is admin, approver assigned      → PENDING, targeted at approver
  anyone else                                → stored with the requested
                                               status (PENDING by default)

Action processor:
  pending → approved | rejected | more_info, exactly once. The transition is
  a conditional UPDATE guarded on status = 'pending'; the entity cascade runs
  in the same savepoint so both writes land or neither does.

All functions use the caller's session (no commit). get_db() auto-commits.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional, Union

from sqlalchemy import select, update, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from approvals_api.exceptions import (
    AlreadyProcessed,
    NotFound,
    Unauthorized,
    ValidationFailed,
)
from approvals_api.models.approval import (
    ACTION_TO_STATUS,
    ApprovalAction,
    ApprovalRequest,
    ApprovalStatus,
    EntityType,
)
from approvals_api.services.audit_service import approval_snapshot, record_approval_event
from approvals_api.services.cascade_service import (
    action_cascade_for,
    apply_cascade,
    creation_cascade_for,
)
from approvals_api.services.role_service import Principal

logger = structlog.get_logger()

# Statuses a request may be created in
INITIAL_STATUSES = frozenset({ApprovalStatus.PENDING.value, ApprovalStatus.APPROVED.value})

# Decisions that must carry a reason
COMMENT_REQUIRED_ACTIONS = frozenset({ApprovalAction.REJECT, ApprovalAction.MORE_INFO})

ACTION_OUTCOME_VERBS = {
    ApprovalAction.APPROVE: "approved",
    ApprovalAction.REJECT: "rejected",
    ApprovalAction.MORE_INFO: "updated",
}

CompletionCallback = Callable[[ApprovalRequest], Awaitable[None]]


@dataclass
class WorkflowResult:
    success: bool
    message: str
    approval: Optional[ApprovalRequest] = None
    created: bool = False
    auto_approved: bool = False


@dataclass
class ActionResult:
    approval: ApprovalRequest
    previous_status: str
    new_status: str
    cascaded: bool
    message: str


def _coerce_entity_type(entity_type: str) -> str:
    try:
        return EntityType(entity_type).value
    except ValueError:
        raise ValidationFailed(
            f"Unsupported entity type '{entity_type}'",
            details={"allowed": [e.value for e in EntityType]},
        )


def _coerce_action(action: Union[str, ApprovalAction]) -> ApprovalAction:
    try:
        return ApprovalAction(action)
    except ValueError:
        raise ValidationFailed(
            f"Unsupported action '{action}'",
            details={"allowed": [a.value for a in ApprovalAction]},
        )


async def get_latest_approval(
    session: AsyncSession, entity_type: str, entity_id: str
) -> Optional[ApprovalRequest]:
    """Most recent request for the entity, if any."""
    result = await session.execute(
        select(ApprovalRequest)
        .where(
            ApprovalRequest.entity_type == entity_type,
            ApprovalRequest.entity_id == str(entity_id),
        )
        .order_by(ApprovalRequest.created_at.desc())
        .limit(1)
    )
    return result.scalars().first()


async def get_pending_approval(
    session: AsyncSession, entity_type: str, entity_id: str
) -> Optional[ApprovalRequest]:
    result = await session.execute(
        select(ApprovalRequest).where(
            ApprovalRequest.entity_type == entity_type,
            ApprovalRequest.entity_id == str(entity_id),
            ApprovalRequest.status == ApprovalStatus.PENDING.value,
        )
    )
    return result.scalars().first()


async def get_approval_request(session: AsyncSession, approval_id: str) -> ApprovalRequest:
    result = await session.execute(
        select(ApprovalRequest).where(ApprovalRequest.id == str(approval_id))
    )
    approval = result.scalar_one_or_none()
    if not approval:
        raise NotFound(f"Approval request {approval_id} not found")
    return approval


async def get_approval_requests(
    session: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    status: Optional[str] = None,
    visible_to: Optional[Principal] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[ApprovalRequest], int]:
    """
    Filtered, newest-first page of approval requests plus the total count.

    When visible_to is a non-reviewer, only requests they raised or that are
    assigned to them are returned.
    """
    q = select(ApprovalRequest)
    count_q = select(func.count(ApprovalRequest.id))

    filters = []
    if entity_type:
        filters.append(ApprovalRequest.entity_type == entity_type)
    if entity_id:
        filters.append(ApprovalRequest.entity_id == str(entity_id))
    if status:
        filters.append(ApprovalRequest.status == status)
    if visible_to is not None and not visible_to.is_reviewer:
        filters.append(
            or_(
                ApprovalRequest.requester_id == visible_to.user_id,
                ApprovalRequest.approver_id == visible_to.user_id,
            )
        )

    for f in filters:
        q = q.where(f)
        count_q = count_q.where(f)

    total = (await session.execute(count_q)).scalar() or 0
    result = await session.execute(
        q.order_by(ApprovalRequest.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def create_approval_request(
    session: AsyncSession,
    principal: Principal,
    entity_type: str,
    entity_id: str,
    title: Optional[str] = None,
    status: str = ApprovalStatus.PENDING.value,
    approver_id: Optional[str] = None,
) -> WorkflowResult:
    """
    Route a newly submitted entity into the approval workflow.

    Idempotent while a request for the entity is pending: the existing
    request is returned and nothing is inserted. A concurrent insert that
    trips the pending-uniqueness index is reported the same way.
    """
    entity_type = _coerce_entity_type(entity_type)
    entity_id = str(entity_id)
    if status not in INITIAL_STATUSES:
        raise ValidationFailed(
            f"Approval requests cannot be created as '{status}'",
            details={"allowed": sorted(INITIAL_STATUSES)},
        )

    latest = await get_latest_approval(session, entity_type, entity_id)
    if latest and latest.is_pending:
        logger.info(
            "approval_request_already_pending",
            entity_type=entity_type,
            entity_id=entity_id,
            approval_id=latest.id,
        )
        return WorkflowResult(
            success=True,
            message="Approval request already pending",
            approval=latest,
        )

    if principal.is_admin:
        if approver_id:
            status = ApprovalStatus.PENDING.value
            message = "Approval request created and assigned to approver"
        else:
            status = ApprovalStatus.APPROVED.value
            message = "Request auto-approved as administrator with no assigned approver"
    elif status == ApprovalStatus.APPROVED.value:
        message = "Request recorded as approved"
    else:
        message = "Approval request created"

    now = datetime.utcnow()
    approval = ApprovalRequest(
        entity_type=entity_type,
        entity_id=entity_id,
        requester_id=principal.user_id,
        approver_id=str(approver_id) if approver_id else None,
        status=status,
        title=title,
        approval_date=now if status == ApprovalStatus.APPROVED.value else None,
        created_at=now,
        updated_at=now,
    )

    try:
        async with session.begin_nested():
            session.add(approval)
            await session.flush()

            rule = creation_cascade_for(entity_type, status)
            if rule:
                await apply_cascade(session, rule, entity_type, entity_id)
    except IntegrityError:
        # Lost a creation race: another pending request now exists
        existing = await get_pending_approval(session, entity_type, entity_id)
        if not existing:
            raise
        logger.info(
            "approval_request_create_race_resolved",
            entity_type=entity_type,
            entity_id=entity_id,
            approval_id=existing.id,
        )
        return WorkflowResult(
            success=True,
            message="Approval request already pending",
            approval=existing,
        )

    auto_approved = status == ApprovalStatus.APPROVED.value
    await record_approval_event(
        session,
        principal,
        "APPROVAL_AUTO_APPROVED" if auto_approved else "APPROVAL_REQUESTED",
        approval,
    )

    logger.info(
        "approval_request_created",
        approval_id=approval.id,
        entity_type=entity_type,
        entity_id=entity_id,
        status=status,
        approver_id=approval.approver_id,
    )
    return WorkflowResult(
        success=True,
        message=message,
        approval=approval,
        created=True,
        auto_approved=auto_approved,
    )


async def handle_admin_request_approval(
    session: AsyncSession,
    principal: Principal,
    entity_type: str,
    entity_id: str,
    assigned_approver_id: Optional[str] = None,
) -> WorkflowResult:
    """
    Admin-only short-circuit used by submission flows.

    Non-admins get a plain acknowledgement; their request record is created
    by the regular submission path.
    """
    if not principal.is_admin:
        return WorkflowResult(success=True, message="Request submitted for approval")

    return await create_approval_request(
        session,
        principal,
        entity_type,
        entity_id,
        approver_id=assigned_approver_id,
    )


def _check_can_act(principal: Principal, approval: ApprovalRequest) -> None:
    if principal.is_admin:
        return
    if approval.requester_id == principal.user_id:
        raise Unauthorized("You cannot act on your own approval request")
    if approval.approver_id:
        if approval.approver_id != principal.user_id:
            raise Unauthorized("This request is assigned to another approver")
    elif not principal.is_reviewer:
        raise Unauthorized("You are not permitted to review approval requests")


async def process_action(
    session: AsyncSession,
    principal: Principal,
    approval_id: str,
    action: Union[str, ApprovalAction],
    comments: Optional[str] = None,
    on_complete: Optional[CompletionCallback] = None,
) -> ActionResult:
    """
    Apply a reviewer decision to a pending request.

    Raises NotFound, AlreadyProcessed, ValidationFailed, Unauthorized or
    CascadeFailed. On CascadeFailed the approval row is left pending. A
    cascade target with no local row is not an error: cascaded is False.
    """
    action = _coerce_action(action)
    comments = comments.strip() if comments else None
    if action in COMMENT_REQUIRED_ACTIONS and not comments:
        raise ValidationFailed(
            "Comments are required when rejecting or requesting more information"
        )

    approval = await get_approval_request(session, approval_id)
    if approval.is_terminal:
        raise AlreadyProcessed(
            "Cannot update request: already processed",
            details={"status": approval.status},
        )

    _check_can_act(principal, approval)

    before = approval_snapshot(approval)
    new_status = ACTION_TO_STATUS[action].value
    now = datetime.utcnow()
    rule = action_cascade_for(approval.entity_type, action.value)

    async with session.begin_nested():
        result = await session.execute(
            update(ApprovalRequest)
            .where(
                ApprovalRequest.id == approval.id,
                ApprovalRequest.status == ApprovalStatus.PENDING.value,
            )
            .values(
                status=new_status,
                approval_date=now,
                comments=comments,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(
                "approval_transition_lost_race",
                approval_id=approval.id,
                action=action.value,
            )
            raise AlreadyProcessed(
                "Cannot update request: already processed by another reviewer"
            )

        cascaded = False
        if rule:
            cascaded = await apply_cascade(
                session, rule, approval.entity_type, approval.entity_id
            )

    await session.refresh(approval)

    await record_approval_event(
        session,
        principal,
        f"APPROVAL_{new_status.upper()}",
        approval,
        before_state=before,
    )

    logger.info(
        "approval_transitioned",
        approval_id=approval.id,
        entity_type=approval.entity_type,
        entity_id=approval.entity_id,
        action=action.value,
        status=new_status,
        cascaded=cascaded,
    )

    if on_complete:
        await on_complete(approval)

    return ActionResult(
        approval=approval,
        previous_status=before["status"],
        new_status=new_status,
        cascaded=cascaded,
        message=f"Request {ACTION_OUTCOME_VERBS[action]} successfully",
    )


# Boundary name used by the HTTP layer
transition_approval = process_action
