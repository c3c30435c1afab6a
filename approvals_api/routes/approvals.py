"""
Approvals API routes — submit entities for approval, list and inspect
requests, and record reviewer decisions.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from approvals_api.database import get_db
from approvals_api.middleware.auth import get_current_principal
from approvals_api.models.approval import ApprovalAction, ApprovalRequest, ApprovalStatus, EntityType
from approvals_api.schemas.approval import (
    ActionResponse,
    ApprovalActionRequest,
    ApprovalCreateRequest,
    ApprovalHistoryItem,
    ApprovalResponse,
    ApprovalTransitionRequest,
    WorkflowResponse,
)
from approvals_api.schemas.common import ErrorResponse, PaginatedResponse, build_pagination
from approvals_api.services.approval_service import (
    create_approval_request,
    get_approval_request,
    get_approval_requests,
    transition_approval,
)
from approvals_api.services.history_service import get_approval_details
from approvals_api.services.role_service import Principal

logger = structlog.get_logger()
router = APIRouter()

ERROR_RESPONSES = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


async def _log_completion(approval: ApprovalRequest) -> None:
    logger.info(
        "approval_action_completed",
        approval_id=approval.id,
        entity_type=approval.entity_type,
        status=approval.status,
    )


async def _transition(
    db: AsyncSession,
    principal: Principal,
    approval_id: str,
    action: ApprovalAction,
    comments: Optional[str],
) -> ActionResponse:
    result = await transition_approval(
        db,
        principal,
        approval_id,
        action,
        comments,
        on_complete=_log_completion,
    )
    return ActionResponse(
        message=result.message,
        previous_status=result.previous_status,
        new_status=result.new_status,
        cascaded=result.cascaded,
        approval=ApprovalResponse.model_validate(result.approval),
    )


@router.post(
    "",
    response_model=WorkflowResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def submit_for_approval(
    body: ApprovalCreateRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Route an entity into the approval workflow (idempotent while pending)."""
    result = await create_approval_request(
        db,
        principal,
        body.entity_type.value,
        body.entity_id,
        title=body.title,
        approver_id=body.approver_id,
    )
    return WorkflowResponse(
        success=result.success,
        message=result.message,
        created=result.created,
        auto_approved=result.auto_approved,
        approval=ApprovalResponse.model_validate(result.approval) if result.approval else None,
    )


@router.get("", response_model=PaginatedResponse[ApprovalResponse])
async def list_approvals(
    status_filter: Optional[ApprovalStatus] = Query(None, alias="status"),
    entity_type_filter: Optional[EntityType] = Query(None, alias="entity_type"),
    entity_id_filter: Optional[str] = Query(None, alias="entity_id"),
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=50),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """List approvals. Non-reviewers only see requests they raised or were assigned."""
    items, total = await get_approval_requests(
        db,
        entity_type=entity_type_filter.value if entity_type_filter else None,
        entity_id=entity_id_filter,
        status=status_filter.value if status_filter else None,
        visible_to=principal,
        page=page,
        limit=limit,
    )
    return PaginatedResponse(
        data=[ApprovalResponse.model_validate(a) for a in items],
        pagination=build_pagination(page, limit, total),
    )


@router.get("/history", response_model=list[ApprovalHistoryItem])
async def approval_history(
    entity_type: EntityType = Query(...),
    entity_id: str = Query(..., min_length=1),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Approval timeline for one entity, oldest first."""
    entries = await get_approval_details(db, entity_type.value, entity_id)
    return [ApprovalHistoryItem.model_validate(e.to_dict()) for e in entries]


@router.get("/{approval_id}", response_model=ApprovalResponse, responses=ERROR_RESPONSES)
async def get_approval(
    approval_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    approval = await get_approval_request(db, approval_id)
    return ApprovalResponse.model_validate(approval)


@router.post("/{approval_id}/actions", response_model=ActionResponse, responses=ERROR_RESPONSES)
async def act_on_approval(
    approval_id: str,
    body: ApprovalTransitionRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Apply approve / reject / more_info in a single endpoint."""
    return await _transition(db, principal, approval_id, body.action, body.comments)


@router.post("/{approval_id}/approve", response_model=ActionResponse, responses=ERROR_RESPONSES)
async def approve_request(
    approval_id: str,
    body: ApprovalActionRequest = ApprovalActionRequest(),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await _transition(db, principal, approval_id, ApprovalAction.APPROVE, body.comments)


@router.post("/{approval_id}/reject", response_model=ActionResponse, responses=ERROR_RESPONSES)
async def reject_request(
    approval_id: str,
    body: ApprovalActionRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await _transition(db, principal, approval_id, ApprovalAction.REJECT, body.comments)


@router.post("/{approval_id}/more-info", response_model=ActionResponse, responses=ERROR_RESPONSES)
async def request_more_info(
    approval_id: str,
    body: ApprovalActionRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await _transition(db, principal, approval_id, ApprovalAction.MORE_INFO, body.comments)
