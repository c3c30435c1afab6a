from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from approvals_api.models.approval import ApprovalAction, EntityType


class ApprovalResponse(BaseModel):
    id: str
    entity_type: str
    entity_id: str
    status: str
    requester_id: str
    approver_id: Optional[str] = None
    title: Optional[str] = None
    comments: Optional[str] = None
    approval_date: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ApprovalCreateRequest(BaseModel):
    entity_type: EntityType
    entity_id: str = Field(..., min_length=1, max_length=64)
    title: Optional[str] = Field(None, max_length=255)
    approver_id: Optional[str] = Field(None, max_length=36)


class ApprovalActionRequest(BaseModel):
    comments: Optional[str] = Field(None, max_length=2000)


class ApprovalTransitionRequest(ApprovalActionRequest):
    action: ApprovalAction


class WorkflowResponse(BaseModel):
    success: bool
    message: str
    created: bool = False
    auto_approved: bool = False
    approval: Optional[ApprovalResponse] = None


class ActionResponse(BaseModel):
    message: str
    previous_status: str
    new_status: str
    cascaded: bool
    approval: ApprovalResponse


class ApprovalHistoryItem(BaseModel):
    id: str
    status: str
    created_at: datetime
    requester_id: str
    requester_name: str
    approver_id: Optional[str] = None
    approval_date: Optional[datetime] = None
    title: Optional[str] = None
    comments: Optional[str] = None

    model_config = {"from_attributes": True}
