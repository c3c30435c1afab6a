import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Text,
    ForeignKey,
    Index,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from approvals_api.database import Base


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    MORE_INFO = "more_info"


class ApprovalAction(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"
    MORE_INFO = "more_info"


# Each reviewer decision lands the request in exactly one terminal state
ACTION_TO_STATUS = {
    ApprovalAction.APPROVE: ApprovalStatus.APPROVED,
    ApprovalAction.REJECT: ApprovalStatus.REJECTED,
    ApprovalAction.MORE_INFO: ApprovalStatus.MORE_INFO,
}

TERMINAL_STATUSES = frozenset(
    {ApprovalStatus.APPROVED.value, ApprovalStatus.REJECTED.value, ApprovalStatus.MORE_INFO.value}
)


class EntityType(str, enum.Enum):
    PROCUREMENT_REQUEST = "procurement_request"
    INVOICE = "invoice"
    PURCHASE_ORDER = "purchase_order"
    INVENTORY_CHECKOUT = "inventory_checkout"
    GRN = "grn"


class ApprovalRequest(Base):
    __tablename__ = "approvals"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    # Weak reference: resolved against the table named by entity_type
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApprovalStatus.PENDING.value
    )
    requester_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )
    approver_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id")
    )
    title: Mapped[Optional[str]] = mapped_column(String(255))
    comments: Mapped[Optional[str]] = mapped_column(Text)
    approval_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        Index("idx_approvals_entity", "entity_type", "entity_id", "created_at"),
        Index("idx_approvals_approver", "approver_id", "status"),
        Index("idx_approvals_requester", "requester_id"),
        # At most one pending request per entity
        Index(
            "uq_approvals_entity_pending",
            "entity_type",
            "entity_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING.value

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
