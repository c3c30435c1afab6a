import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    Integer,
    Numeric,
    Boolean,
    DateTime,
    Text,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from approvals_api.database import Base


class ApprovalMatrixLevel(Base):
    """PO approval tier covering the amount range [min_amount, max_amount)."""

    __tablename__ = "po_approval_levels"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    level_number: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    level_name: Mapped[str] = mapped_column(String(100), nullable=False)
    min_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0")
    )
    # NULL means open-ended
    max_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2))
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    entries: Mapped[list["ApprovalMatrixEntry"]] = relationship(
        back_populates="level",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ApprovalMatrixEntry.sequence_order",
    )

    __table_args__ = (
        CheckConstraint("level_number > 0", name="chk_po_level_number_positive"),
        CheckConstraint("min_amount >= 0", name="chk_po_level_min_amount"),
        Index("idx_po_approval_levels_amount", "min_amount", "max_amount"),
    )


class ApprovalMatrixEntry(Base):
    """Approver bound to a level, optionally scoped to one department."""

    __tablename__ = "po_approval_matrix"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    approval_level_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("po_approval_levels.id", ondelete="CASCADE"),
        nullable=False,
    )
    department_id: Mapped[Optional[str]] = mapped_column(String(36))
    approver_role: Mapped[Optional[str]] = mapped_column(String(50))
    approver_user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id")
    )
    sequence_order: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    level: Mapped[ApprovalMatrixLevel] = relationship(back_populates="entries")

    __table_args__ = (
        CheckConstraint("sequence_order > 0", name="chk_po_matrix_sequence_positive"),
        Index("idx_po_approval_matrix_level", "approval_level_id"),
    )
