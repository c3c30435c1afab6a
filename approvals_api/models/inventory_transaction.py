import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, Text, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from approvals_api.database import Base


class InventoryTransaction(Base):
    """Stock movement; checkouts wait on approval before stock is released."""

    __tablename__ = "inventory_transactions"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    transaction_type: Mapped[str] = mapped_column(String(30), default="check_out")
    request_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("procurement_requests.id")
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id")
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reference: Mapped[Optional[str]] = mapped_column(String(100))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    # pending | approved | rejected
    approval_status: Mapped[str] = mapped_column(String(20), default="pending")
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_inventory_txn_qty"),
        Index("idx_inventory_txn_request", "request_id"),
    )
