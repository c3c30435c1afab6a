"""Central model registry — import all models so Alembic autodiscover works."""

from approvals_api.database import Base  # noqa: F401

from approvals_api.models.user import User, UserRole  # noqa: F401
from approvals_api.models.procurement_request import ProcurementRequest  # noqa: F401
from approvals_api.models.inventory_transaction import InventoryTransaction  # noqa: F401
from approvals_api.models.approval import ApprovalRequest  # noqa: F401
from approvals_api.models.approval_matrix import ApprovalMatrixLevel, ApprovalMatrixEntry  # noqa: F401
from approvals_api.models.audit_log import AuditLog  # noqa: F401
