"""
Seed script: creates users with roles, a sample procurement request and the
default PO approval matrix levels.
Run from the project root: python -m scripts.seed
"""
import asyncio
import sys
import os
from decimal import Decimal

# Ensure the project root is on sys.path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select
from approvals_api.database import AsyncSessionLocal, engine
from approvals_api.models.user import User
from approvals_api.models.procurement_request import ProcurementRequest
from approvals_api.services.approval_matrix_service import add_entry, create_level
from approvals_api.services.role_service import grant_role

# ---------- Fixed IDs ----------

USER_ADMIN_ID = "a0000000-0000-0000-0000-000000000001"
USER_MANAGER_ID = "a0000000-0000-0000-0000-000000000002"
USER_PROCUREMENT_ID = "a0000000-0000-0000-0000-000000000003"
USER_REQUESTER_ID = "a0000000-0000-0000-0000-000000000004"

PR_SAMPLE_ID = "PR-1"

USERS = [
    (USER_ADMIN_ID, "admin@example.com", "Ada Admin", ["admin"]),
    (USER_MANAGER_ID, "manager@example.com", "Morgan Manager", ["manager", "approver"]),
    (USER_PROCUREMENT_ID, "procurement@example.com", "Pat Procurement", ["procurement_officer"]),
    (USER_REQUESTER_ID, "requester@example.com", "Riley Requester", ["employee"]),
]

LEVELS = [
    (1, "Department approval", Decimal("0"), Decimal("50000"), USER_MANAGER_ID),
    (2, "Procurement approval", Decimal("50000"), Decimal("200000"), USER_PROCUREMENT_ID),
    (3, "Executive approval", Decimal("200000"), None, USER_ADMIN_ID),
]


async def seed():
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(User).where(User.id == USER_ADMIN_ID))
        if result.scalar_one_or_none():
            print("Seed data already exists. Skipping.")
            return

        # --- Users & roles ---
        for user_id, email, name, roles in USERS:
            db.add(User(id=user_id, email=email, full_name=name, is_active=True))
        await db.flush()
        for user_id, _, _, roles in USERS:
            for role in roles:
                await grant_role(db, user_id, role)
        print(f"  Users: {len(USERS)}")

        # --- Procurement request ---
        db.add(ProcurementRequest(
            id=PR_SAMPLE_ID,
            request_number="PR-000001",
            title="Laptops for new hires",
            requester_id=USER_REQUESTER_ID,
            status="submitted",
        ))
        await db.flush()
        print("  Procurement requests: 1")

        # --- Approval matrix ---
        for number, name, low, high, approver in LEVELS:
            level = await create_level(db, number, name, min_amount=low, max_amount=high)
            await add_entry(db, level.id, approver_user_id=approver)
        print(f"  Approval levels: {len(LEVELS)}")

        await db.commit()
        print("Seed complete.")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
