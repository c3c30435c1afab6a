"""
PO approval matrix — amount-banded approval levels and the approvers bound
to each level.

Levels cover [min_amount, max_amount); a NULL max_amount is open-ended.
Overlapping bands are allowed; get_required_level picks the lowest
level_number whose band contains the amount.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from approvals_api.exceptions import NotFound, ValidationFailed
from approvals_api.models.approval_matrix import ApprovalMatrixEntry, ApprovalMatrixLevel

logger = structlog.get_logger()

_LEVEL_FIELDS = ("level_number", "level_name", "min_amount", "max_amount", "description", "is_active")
# max_amount may be cleared (open-ended band); these may not
_REQUIRED_LEVEL_FIELDS = ("level_number", "level_name", "min_amount", "is_active")


def _validate_band(min_amount: Decimal, max_amount: Optional[Decimal]) -> None:
    if min_amount < 0:
        raise ValidationFailed("min_amount cannot be negative")
    if max_amount is not None and max_amount <= min_amount:
        raise ValidationFailed(
            "max_amount must be greater than min_amount",
            details={"min_amount": str(min_amount), "max_amount": str(max_amount)},
        )


async def get_level(session: AsyncSession, level_id: str) -> ApprovalMatrixLevel:
    result = await session.execute(
        select(ApprovalMatrixLevel).where(ApprovalMatrixLevel.id == str(level_id))
    )
    level = result.scalar_one_or_none()
    if not level:
        raise NotFound(f"Approval level {level_id} not found")
    return level


async def list_levels(
    session: AsyncSession, active_only: bool = False
) -> list[ApprovalMatrixLevel]:
    q = select(ApprovalMatrixLevel).order_by(ApprovalMatrixLevel.level_number)
    if active_only:
        q = q.where(ApprovalMatrixLevel.is_active == True)  # noqa: E712
    result = await session.execute(q)
    return list(result.scalars().all())


async def create_level(
    session: AsyncSession,
    level_number: int,
    level_name: str,
    min_amount: Decimal = Decimal("0"),
    max_amount: Optional[Decimal] = None,
    description: Optional[str] = None,
    is_active: bool = True,
) -> ApprovalMatrixLevel:
    _validate_band(min_amount, max_amount)

    level = ApprovalMatrixLevel(
        level_number=level_number,
        level_name=level_name,
        min_amount=min_amount,
        max_amount=max_amount,
        description=description,
        is_active=is_active,
    )
    try:
        async with session.begin_nested():
            session.add(level)
            await session.flush()
    except IntegrityError:
        raise ValidationFailed(f"Approval level {level_number} already exists")

    await session.refresh(level, attribute_names=["entries"])
    logger.info(
        "approval_level_created",
        level_id=level.id,
        level_number=level_number,
        min_amount=str(min_amount),
        max_amount=str(max_amount) if max_amount is not None else None,
    )
    return level


async def update_level(
    session: AsyncSession, level_id: str, **changes
) -> ApprovalMatrixLevel:
    level = await get_level(session, level_id)
    unknown = set(changes) - set(_LEVEL_FIELDS)
    if unknown:
        raise ValidationFailed(f"Unknown level fields: {sorted(unknown)}")
    nulled = sorted(k for k in _REQUIRED_LEVEL_FIELDS if k in changes and changes[k] is None)
    if nulled:
        raise ValidationFailed(
            f"Level fields cannot be null: {nulled}", details={"fields": nulled}
        )

    min_amount = changes.get("min_amount", level.min_amount)
    max_amount = changes.get("max_amount", level.max_amount)
    _validate_band(Decimal(min_amount), Decimal(max_amount) if max_amount is not None else None)

    level_number = changes.get("level_number", level.level_number)
    for key, value in changes.items():
        setattr(level, key, value)

    try:
        async with session.begin_nested():
            await session.flush()
    except IntegrityError:
        raise ValidationFailed(f"Approval level {level_number} already exists")

    logger.info("approval_level_updated", level_id=level.id, fields=sorted(changes))
    return level


async def delete_level(session: AsyncSession, level_id: str) -> None:
    """Delete a level together with all of its matrix entries."""
    level = await get_level(session, level_id)
    entry_count = len(level.entries)
    await session.delete(level)
    await session.flush()
    logger.info("approval_level_deleted", level_id=str(level_id), entries_deleted=entry_count)


async def add_entry(
    session: AsyncSession,
    level_id: str,
    approver_user_id: Optional[str] = None,
    approver_role: Optional[str] = None,
    department_id: Optional[str] = None,
    sequence_order: int = 1,
    is_active: bool = True,
) -> ApprovalMatrixEntry:
    if not approver_user_id and not approver_role:
        raise ValidationFailed("An entry needs an approver user or an approver role")
    if sequence_order < 1:
        raise ValidationFailed("sequence_order must be positive")

    level = await get_level(session, level_id)
    entry = ApprovalMatrixEntry(
        approval_level_id=level.id,
        approver_user_id=approver_user_id,
        approver_role=approver_role.strip().lower() if approver_role else None,
        department_id=department_id,
        sequence_order=sequence_order,
        is_active=is_active,
    )
    session.add(entry)
    await session.flush()
    logger.info(
        "approval_matrix_entry_added",
        level_id=level.id,
        entry_id=entry.id,
        approver_user_id=approver_user_id,
        approver_role=entry.approver_role,
    )
    return entry


async def list_entries(
    session: AsyncSession,
    level_id: str,
    department_id: Optional[str] = None,
) -> list[ApprovalMatrixEntry]:
    """Entries for a level in chain order. department_id also matches unscoped entries."""
    await get_level(session, level_id)
    q = select(ApprovalMatrixEntry).where(ApprovalMatrixEntry.approval_level_id == str(level_id))
    if department_id:
        q = q.where(
            or_(
                ApprovalMatrixEntry.department_id == department_id,
                ApprovalMatrixEntry.department_id.is_(None),
            )
        )
    result = await session.execute(q.order_by(ApprovalMatrixEntry.sequence_order))
    return list(result.scalars().all())


async def delete_entry(session: AsyncSession, entry_id: str) -> None:
    result = await session.execute(
        select(ApprovalMatrixEntry).where(ApprovalMatrixEntry.id == str(entry_id))
    )
    entry = result.scalar_one_or_none()
    if not entry:
        raise NotFound(f"Approval matrix entry {entry_id} not found")
    await session.delete(entry)
    await session.flush()
    logger.info("approval_matrix_entry_deleted", entry_id=str(entry_id))


async def get_required_level(
    session: AsyncSession, amount: Decimal
) -> Optional[ApprovalMatrixLevel]:
    """Active level whose band contains amount, lowest level_number first."""
    result = await session.execute(
        select(ApprovalMatrixLevel)
        .where(
            ApprovalMatrixLevel.is_active == True,  # noqa: E712
            ApprovalMatrixLevel.min_amount <= amount,
            or_(
                ApprovalMatrixLevel.max_amount.is_(None),
                ApprovalMatrixLevel.max_amount > amount,
            ),
        )
        .order_by(ApprovalMatrixLevel.level_number)
        .limit(1)
    )
    return result.scalars().first()
