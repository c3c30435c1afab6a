"""
Role resolution — the single identity contract for the workflow.

Roles live in user_roles, one row per grant. Names are normalised to
lower-case on write and compared case-insensitively on read.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from approvals_api.config import settings
from approvals_api.exceptions import NotFound
from approvals_api.models.user import User, UserRole

logger = structlog.get_logger()


def normalize_role(role: str) -> str:
    return role.strip().lower()


@dataclass(frozen=True)
class Principal:
    """Authenticated actor passed explicitly into every workflow operation."""

    user_id: str
    roles: frozenset[str] = field(default_factory=frozenset)
    email: Optional[str] = None

    @classmethod
    def of(cls, user_id: str, roles: Iterable[str] = (), email: Optional[str] = None) -> "Principal":
        return cls(
            user_id=str(user_id),
            roles=frozenset(normalize_role(r) for r in roles),
            email=email,
        )

    def has_role(self, *roles: str) -> bool:
        return any(normalize_role(r) in self.roles for r in roles)

    @property
    def is_admin(self) -> bool:
        return self.has_role(settings.ADMIN_ROLE)

    @property
    def is_reviewer(self) -> bool:
        return self.is_admin or self.has_role(*settings.reviewer_roles)


async def get_user_roles(session: AsyncSession, user_id: str) -> set[str]:
    result = await session.execute(
        select(UserRole.role).where(UserRole.user_id == str(user_id))
    )
    return {normalize_role(r) for r in result.scalars().all()}


async def resolve_principal(session: AsyncSession, user_id: str) -> Principal:
    """Load an active user and its roles. Raises NotFound otherwise."""
    result = await session.execute(
        select(User).where(User.id == str(user_id), User.is_active == True)  # noqa: E712
    )
    user = result.scalar_one_or_none()
    if not user:
        logger.warning("principal_not_found", user_id=str(user_id))
        raise NotFound(f"User {user_id} not found or inactive")

    roles = await get_user_roles(session, user.id)
    return Principal.of(user.id, roles, email=user.email)


async def is_admin(session: AsyncSession, user_id: str) -> bool:
    roles = await get_user_roles(session, user_id)
    return normalize_role(settings.ADMIN_ROLE) in roles


async def grant_role(session: AsyncSession, user_id: str, role: str) -> UserRole:
    """Idempotently grant a role. Uses flush — caller owns the transaction."""
    role = normalize_role(role)
    result = await session.execute(
        select(UserRole).where(UserRole.user_id == str(user_id), UserRole.role == role)
    )
    existing = result.scalar_one_or_none()
    if existing:
        return existing

    grant = UserRole(user_id=str(user_id), role=role)
    session.add(grant)
    await session.flush()
    logger.info("role_granted", user_id=str(user_id), role=role)
    return grant


async def get_display_names(session: AsyncSession, user_ids: Iterable[str]) -> dict[str, str]:
    """Batch-load display names (full name, falling back to email)."""
    ids = list({str(u) for u in user_ids if u})
    if not ids:
        return {}
    result = await session.execute(select(User).where(User.id.in_(ids)))
    return {
        u.id: (u.full_name or u.email)
        for u in result.scalars().all()
    }
