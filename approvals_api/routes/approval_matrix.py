"""
PO approval matrix routes — manage amount-banded levels and their approvers.

Reads are open to any authenticated user; writes need a matrix manager role.
"""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from approvals_api.config import settings
from approvals_api.database import get_db
from approvals_api.middleware.auth import get_current_principal
from approvals_api.middleware.authorization import require_roles
from approvals_api.schemas.approval_matrix import (
    MatrixEntryCreate,
    MatrixEntryResponse,
    MatrixLevelCreate,
    MatrixLevelResponse,
    MatrixLevelUpdate,
)
from approvals_api.services import approval_matrix_service as matrix
from approvals_api.services.role_service import Principal

router = APIRouter()

require_matrix_manager = require_roles(*settings.matrix_manager_roles)


@router.get("/levels", response_model=list[MatrixLevelResponse])
async def list_levels(
    active_only: bool = Query(False),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await matrix.list_levels(db, active_only=active_only)


@router.post("/levels", response_model=MatrixLevelResponse, status_code=status.HTTP_201_CREATED)
async def create_level(
    body: MatrixLevelCreate,
    _auth: None = Depends(require_matrix_manager),
    db: AsyncSession = Depends(get_db),
):
    return await matrix.create_level(db, **body.model_dump())


@router.get("/levels/{level_id}", response_model=MatrixLevelResponse)
async def get_level(
    level_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await matrix.get_level(db, level_id)


@router.patch("/levels/{level_id}", response_model=MatrixLevelResponse)
async def update_level(
    level_id: str,
    body: MatrixLevelUpdate,
    _auth: None = Depends(require_matrix_manager),
    db: AsyncSession = Depends(get_db),
):
    return await matrix.update_level(db, level_id, **body.model_dump(exclude_unset=True))


@router.delete("/levels/{level_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_level(
    level_id: str,
    _auth: None = Depends(require_matrix_manager),
    db: AsyncSession = Depends(get_db),
):
    await matrix.delete_level(db, level_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/levels/{level_id}/entries", response_model=list[MatrixEntryResponse])
async def list_entries(
    level_id: str,
    department_id: Optional[str] = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await matrix.list_entries(db, level_id, department_id=department_id)


@router.post(
    "/levels/{level_id}/entries",
    response_model=MatrixEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_entry(
    level_id: str,
    body: MatrixEntryCreate,
    _auth: None = Depends(require_matrix_manager),
    db: AsyncSession = Depends(get_db),
):
    return await matrix.add_entry(db, level_id, **body.model_dump())


@router.delete("/entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    entry_id: str,
    _auth: None = Depends(require_matrix_manager),
    db: AsyncSession = Depends(get_db),
):
    await matrix.delete_entry(db, entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/resolve", response_model=Optional[MatrixLevelResponse])
async def resolve_level(
    amount: Decimal = Query(..., ge=0),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Level that must sign off a PO of the given amount (null when none matches)."""
    return await matrix.get_required_level(db, amount)
