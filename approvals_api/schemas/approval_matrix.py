from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class MatrixEntryCreate(BaseModel):
    approver_user_id: Optional[str] = Field(None, max_length=36)
    approver_role: Optional[str] = Field(None, max_length=50)
    department_id: Optional[str] = Field(None, max_length=36)
    sequence_order: int = Field(1, ge=1)
    is_active: bool = True


class MatrixEntryResponse(BaseModel):
    id: str
    approval_level_id: str
    approver_user_id: Optional[str] = None
    approver_role: Optional[str] = None
    department_id: Optional[str] = None
    sequence_order: int
    is_active: bool

    model_config = {"from_attributes": True}


class MatrixLevelCreate(BaseModel):
    level_number: int = Field(..., ge=1)
    level_name: str = Field(..., min_length=1, max_length=100)
    min_amount: Decimal = Field(Decimal("0"), ge=0)
    max_amount: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = None
    is_active: bool = True


class MatrixLevelUpdate(BaseModel):
    level_number: Optional[int] = Field(None, ge=1)
    level_name: Optional[str] = Field(None, min_length=1, max_length=100)
    min_amount: Optional[Decimal] = Field(None, ge=0)
    max_amount: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class MatrixLevelResponse(BaseModel):
    id: str
    level_number: int
    level_name: str
    min_amount: Decimal
    max_amount: Optional[Decimal] = None
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    entries: list[MatrixEntryResponse] = Field(default_factory=list)

    model_config = {"from_attributes": True}
