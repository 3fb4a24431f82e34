from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from app.models.enums import Currency, FixedCostCycle, FixedCostStatus, TransactionType
from app.schemas.common import ORMModel


class FundCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    target_budget: Decimal | None = Field(default=None, ge=0)
    keywords: list[str] = Field(default_factory=list)


class FundUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    target_budget: Decimal | None = Field(default=None, ge=0)
    keywords: list[str] | None = None


class FundOut(ORMModel):
    id: int
    name: str
    description: str | None = None
    target_budget: Decimal | None = None
    keywords: list[str]
    created_at: datetime


class CategoryCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    category_type: TransactionType
    parent_name: str | None = Field(default=None, max_length=100)
    is_active: bool = True


class CategoryUpdateRequest(BaseModel):
    parent_name: str | None = Field(default=None, max_length=100)
    is_active: bool | None = None


class CategoryOut(ORMModel):
    id: int
    name: str
    category_type: TransactionType
    parent_name: str | None = None
    is_active: bool


class FixedCostCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    amount: Decimal = Field(gt=0, max_digits=24, decimal_places=2)
    currency: Currency
    cycle: FixedCostCycle = FixedCostCycle.MONTHLY
    status: FixedCostStatus = FixedCostStatus.ON
    category: str = Field(default="general", min_length=1, max_length=100)
    account_id: int | None = None
    project_id: int | None = None


class FixedCostUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    amount: Decimal | None = Field(default=None, gt=0, max_digits=24, decimal_places=2)
    currency: Currency | None = None
    cycle: FixedCostCycle | None = None
    status: FixedCostStatus | None = None
    category: str | None = Field(default=None, min_length=1, max_length=100)
    account_id: int | None = None
    project_id: int | None = None


class FixedCostOut(ORMModel):
    id: int
    name: str
    description: str | None = None
    amount: Decimal
    currency: Currency
    cycle: FixedCostCycle
    status: FixedCostStatus
    category: str
    account_id: int | None = None
    project_id: int | None = None
    last_generated: str | None = None
    created_at: datetime


class FixedCostSkipOut(BaseModel):
    fixed_cost_id: int
    reason: str


class FixedCostRunOut(BaseModel):
    created_transaction_ids: list[int]
    already_generated: list[int]
    skipped: list[FixedCostSkipOut]


class ActivityLogOut(ORMModel):
    id: int
    actor_user_id: int | None = None
    project_id: int | None = None
    action: str
    entity_type: str
    entity_id: str
    details: dict[str, Any] | None = None
    created_at: datetime


class AttachmentOut(BaseModel):
    url: str
    file_name: str
    size_bytes: int
    sha256: str
