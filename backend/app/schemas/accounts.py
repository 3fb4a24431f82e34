from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models.enums import AccountType, Currency
from app.schemas.common import ORMModel


class AccountCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    account_type: AccountType = AccountType.BANK
    currency: Currency
    opening_balance: Decimal = Field(default=Decimal("0.00"))
    project_id: int | None = None
    is_locked: bool = False


class AccountUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    account_type: AccountType | None = None
    is_locked: bool | None = None
    project_id: int | None = None
    clear_project: bool = False


class AccountOut(ORMModel):
    id: int
    name: str
    account_type: AccountType
    currency: Currency
    balance: Decimal
    opening_balance: Decimal
    project_id: int | None = None
    is_locked: bool
    created_at: datetime


class LedgerCheckOut(ORMModel):
    account_id: int
    currency: str
    opening_balance: Decimal
    stored_balance: Decimal
    replayed_balance: Decimal
    difference: Decimal
    approved_count: int
    consistent: bool
