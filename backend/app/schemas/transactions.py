from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models.enums import Currency, TransactionStatus, TransactionType
from app.schemas.common import ORMModel


class TransactionCreateRequest(BaseModel):
    transaction_type: TransactionType
    amount: Decimal = Field(
        gt=0,
        max_digits=24,
        decimal_places=2,
        description="Positive amount in the account's currency.",
    )
    currency: Currency
    account_id: int
    category: str = Field(default="general", min_length=1, max_length=100)
    parent_category: str | None = Field(default=None, max_length=100)
    description: str = Field(default="", max_length=1000)
    source: str | None = Field(default=None, max_length=100)
    tx_date: date | None = None
    project_id: int | None = None
    fund_id: int | None = None
    attachment_urls: list[str] = Field(default_factory=list)


class TransactionUpdateRequest(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0, max_digits=24, decimal_places=2)
    description: str | None = Field(default=None, max_length=1000)
    category: str | None = Field(default=None, min_length=1, max_length=100)
    parent_category: str | None = Field(default=None, max_length=100)
    source: str | None = Field(default=None, max_length=100)
    tx_date: date | None = None
    fund_id: int | None = None
    attachment_urls: list[str] | None = None


class TransactionRejectRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


class TransactionOut(ORMModel):
    id: int
    transaction_type: TransactionType
    amount: Decimal
    currency: Currency
    category: str
    parent_category: str | None = None
    description: str
    source: str | None = None
    tx_date: date
    status: TransactionStatus
    flagged_for_review: bool
    account_id: int
    project_id: int | None = None
    fund_id: int | None = None
    reference: str | None = None
    attachment_urls: list[str] = Field(default_factory=list)
    fixed_cost_id: int | None = None
    fixed_cost_period: str | None = None
    created_by_user_id: int | None = None
    approved_by_user_id: int | None = None
    rejected_by_user_id: int | None = None
    rejection_reason: str | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class TransactionCreateResponse(BaseModel):
    transaction: TransactionOut
    warnings: list[str]


class TransferRequest(BaseModel):
    from_account_id: int
    to_account_id: int
    amount: Decimal = Field(gt=0, max_digits=24, decimal_places=2)
    manual_rate: Decimal | None = Field(
        default=None,
        gt=0,
        le=1_000_000_000,
        description="Units of the destination currency per unit of the source currency.",
    )
    description: str = Field(default="", max_length=1000)
    tx_date: date | None = None


class TransferResponse(BaseModel):
    reference: str
    rate: Decimal
    received_amount: Decimal
    outgoing: TransactionOut
    incoming: TransactionOut
