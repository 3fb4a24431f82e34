from datetime import date
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class _ReportModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class CurrencyTotalsOut(_ReportModel):
    currency: str
    income: Decimal
    expense: Decimal
    net: Decimal


class CategoryTotalsOut(_ReportModel):
    name: str
    income: Decimal
    expense: Decimal


class TrendPointOut(_ReportModel):
    bucket: str
    values: dict[str, Decimal]


class MonthlyTotalsOut(_ReportModel):
    month: str
    income: Decimal
    expense: Decimal


class ProjectTotalsOut(_ReportModel):
    project_id: int
    name: str
    status: str
    income: Decimal
    expense: Decimal
    net: Decimal
    budget: Decimal | None = None
    budget_remaining: Decimal | None = None
    budget_used_pct: Decimal | None = None


class FundTotalsOut(_ReportModel):
    fund_id: int
    name: str
    expense: Decimal
    target_budget: Decimal | None = None


class WatchItemOut(_ReportModel):
    transaction_id: int
    transaction_type: str
    status: str
    amount: Decimal
    currency: str
    category: str
    tx_date: date
    account_id: int
    project_id: int | None = None


class AccountBalanceOut(_ReportModel):
    account_id: int
    name: str
    currency: str
    balance: Decimal
    converted_balance: Decimal


class ReportOut(_ReportModel):
    mode: Literal["normalized", "native"]
    currency: str
    rates_fallback: bool = False
    transaction_count: int
    totals: CurrencyTotalsOut
    per_currency: list[CurrencyTotalsOut]
    categories: list[CategoryTotalsOut]
    top_categories: list[str]
    category_trend: list[TrendPointOut]
    monthly: list[MonthlyTotalsOut]
    projects: list[ProjectTotalsOut]
    funds: list[FundTotalsOut]
    high_value: list[WatchItemOut]
    pending: list[WatchItemOut]
    pending_count: int
    accounts: list[AccountBalanceOut]
    total_balance: Decimal
    filters: dict[str, Any]
