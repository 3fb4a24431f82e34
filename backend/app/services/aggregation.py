"""Read-side rollups over the transaction log.

``aggregate`` is a pure function: it never touches the session, never reads
the clock and orders every collection explicitly, so identical inputs always
produce an identical :class:`Report`.

Two mutually exclusive modes exist per call. With ``ReportFilter.currency``
set, only that currency is considered and amounts are reported natively.
Otherwise every amount is converted into ``report_currency`` through the rate
table; a currency missing from the table converts at 1 (best effort).
"""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Literal

from app.models.enums import Currency, TransactionStatus, TransactionType
from app.utils.currency import convert_currency, currency_code, exceeds_threshold
from app.utils.decimal_math import money, pct


Granularity = Literal["day", "month"]

UNCATEGORIZED = "Other"
TOP_CATEGORY_COUNT = 5
MONTHLY_SERIES_LENGTH = 6


@dataclass(frozen=True)
class ReportFilter:
    date_from: date | None = None
    date_to: date | None = None
    project_id: int | None = None
    currency: Currency | str | None = None
    granularity: Granularity = "day"
    # Caller scope: ``None`` means unrestricted (admin).
    project_ids: frozenset[int] | None = None
    report_currency: str = "USD"
    watchlist_limit: int = 5


@dataclass(frozen=True)
class CurrencyTotals:
    currency: str
    income: Decimal
    expense: Decimal
    net: Decimal


@dataclass(frozen=True)
class CategoryTotals:
    name: str
    income: Decimal
    expense: Decimal


@dataclass(frozen=True)
class TrendPoint:
    bucket: str
    values: dict[str, Decimal]


@dataclass(frozen=True)
class MonthlyTotals:
    month: str
    income: Decimal
    expense: Decimal


@dataclass(frozen=True)
class ProjectTotals:
    project_id: int
    name: str
    status: str
    income: Decimal
    expense: Decimal
    net: Decimal
    budget: Decimal | None
    budget_remaining: Decimal | None
    budget_used_pct: Decimal | None


@dataclass(frozen=True)
class FundTotals:
    fund_id: int
    name: str
    expense: Decimal
    target_budget: Decimal | None


@dataclass(frozen=True)
class WatchItem:
    transaction_id: int
    transaction_type: str
    status: str
    amount: Decimal
    currency: str
    category: str
    tx_date: date
    account_id: int
    project_id: int | None


@dataclass(frozen=True)
class AccountBalance:
    account_id: int
    name: str
    currency: str
    balance: Decimal
    converted_balance: Decimal


@dataclass(frozen=True)
class Report:
    mode: Literal["normalized", "native"]
    currency: str
    transaction_count: int
    totals: CurrencyTotals
    per_currency: list[CurrencyTotals]
    categories: list[CategoryTotals]
    top_categories: list[str]
    category_trend: list[TrendPoint]
    monthly: list[MonthlyTotals]
    projects: list[ProjectTotals]
    funds: list[FundTotals]
    high_value: list[WatchItem]
    pending: list[WatchItem]
    pending_count: int
    accounts: list[AccountBalance]
    total_balance: Decimal
    filters: dict[str, Any] = field(default_factory=dict)


def _enum_value(value: Any) -> str:
    return value.value if hasattr(value, "value") else str(value)


def category_key(transaction: Any) -> str:
    return transaction.parent_category or transaction.category or UNCATEGORIZED


def _in_scope_project(project_id: int | None, flt: ReportFilter) -> bool:
    if flt.project_ids is not None and project_id not in flt.project_ids:
        return False
    if flt.project_id is not None and project_id != flt.project_id:
        return False
    return True


def _in_scope(transaction: Any, flt: ReportFilter) -> bool:
    if not _in_scope_project(transaction.project_id, flt):
        return False
    if flt.currency is not None and currency_code(transaction.currency) != currency_code(flt.currency):
        return False
    if flt.date_from is not None and transaction.tx_date < flt.date_from:
        return False
    if flt.date_to is not None and transaction.tx_date > flt.date_to:
        return False
    return True


def _bucket(tx_date: date, granularity: Granularity) -> str:
    if granularity == "month":
        return f"{tx_date.year:04d}-{tx_date.month:02d}"
    return tx_date.isoformat()


def _watch_item(transaction: Any) -> WatchItem:
    return WatchItem(
        transaction_id=transaction.id,
        transaction_type=_enum_value(transaction.transaction_type),
        status=_enum_value(transaction.status),
        amount=money(transaction.amount),
        currency=currency_code(transaction.currency),
        category=category_key(transaction),
        tx_date=transaction.tx_date,
        account_id=transaction.account_id,
        project_id=transaction.project_id,
    )


def _newest_first(transactions: Iterable[Any]) -> list[Any]:
    return sorted(transactions, key=lambda tx: (tx.tx_date, tx.id), reverse=True)


def _match_fund(transaction: Any, funds: list[Any]) -> Any | None:
    if transaction.fund_id is not None:
        for fund in funds:
            if fund.id == transaction.fund_id:
                return fund
    category = (transaction.category or "").strip().lower()
    if not category:
        return None
    for fund in funds:
        name = (fund.name or "").strip().lower()
        if name and (name in category or category in name):
            return fund
        keywords = [str(keyword).strip().lower() for keyword in (fund.keywords or [])]
        if any(keyword and keyword in category for keyword in keywords):
            return fund
    return None


def aggregate(
    transactions: Iterable[Any],
    accounts: Iterable[Any],
    rates: Mapping[str, Decimal],
    flt: ReportFilter,
    *,
    projects: Iterable[Any] = (),
    funds: Iterable[Any] = (),
) -> Report:
    native = flt.currency is not None
    target = currency_code(flt.currency) if native else currency_code(flt.report_currency)

    def value(amount: Decimal, currency: Any) -> Decimal:
        if native:
            return Decimal(str(amount))
        return convert_currency(Decimal(str(amount)), currency, target, rates)

    scoped = sorted(
        (tx for tx in transactions if _in_scope(tx, flt)),
        key=lambda tx: (tx.tx_date, tx.id),
    )
    approved = [tx for tx in scoped if tx.status == TransactionStatus.APPROVED]

    total_in = Decimal("0")
    total_out = Decimal("0")
    native_totals: dict[str, list[Decimal]] = defaultdict(lambda: [Decimal("0"), Decimal("0")])
    category_totals: dict[str, list[Decimal]] = defaultdict(lambda: [Decimal("0"), Decimal("0")])
    monthly_totals: dict[str, list[Decimal]] = defaultdict(lambda: [Decimal("0"), Decimal("0")])
    project_totals: dict[int, list[Decimal]] = defaultdict(lambda: [Decimal("0"), Decimal("0")])
    bucket_expense: dict[str, dict[str, Decimal]] = defaultdict(lambda: defaultdict(Decimal))

    for tx in approved:
        amount = value(tx.amount, tx.currency)
        slot = 0 if tx.transaction_type == TransactionType.IN else 1
        if slot == 0:
            total_in += amount
        else:
            total_out += amount
            bucket_expense[_bucket(tx.tx_date, flt.granularity)][category_key(tx)] += amount
        native_totals[currency_code(tx.currency)][slot] += Decimal(str(tx.amount))
        category_totals[category_key(tx)][slot] += amount
        monthly_totals[_bucket(tx.tx_date, "month")][slot] += amount
        if tx.project_id is not None:
            project_totals[tx.project_id][slot] += amount

    per_currency = [
        CurrencyTotals(
            currency=code,
            income=money(sums[0]),
            expense=money(sums[1]),
            net=money(sums[0] - sums[1]),
        )
        for code, sums in sorted(native_totals.items())
    ]

    categories = sorted(
        (
            CategoryTotals(name=name, income=money(sums[0]), expense=money(sums[1]))
            for name, sums in category_totals.items()
        ),
        key=lambda row: (-row.expense, -row.income, row.name),
    )
    top_categories = [row.name for row in categories if row.expense > 0][:TOP_CATEGORY_COUNT]
    category_trend = [
        TrendPoint(
            bucket=bucket,
            values={name: money(bucket_expense[bucket].get(name, Decimal("0"))) for name in top_categories},
        )
        for bucket in sorted(bucket_expense)
    ]

    monthly = [
        MonthlyTotals(month=month, income=money(sums[0]), expense=money(sums[1]))
        for month, sums in sorted(monthly_totals.items())
    ][-MONTHLY_SERIES_LENGTH:]

    project_rows: list[ProjectTotals] = []
    for project in sorted(projects, key=lambda item: item.id):
        if not _in_scope_project(project.id, flt):
            continue
        income, expense = project_totals.get(project.id, [Decimal("0"), Decimal("0")])
        budget: Decimal | None = None
        if project.budget is not None:
            if not native:
                budget = money(value(project.budget, project.currency))
            elif currency_code(project.currency) == target:
                budget = money(project.budget)
        remaining = money(budget - expense) if budget is not None else None
        used_pct = pct(expense / budget * Decimal("100")) if budget else None
        project_rows.append(
            ProjectTotals(
                project_id=project.id,
                name=project.name,
                status=_enum_value(project.status),
                income=money(income),
                expense=money(expense),
                net=money(income - expense),
                budget=budget,
                budget_remaining=remaining,
                budget_used_pct=used_pct,
            )
        )

    fund_list = sorted(funds, key=lambda item: item.id)
    fund_expense: dict[int, Decimal] = {fund.id: Decimal("0") for fund in fund_list}
    for tx in approved:
        if tx.transaction_type != TransactionType.OUT:
            continue
        fund = _match_fund(tx, fund_list)
        if fund is not None:
            fund_expense[fund.id] += value(tx.amount, tx.currency)
    fund_rows = [
        FundTotals(
            fund_id=fund.id,
            name=fund.name,
            expense=money(fund_expense[fund.id]),
            target_budget=money(fund.target_budget) if fund.target_budget is not None else None,
        )
        for fund in fund_list
    ]

    limit = max(0, flt.watchlist_limit)
    high_value = [
        tx
        for tx in scoped
        if tx.transaction_type == TransactionType.OUT and exceeds_threshold(tx.amount, tx.currency)
    ]
    pending = [tx for tx in scoped if tx.status == TransactionStatus.PENDING]

    account_rows: list[AccountBalance] = []
    total_balance = Decimal("0")
    for account in sorted(accounts, key=lambda item: item.id):
        if not _in_scope_project(account.project_id, flt):
            continue
        if native and currency_code(account.currency) != target:
            continue
        converted = value(account.balance, account.currency)
        total_balance += converted
        account_rows.append(
            AccountBalance(
                account_id=account.id,
                name=account.name,
                currency=currency_code(account.currency),
                balance=money(account.balance),
                converted_balance=money(converted),
            )
        )

    return Report(
        mode="native" if native else "normalized",
        currency=target,
        transaction_count=len(scoped),
        totals=CurrencyTotals(
            currency=target,
            income=money(total_in),
            expense=money(total_out),
            net=money(total_in - total_out),
        ),
        per_currency=per_currency,
        categories=categories,
        top_categories=top_categories,
        category_trend=category_trend,
        monthly=monthly,
        projects=project_rows,
        funds=fund_rows,
        high_value=[_watch_item(tx) for tx in _newest_first(high_value)[:limit]],
        pending=[_watch_item(tx) for tx in _newest_first(pending)[:limit]],
        pending_count=len(pending),
        accounts=account_rows,
        total_balance=money(total_balance),
        filters={
            "date_from": flt.date_from.isoformat() if flt.date_from else None,
            "date_to": flt.date_to.isoformat() if flt.date_to else None,
            "project_id": flt.project_id,
            "currency": currency_code(flt.currency) if native else None,
            "granularity": flt.granularity,
        },
    )
