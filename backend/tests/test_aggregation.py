from datetime import date
from decimal import Decimal

from app.models.account import Account
from app.models.enums import Currency, ProjectStatus, TransactionStatus, TransactionType
from app.models.fund import Fund
from app.models.project import Project
from app.models.transaction import Transaction
from app.services.aggregation import ReportFilter, aggregate


RATES = {"USD": Decimal("1"), "VND": Decimal("25000"), "KHR": Decimal("4000")}


def _tx(
    tx_id: int,
    transaction_type: TransactionType,
    amount: str,
    currency: Currency,
    tx_date: date,
    status: TransactionStatus,
    *,
    category: str,
    parent_category: str | None = None,
    account_id: int = 1,
    project_id: int | None = 1,
    fund_id: int | None = None,
) -> Transaction:
    return Transaction(
        id=tx_id,
        transaction_type=transaction_type,
        amount=Decimal(amount),
        currency=currency,
        category=category,
        parent_category=parent_category,
        tx_date=tx_date,
        status=status,
        account_id=account_id,
        project_id=project_id,
        fund_id=fund_id,
    )


def _fixture() -> dict:
    transactions = [
        _tx(1, TransactionType.IN, "50000000", Currency.VND, date(2026, 1, 5), TransactionStatus.APPROVED,
            category="Grant", parent_category="Funding"),
        _tx(2, TransactionType.OUT, "2500000", Currency.VND, date(2026, 1, 10), TransactionStatus.APPROVED,
            category="Rent", parent_category="Facilities"),
        _tx(3, TransactionType.OUT, "40", Currency.USD, date(2026, 2, 3), TransactionStatus.APPROVED,
            category="ads campaign", account_id=2, project_id=2),
        _tx(4, TransactionType.OUT, "250", Currency.USD, date(2026, 2, 4), TransactionStatus.PENDING,
            category="Laptop", account_id=2, project_id=2),
        _tx(5, TransactionType.OUT, "6000000", Currency.VND, date(2026, 2, 10), TransactionStatus.REJECTED,
            category="Salary", parent_category="Personnel"),
        _tx(6, TransactionType.IN, "400000", Currency.KHR, date(2026, 2, 15), TransactionStatus.APPROVED,
            category="Donation", account_id=3),
    ]
    accounts = [
        Account(id=1, name="Operating VND", currency=Currency.VND, balance=Decimal("47500000"), project_id=1),
        Account(id=2, name="Field USD", currency=Currency.USD, balance=Decimal("960"), project_id=2),
        Account(id=3, name="Cash KHR", currency=Currency.KHR, balance=Decimal("400000"), project_id=1),
    ]
    projects = [
        Project(id=1, name="Fit-out", status=ProjectStatus.ACTIVE, budget=Decimal("100000000"), currency=Currency.VND),
        Project(id=2, name="Outreach", status=ProjectStatus.PAUSED, budget=Decimal("1000"), currency=Currency.USD),
    ]
    funds = [
        Fund(id=1, name="Marketing", keywords=["ads"], target_budget=Decimal("3000")),
        Fund(id=2, name="Equipment", keywords=["laptop"], target_budget=None),
    ]
    return {"transactions": transactions, "accounts": accounts, "projects": projects, "funds": funds}


def _run(flt: ReportFilter, rates=RATES, reverse: bool = False):
    data = _fixture()
    order = (lambda items: list(reversed(items))) if reverse else list
    return aggregate(
        order(data["transactions"]),
        order(data["accounts"]),
        rates,
        flt,
        projects=order(data["projects"]),
        funds=order(data["funds"]),
    )


def test_normalized_report_golden_values() -> None:
    report = _run(ReportFilter())

    assert report.mode == "normalized"
    assert report.currency == "USD"
    assert report.transaction_count == 6
    assert (report.totals.income, report.totals.expense, report.totals.net) == (
        Decimal("2100.00"),
        Decimal("140.00"),
        Decimal("1960.00"),
    )
    assert [(row.currency, row.income, row.expense) for row in report.per_currency] == [
        ("KHR", Decimal("400000.00"), Decimal("0.00")),
        ("USD", Decimal("0.00"), Decimal("40.00")),
        ("VND", Decimal("50000000.00"), Decimal("2500000.00")),
    ]
    assert [row.name for row in report.categories] == ["Facilities", "ads campaign", "Funding", "Donation"]
    assert report.top_categories == ["Facilities", "ads campaign"]
    assert [(point.bucket, point.values) for point in report.category_trend] == [
        ("2026-01-10", {"Facilities": Decimal("100.00"), "ads campaign": Decimal("0.00")}),
        ("2026-02-03", {"Facilities": Decimal("0.00"), "ads campaign": Decimal("40.00")}),
    ]
    assert [(row.month, row.income, row.expense) for row in report.monthly] == [
        ("2026-01", Decimal("2000.00"), Decimal("100.00")),
        ("2026-02", Decimal("100.00"), Decimal("40.00")),
    ]


def test_project_budget_rows_are_converted() -> None:
    report = _run(ReportFilter())

    fit_out, outreach = report.projects
    assert (fit_out.income, fit_out.expense, fit_out.net) == (Decimal("2100.00"), Decimal("100.00"), Decimal("2000.00"))
    assert (fit_out.budget, fit_out.budget_remaining, fit_out.budget_used_pct) == (
        Decimal("4000.00"),
        Decimal("3900.00"),
        Decimal("2.50"),
    )
    assert outreach.status == "PAUSED"
    assert (outreach.expense, outreach.budget_remaining, outreach.budget_used_pct) == (
        Decimal("40.00"),
        Decimal("960.00"),
        Decimal("4.00"),
    )


def test_funds_match_by_id_then_name_or_keyword() -> None:
    data = _fixture()
    data["transactions"].append(
        _tx(7, TransactionType.OUT, "10", Currency.USD, date(2026, 2, 20), TransactionStatus.APPROVED,
            category="Misc", account_id=2, project_id=2, fund_id=2)
    )
    report = aggregate(
        data["transactions"], data["accounts"], RATES, ReportFilter(), projects=data["projects"], funds=data["funds"]
    )

    assert [(row.name, row.expense) for row in report.funds] == [
        ("Marketing", Decimal("40.00")),
        ("Equipment", Decimal("10.00")),
    ]


def test_watchlists_are_newest_first_and_capped() -> None:
    report = _run(ReportFilter())

    assert [item.transaction_id for item in report.high_value] == [5, 4]
    assert [item.transaction_id for item in report.pending] == [4]
    assert report.pending_count == 1

    capped = _run(ReportFilter(watchlist_limit=1))
    assert [item.transaction_id for item in capped.high_value] == [5]


def test_account_balances_convert_into_report_currency() -> None:
    report = _run(ReportFilter())

    assert [(row.account_id, row.converted_balance) for row in report.accounts] == [
        (1, Decimal("1900.00")),
        (2, Decimal("960.00")),
        (3, Decimal("100.00")),
    ]
    assert report.total_balance == Decimal("2960.00")


def test_single_currency_report_applies_no_conversion() -> None:
    absurd_rates = {"USD": Decimal("7"), "VND": Decimal("0.5"), "KHR": Decimal("3")}

    report = _run(ReportFilter(currency=Currency.VND), rates=absurd_rates)

    assert report.mode == "native"
    assert report.currency == "VND"
    assert report.transaction_count == 3
    assert (report.totals.income, report.totals.expense) == (Decimal("50000000.00"), Decimal("2500000.00"))
    assert [row.currency for row in report.per_currency] == ["VND"]
    assert [(row.account_id, row.converted_balance) for row in report.accounts] == [(1, Decimal("47500000.00"))]
    fit_out, outreach = report.projects
    assert fit_out.budget == Decimal("100000000.00")
    assert fit_out.budget_remaining == Decimal("97500000.00")
    assert outreach.budget is None
    assert [item.transaction_id for item in report.high_value] == [5]


def test_missing_rates_count_as_one() -> None:
    report = _run(ReportFilter(), rates={})

    assert report.totals.income == Decimal("50400000.00")
    assert report.totals.expense == Decimal("2500040.00")


def test_filters_narrow_by_project_and_dates() -> None:
    by_project = _run(ReportFilter(project_id=2))
    assert by_project.transaction_count == 2
    assert by_project.totals.expense == Decimal("40.00")
    assert [row.project_id for row in by_project.projects] == [2]

    january = _run(ReportFilter(date_from=date(2026, 1, 1), date_to=date(2026, 1, 31), granularity="month"))
    assert january.transaction_count == 2
    assert [point.bucket for point in january.category_trend] == ["2026-01"]

    scoped = _run(ReportFilter(project_ids=frozenset({1})))
    assert {item.project_id for item in scoped.high_value} == {1}
    assert [row.account_id for row in scoped.accounts] == [1, 3]


def test_same_inputs_yield_identical_reports() -> None:
    flt = ReportFilter(granularity="month")

    assert _run(flt) == _run(flt, reverse=True)
