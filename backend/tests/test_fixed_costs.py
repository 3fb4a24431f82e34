from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from app.core.errors import PermissionDenied, ValidationError
from app.db.base import Base
from app.models.account import Account
from app.models.enums import (
    AccountType,
    Currency,
    FixedCostCycle,
    FixedCostStatus,
    SystemRole,
    TransactionStatus,
    TransactionType,
)
from app.models.fixed_cost import FixedCost
from app.models.transaction import Transaction
from app.models.user import User
from app.schemas.catalog import FixedCostCreateRequest, FixedCostUpdateRequest
from app.services.fixed_costs import (
    SKIP_CURRENCY_MISMATCH,
    SKIP_INVALID_AMOUNT,
    SKIP_NO_ACCOUNT,
    create_fixed_cost,
    generate_fixed_cost_transactions,
    period_marker,
    update_fixed_cost,
)
from app.utils.decimal_math import money


def _session() -> Session:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)()


def _account(db: Session, currency: Currency = Currency.VND) -> Account:
    account = Account(
        name=f"Operating {currency.value}",
        account_type=AccountType.BANK,
        currency=currency,
        opening_balance=money("50000000"),
        balance=money("50000000"),
    )
    db.add(account)
    db.flush()
    return account


def _cost(db: Session, account: Account | None, **overrides) -> FixedCost:
    values = {
        "name": "Office rent",
        "amount": money("18000000"),
        "currency": Currency.VND,
        "cycle": FixedCostCycle.MONTHLY,
        "status": FixedCostStatus.ON,
        "category": "Rent",
        "account_id": account.id if account is not None else None,
    }
    values.update(overrides)
    cost = FixedCost(**values)
    db.add(cost)
    db.flush()
    return cost


@pytest.mark.parametrize(
    "cycle, expected",
    [
        (FixedCostCycle.MONTHLY, "2026-05"),
        (FixedCostCycle.QUARTERLY, "2026-Q2"),
        (FixedCostCycle.YEARLY, "2026"),
    ],
)
def test_period_marker_per_cycle(cycle: FixedCostCycle, expected: str) -> None:
    assert period_marker(cycle, date(2026, 5, 17)) == expected


def test_generation_creates_pending_expense_without_touching_balance() -> None:
    db = _session()
    account = _account(db)
    cost = _cost(db, account)

    run = generate_fixed_cost_transactions(db, today=date(2026, 5, 17))

    assert len(run.created) == 1
    transaction = run.created[0]
    assert transaction.status == TransactionStatus.PENDING
    assert transaction.transaction_type == TransactionType.OUT
    assert transaction.amount == money("18000000")
    assert transaction.fixed_cost_id == cost.id
    assert transaction.fixed_cost_period == "2026-05"
    assert transaction.description == "Fixed cost: Office rent (MONTHLY)"
    assert cost.last_generated == "2026-05"
    assert account.balance == money("50000000")


def test_rerun_in_same_period_is_idempotent() -> None:
    db = _session()
    account = _account(db)
    cost = _cost(db, account)
    generate_fixed_cost_transactions(db, today=date(2026, 5, 1))

    again = generate_fixed_cost_transactions(db, today=date(2026, 5, 28))
    # Even with the stamp cleared, the stored (cost, period) pair blocks a duplicate.
    cost.last_generated = None
    db.flush()
    third = generate_fixed_cost_transactions(db, today=date(2026, 5, 30))

    assert again.created == [] and again.already_generated == [cost.id]
    assert third.created == [] and third.already_generated == [cost.id]
    assert len(db.scalars(select(Transaction)).all()) == 1


def test_next_period_generates_again() -> None:
    db = _session()
    account = _account(db)
    _cost(db, account)
    quarterly = _cost(db, account, name="Insurance", amount=money("3000000"), cycle=FixedCostCycle.QUARTERLY)

    generate_fixed_cost_transactions(db, today=date(2026, 5, 1))
    june = generate_fixed_cost_transactions(db, today=date(2026, 6, 1))

    assert len(june.created) == 1
    assert june.already_generated == [quarterly.id]
    assert sorted(db.scalars(select(Transaction.fixed_cost_period)).all()) == ["2026-05", "2026-06", "2026-Q2"]


def test_unusable_costs_are_skipped_and_reported() -> None:
    db = _session()
    account = _account(db)
    orphan = _cost(db, None, name="Unassigned")
    mismatched = _cost(db, account, name="Cloud hosting", amount=money("120"), currency=Currency.USD)
    _cost(db, account, name="Paused", status=FixedCostStatus.OFF)

    run = generate_fixed_cost_transactions(db, today=date(2026, 5, 1))

    assert run.created == []
    assert run.skipped == [(orphan.id, SKIP_NO_ACCOUNT), (mismatched.id, SKIP_CURRENCY_MISMATCH)]
    assert db.scalars(select(Transaction)).all() == []


def test_interactive_run_requires_admin() -> None:
    db = _session()
    user = User(email="member@test.com", full_name="Member", system_role=SystemRole.user, is_active=True)
    db.add(user)
    db.flush()

    with pytest.raises(PermissionDenied):
        generate_fixed_cost_transactions(db, today=date(2026, 5, 1), actor=user)


@pytest.mark.parametrize("amount", ["0.004", "0", "1e30"])
def test_template_amount_must_be_a_positive_cent_value(amount: str) -> None:
    db = _session()
    admin = User(email="admin@test.com", full_name="Admin", system_role=SystemRole.admin, is_active=True)
    db.add(admin)
    db.flush()
    account = _account(db)
    cost = _cost(db, account)

    with pytest.raises(ValidationError):
        create_fixed_cost(
            db,
            actor=admin,
            payload=FixedCostCreateRequest.model_construct(
                name="Cleaning",
                amount=Decimal(amount),
                currency=Currency.VND,
                account_id=account.id,
            ),
        )
    with pytest.raises(ValidationError):
        update_fixed_cost(
            db,
            actor=admin,
            fixed_cost_id=cost.id,
            payload=FixedCostUpdateRequest.model_construct(amount=Decimal(amount)),
        )
    assert cost.amount == money("18000000")


def test_zero_amount_template_is_skipped_not_generated() -> None:
    db = _session()
    account = _account(db)
    legacy = _cost(db, account, name="Legacy", amount=money("0.004"))

    run = generate_fixed_cost_transactions(db, today=date(2026, 5, 1))

    assert legacy.amount == money("0")
    assert run.created == []
    assert run.skipped == [(legacy.id, SKIP_INVALID_AMOUNT)]
    assert db.scalars(select(Transaction)).all() == []
