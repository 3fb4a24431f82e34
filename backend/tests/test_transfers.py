import re
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker

from app.core.errors import (
    InsufficientBalance,
    InvalidStateTransition,
    PermissionDenied,
    UpstreamFailure,
    ValidationError,
)
from app.db.base import Base
from app.models.account import Account
from app.models.enums import AccountType, Currency, ProjectRole, SystemRole, TransactionStatus, TransactionType
from app.models.project import Project, ProjectMember
from app.models.transaction import Transaction
from app.models.user import User
from app.services.permissions import default_permissions
from app.services.transfers import TRANSFER_CATEGORY, generate_reference, transfer
from app.utils.decimal_math import money


def _session() -> Session:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)()


def _setup(db: Session) -> tuple[User, Account, Account]:
    admin = User(email="admin@test.com", full_name="Admin", system_role=SystemRole.admin, is_active=True)
    db.add(admin)
    db.flush()
    source = Account(
        name="Account A",
        account_type=AccountType.BANK,
        currency=Currency.VND,
        opening_balance=money("10000000"),
        balance=money("10000000"),
    )
    destination = Account(
        name="Account B",
        account_type=AccountType.BANK,
        currency=Currency.USD,
        opening_balance=money("0"),
        balance=money("0"),
    )
    db.add_all([source, destination])
    db.flush()
    return admin, source, destination


def _count(db: Session) -> int:
    return db.scalar(select(func.count(Transaction.id)))


def test_cross_currency_transfer_with_manual_rate() -> None:
    db = _session()
    admin, source, destination = _setup(db)

    result = transfer(
        db,
        actor=admin,
        from_account_id=source.id,
        to_account_id=destination.id,
        amount=Decimal("1000000"),
        manual_rate=Decimal("0.00004"),
    )

    assert source.balance == money("9000000")
    assert destination.balance == money("40")
    assert result.received_amount == money("40")
    assert _count(db) == 2

    outgoing, incoming = result.outgoing, result.incoming
    assert outgoing.transaction_type == TransactionType.OUT
    assert outgoing.currency == Currency.VND and outgoing.account_id == source.id
    assert incoming.transaction_type == TransactionType.IN
    assert incoming.currency == Currency.USD and incoming.account_id == destination.id
    assert outgoing.status == incoming.status == TransactionStatus.APPROVED
    assert outgoing.reference == incoming.reference == result.reference
    assert result.reference in outgoing.description
    assert result.reference in incoming.description
    assert outgoing.category == incoming.category == TRANSFER_CATEGORY


def test_rate_comes_from_provider_when_no_manual_rate() -> None:
    db = _session()
    admin, source, destination = _setup(db)

    result = transfer(
        db,
        actor=admin,
        from_account_id=source.id,
        to_account_id=destination.id,
        amount=Decimal("50000"),
        rate_source=lambda: {"USD": Decimal("1"), "VND": Decimal("25000")},
    )

    assert result.rate == Decimal("0.00004")
    assert destination.balance == money("2")


def test_same_currency_transfer_ignores_rates() -> None:
    db = _session()
    admin, source, _ = _setup(db)
    twin = Account(
        name="Account C",
        account_type=AccountType.CASH,
        currency=Currency.VND,
        opening_balance=money("0"),
        balance=money("0"),
    )
    db.add(twin)
    db.flush()

    result = transfer(
        db,
        actor=admin,
        from_account_id=source.id,
        to_account_id=twin.id,
        amount=Decimal("250000"),
        manual_rate=Decimal("3"),
    )

    assert result.rate == Decimal("1")
    assert twin.balance == money("250000")


def test_provider_failure_leaves_no_state() -> None:
    db = _session()
    admin, source, destination = _setup(db)

    def broken_rates():
        raise UpstreamFailure("rates down")

    with pytest.raises(UpstreamFailure):
        transfer(
            db,
            actor=admin,
            from_account_id=source.id,
            to_account_id=destination.id,
            amount=Decimal("1000"),
            rate_source=broken_rates,
        )
    assert _count(db) == 0
    assert source.balance == money("10000000")


def test_transfer_to_same_account_is_invalid() -> None:
    db = _session()
    admin, source, _ = _setup(db)

    with pytest.raises(InvalidStateTransition):
        transfer(db, actor=admin, from_account_id=source.id, to_account_id=source.id, amount=Decimal("1"))


def test_transfer_above_balance_is_a_hard_failure() -> None:
    db = _session()
    admin, source, destination = _setup(db)

    with pytest.raises(InsufficientBalance):
        transfer(
            db,
            actor=admin,
            from_account_id=source.id,
            to_account_id=destination.id,
            amount=Decimal("10000001"),
            manual_rate=Decimal("0.00004"),
        )
    assert _count(db) == 0
    assert source.balance == money("10000000")
    assert destination.balance == money("0")


@pytest.mark.parametrize(
    "amount, manual_rate",
    [
        ("0", "0.00004"),
        ("-1", "0.00004"),
        ("0.004", "0.00004"),
        ("1e30", "0.00004"),
        ("100", "0"),
        ("100", "0.00000000001"),
        ("1", "0.00004"),
    ],
)
def test_invalid_amount_or_rate_is_rejected(amount: str, manual_rate: str) -> None:
    db = _session()
    admin, source, destination = _setup(db)

    with pytest.raises(ValidationError):
        transfer(
            db,
            actor=admin,
            from_account_id=source.id,
            to_account_id=destination.id,
            amount=Decimal(amount),
            manual_rate=Decimal(manual_rate),
        )
    assert _count(db) == 0


def test_project_owner_cannot_transfer() -> None:
    db = _session()
    _, source, destination = _setup(db)
    owner = User(email="owner@test.com", full_name="Owner", system_role=SystemRole.user, is_active=True)
    project = Project(name="Owned", currency=Currency.VND)
    db.add_all([owner, project])
    db.flush()
    db.add(
        ProjectMember(
            project_id=project.id,
            user_id=owner.id,
            role=ProjectRole.OWNER,
            permissions=default_permissions(ProjectRole.OWNER),
        )
    )
    source.project_id = project.id
    destination.project_id = project.id
    db.flush()

    with pytest.raises(PermissionDenied):
        transfer(
            db,
            actor=owner,
            from_account_id=source.id,
            to_account_id=destination.id,
            amount=Decimal("1000"),
            manual_rate=Decimal("0.00004"),
        )
    assert _count(db) == 0


def test_locked_account_blocks_transfer() -> None:
    db = _session()
    admin, source, destination = _setup(db)
    destination.is_locked = True
    db.flush()

    with pytest.raises(ValidationError):
        transfer(
            db,
            actor=admin,
            from_account_id=source.id,
            to_account_id=destination.id,
            amount=Decimal("1000"),
            manual_rate=Decimal("0.00004"),
        )


def test_reference_format() -> None:
    assert re.fullmatch(r"TRF-\d{6}-[0-9A-F]{4}", generate_reference())
