from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import (
    ConcurrentUpdate,
    InvalidStateTransition,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from app.models.account import Account
from app.models.category import MasterCategory
from app.models.enums import Currency, ProjectPermission, TransactionStatus, TransactionType
from app.models.fund import Fund
from app.models.project import Project
from app.models.transaction import Transaction
from app.models.user import User
from app.schemas.transactions import TransactionCreateRequest, TransactionUpdateRequest
from app.services.activity import log_activity
from app.services.permissions import has_permission, is_admin, require_permission
from app.utils.currency import exceeds_threshold
from app.utils.decimal_math import money


WARNING_INSUFFICIENT_BALANCE = "insufficient_balance"
WARNING_REQUIRES_APPROVAL = "requires_approval"

# Largest value a Numeric(24, 2) column holds.
MAX_AMOUNT = Decimal("9999999999999999999999.99")


@dataclass(frozen=True)
class TransactionResult:
    transaction: Transaction
    warnings: list[str]


@dataclass(frozen=True)
class LedgerCheck:
    account_id: int
    currency: str
    opening_balance: Decimal
    stored_balance: Decimal
    replayed_balance: Decimal
    difference: Decimal
    approved_count: int
    consistent: bool


def _now() -> datetime:
    return datetime.now(timezone.utc)


def flush(db: Session) -> None:
    try:
        db.flush()
    except StaleDataError as exc:
        raise ConcurrentUpdate("The record was modified concurrently. Reload and retry.") from exc


def positive_amount(value: Decimal | int | str, *, label: str = "Amount") -> Decimal:
    """Quantize to cents and require a positive value that fits the money columns."""
    try:
        amount = money(value)
    except InvalidOperation as exc:
        raise ValidationError(f"{label} is not a valid amount.") from exc
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{label} must be at least 0.01.")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{label} exceeds {MAX_AMOUNT}.")
    return amount


def get_account(db: Session, account_id: int, *, for_update: bool = False) -> Account | None:
    query = select(Account).where(Account.id == account_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    return db.scalar(query)


def get_transaction_or_404(db: Session, transaction_id: int, *, for_update: bool = False) -> Transaction:
    query = select(Transaction).where(Transaction.id == transaction_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    transaction = db.scalar(query)
    if transaction is None:
        raise NotFound("Transaction not found.")
    return transaction


def initial_status(transaction_type: TransactionType, amount: Decimal, currency: Currency) -> TransactionStatus:
    if transaction_type == TransactionType.IN:
        return TransactionStatus.APPROVED
    if exceeds_threshold(amount, currency):
        return TransactionStatus.PENDING
    return TransactionStatus.APPROVED


def post_to_account(account: Account, transaction: Transaction) -> None:
    """Apply the one balance mutation a transaction is allowed to cause."""
    if account.currency != transaction.currency:
        raise ValidationError(
            f"Transaction currency {transaction.currency.value} does not match "
            f"account currency {account.currency.value}."
        )
    amount = money(transaction.amount)
    delta = amount if transaction.transaction_type == TransactionType.IN else -amount
    account.balance = money(money(account.balance) + delta)


def record_transaction(
    db: Session,
    *,
    account: Account,
    transaction_type: TransactionType,
    amount: Decimal,
    status: TransactionStatus,
    created_by: User | None,
    category: str = "general",
    parent_category: str | None = None,
    description: str = "",
    source: str | None = None,
    tx_date: date | None = None,
    project_id: int | None = None,
    fund_id: int | None = None,
    reference: str | None = None,
    attachment_urls: list[str] | None = None,
    fixed_cost_id: int | None = None,
    fixed_cost_period: str | None = None,
) -> Transaction:
    """Insert a transaction and, when it starts APPROVED, post it to the account.

    ``account`` must already be locked by the caller. Nothing is committed here.
    """
    transaction = Transaction(
        transaction_type=transaction_type,
        amount=positive_amount(amount),
        currency=account.currency,
        category=category,
        parent_category=parent_category,
        description=description,
        source=source,
        tx_date=tx_date or date.today(),
        status=status,
        flagged_for_review=status == TransactionStatus.PENDING,
        account_id=account.id,
        project_id=project_id,
        fund_id=fund_id,
        reference=reference,
        attachment_urls=list(attachment_urls or []),
        fixed_cost_id=fixed_cost_id,
        fixed_cost_period=fixed_cost_period,
        created_by_user_id=created_by.id if created_by is not None else None,
    )
    if status == TransactionStatus.APPROVED:
        transaction.approved_at = _now()
        post_to_account(account, transaction)
    db.add(transaction)
    flush(db)
    return transaction


def _resolve_parent_category(
    db: Session,
    *,
    category: str,
    transaction_type: TransactionType,
    parent_category: str | None,
) -> str | None:
    if parent_category:
        return parent_category
    master = db.scalar(
        select(MasterCategory).where(
            MasterCategory.name == category,
            MasterCategory.category_type == transaction_type,
            MasterCategory.is_active.is_(True),
        )
    )
    return master.parent_name if master is not None else None


def _validate_fund(db: Session, fund_id: int | None) -> None:
    if fund_id is not None and db.get(Fund, fund_id) is None:
        raise ValidationError("Fund not found.")


def create_transaction(
    db: Session,
    *,
    actor: User,
    payload: TransactionCreateRequest,
) -> TransactionResult:
    amount = positive_amount(payload.amount)

    account = get_account(db, payload.account_id, for_update=True)
    if account is None:
        raise ValidationError("Account not found.")
    currency = Currency(payload.currency)
    if currency != account.currency:
        raise ValidationError(
            f"Transaction currency {currency.value} does not match account currency {account.currency.value}."
        )

    project_id = payload.project_id if payload.project_id is not None else account.project_id
    if account.project_id is not None and project_id != account.project_id:
        raise ValidationError("Account belongs to a different project.")
    project = db.get(Project, project_id) if project_id is not None else None
    if project_id is not None and project is None:
        raise ValidationError("Project not found.")

    permission = (
        ProjectPermission.create_income
        if payload.transaction_type == TransactionType.IN
        else ProjectPermission.create_expense
    )
    require_permission(actor, project, permission)

    if account.is_locked:
        raise ValidationError("Account is locked.")
    _validate_fund(db, payload.fund_id)

    status = initial_status(payload.transaction_type, amount, currency)
    warnings: list[str] = []
    if payload.transaction_type == TransactionType.OUT and amount > money(account.balance):
        warnings.append(WARNING_INSUFFICIENT_BALANCE)
    if status == TransactionStatus.PENDING:
        warnings.append(WARNING_REQUIRES_APPROVAL)

    transaction = record_transaction(
        db,
        account=account,
        transaction_type=payload.transaction_type,
        amount=amount,
        status=status,
        created_by=actor,
        category=payload.category,
        parent_category=_resolve_parent_category(
            db,
            category=payload.category,
            transaction_type=payload.transaction_type,
            parent_category=payload.parent_category,
        ),
        description=payload.description,
        source=payload.source,
        tx_date=payload.tx_date,
        project_id=project_id,
        fund_id=payload.fund_id,
        attachment_urls=payload.attachment_urls,
    )
    log_activity(
        db,
        actor=actor,
        action="transaction.create",
        entity_type="transaction",
        entity_id=transaction.id,
        project_id=project_id,
        details={
            "type": transaction.transaction_type.value,
            "amount": str(transaction.amount),
            "currency": transaction.currency.value,
            "status": transaction.status.value,
            "warnings": warnings,
        },
    )
    return TransactionResult(transaction=transaction, warnings=warnings)


def _project_of(db: Session, transaction: Transaction) -> Project | None:
    if transaction.project_id is None:
        return None
    return db.get(Project, transaction.project_id)


def _ensure_pending(transaction: Transaction, action: str) -> None:
    if transaction.status != TransactionStatus.PENDING:
        raise InvalidStateTransition(
            f"Cannot {action} a transaction that is already {transaction.status.value}."
        )


def approve_transaction(db: Session, *, transaction_id: int, actor: User) -> Transaction:
    transaction = get_transaction_or_404(db, transaction_id, for_update=True)
    require_permission(actor, _project_of(db, transaction), ProjectPermission.approve_transactions)
    _ensure_pending(transaction, "approve")

    account = get_account(db, transaction.account_id, for_update=True)
    if account is None:
        raise ValidationError("Account not found.")
    post_to_account(account, transaction)
    transaction.status = TransactionStatus.APPROVED
    transaction.approved_by_user_id = actor.id
    transaction.approved_at = _now()
    flush(db)

    log_activity(
        db,
        actor=actor,
        action="transaction.approve",
        entity_type="transaction",
        entity_id=transaction.id,
        project_id=transaction.project_id,
        details={
            "amount": str(transaction.amount),
            "currency": transaction.currency.value,
            "account_balance": str(account.balance),
        },
    )
    return transaction


def reject_transaction(db: Session, *, transaction_id: int, actor: User, reason: str) -> Transaction:
    transaction = get_transaction_or_404(db, transaction_id, for_update=True)
    require_permission(actor, _project_of(db, transaction), ProjectPermission.approve_transactions)
    _ensure_pending(transaction, "reject")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A rejection reason is required.")

    transaction.status = TransactionStatus.REJECTED
    transaction.rejected_by_user_id = actor.id
    transaction.rejected_at = _now()
    transaction.rejection_reason = reason
    flush(db)

    log_activity(
        db,
        actor=actor,
        action="transaction.reject",
        entity_type="transaction",
        entity_id=transaction.id,
        project_id=transaction.project_id,
        details={"reason": reason, "amount": str(transaction.amount)},
    )
    return transaction


def _can_edit(actor: User, project: Project | None, transaction: Transaction) -> bool:
    if has_permission(actor, project, ProjectPermission.approve_transactions):
        return True
    create_permission = (
        ProjectPermission.create_income
        if transaction.transaction_type == TransactionType.IN
        else ProjectPermission.create_expense
    )
    return transaction.created_by_user_id == actor.id and has_permission(actor, project, create_permission)


def update_transaction(
    db: Session,
    *,
    transaction_id: int,
    actor: User,
    payload: TransactionUpdateRequest,
) -> Transaction:
    """Edit descriptive fields; the amount may change only while PENDING.

    Account, currency and type are fixed at creation, and a settled amount is
    corrected by posting a new transaction rather than by editing this one.
    """
    transaction = get_transaction_or_404(db, transaction_id, for_update=True)
    project = _project_of(db, transaction)
    if not _can_edit(actor, project, transaction):
        raise PermissionDenied("Only the creator or an approver can edit this transaction.")

    before = {
        "amount": str(transaction.amount),
        "description": transaction.description,
        "category": transaction.category,
        "parent_category": transaction.parent_category,
        "fund_id": transaction.fund_id,
    }
    if payload.amount is not None:
        amount = positive_amount(payload.amount)
        if amount != money(transaction.amount):
            _ensure_pending(transaction, "change the amount of")
            transaction.amount = amount
    if payload.fund_id is not None:
        _validate_fund(db, payload.fund_id)
        transaction.fund_id = payload.fund_id
    if payload.description is not None:
        transaction.description = payload.description
    if payload.category is not None:
        transaction.category = payload.category
    if payload.parent_category is not None:
        transaction.parent_category = payload.parent_category or None
    if payload.source is not None:
        transaction.source = payload.source
    if payload.tx_date is not None:
        transaction.tx_date = payload.tx_date
    if payload.attachment_urls is not None:
        transaction.attachment_urls = list(payload.attachment_urls)
    flush(db)

    log_activity(
        db,
        actor=actor,
        action="transaction.update",
        entity_type="transaction",
        entity_id=transaction.id,
        project_id=transaction.project_id,
        details={
            "before": before,
            "after": {
                "amount": str(transaction.amount),
                "description": transaction.description,
                "category": transaction.category,
                "parent_category": transaction.parent_category,
                "fund_id": transaction.fund_id,
            },
        },
    )
    return transaction


def viewable_project_ids(actor: User) -> set[int]:
    return {
        member.project_id
        for member in actor.memberships
        if ProjectPermission.view_transactions.value in (member.permissions or [])
    }


def list_transactions(
    db: Session,
    *,
    actor: User,
    project_id: int | None = None,
    account_id: int | None = None,
    status: TransactionStatus | None = None,
    transaction_type: TransactionType | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = 500,
) -> list[Transaction]:
    query = select(Transaction)
    if not is_admin(actor):
        project_ids = viewable_project_ids(actor)
        if not project_ids:
            return []
        query = query.where(Transaction.project_id.in_(sorted(project_ids)))
    if project_id is not None:
        query = query.where(Transaction.project_id == project_id)
    if account_id is not None:
        query = query.where(Transaction.account_id == account_id)
    if status is not None:
        query = query.where(Transaction.status == status)
    if transaction_type is not None:
        query = query.where(Transaction.transaction_type == transaction_type)
    if date_from is not None:
        query = query.where(Transaction.tx_date >= date_from)
    if date_to is not None:
        query = query.where(Transaction.tx_date <= date_to)
    query = query.order_by(Transaction.tx_date.desc(), Transaction.id.desc()).limit(max(1, min(limit, 2000)))
    return list(db.scalars(query).all())


def replay_balance(opening_balance: Decimal, transactions: Iterable[Transaction]) -> Decimal:
    """Rebuild a balance from the approved transactions of one account."""
    balance = money(opening_balance)
    ordered = sorted(transactions, key=lambda tx: (tx.tx_date, tx.id or 0))
    for transaction in ordered:
        if transaction.status != TransactionStatus.APPROVED:
            continue
        amount = money(transaction.amount)
        if transaction.transaction_type == TransactionType.IN:
            balance = money(balance + amount)
        else:
            balance = money(balance - amount)
    return balance


def ledger_check(db: Session, account: Account) -> LedgerCheck:
    transactions = list(
        db.scalars(select(Transaction).where(Transaction.account_id == account.id)).all()
    )
    replayed = replay_balance(account.opening_balance, transactions)
    stored = money(account.balance)
    return LedgerCheck(
        account_id=account.id,
        currency=account.currency.value,
        opening_balance=money(account.opening_balance),
        stored_balance=stored,
        replayed_balance=replayed,
        difference=money(stored - replayed),
        approved_count=sum(1 for tx in transactions if tx.status == TransactionStatus.APPROVED),
        consistent=stored == replayed,
    )
