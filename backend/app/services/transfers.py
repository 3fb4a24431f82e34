from __future__ import annotations

import secrets
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation

from sqlalchemy.orm import Session

from app.core.errors import InsufficientBalance, InvalidStateTransition, ValidationError
from app.models.account import Account
from app.models.enums import TransactionStatus, TransactionType
from app.models.transaction import Transaction
from app.models.user import User
from app.services.activity import log_activity
from app.services.ledger import get_account, positive_amount, record_transaction
from app.services.permissions import require_admin
from app.utils.currency import cross_rate
from app.utils.decimal_math import money, rate


TRANSFER_CATEGORY = "Internal Transfer"

RateSource = Callable[[], Mapping[str, Decimal]]


@dataclass(frozen=True)
class TransferResult:
    reference: str
    rate: Decimal
    received_amount: Decimal
    outgoing: Transaction
    incoming: Transaction


def generate_reference() -> str:
    stamp = str(int(time.time() * 1000))[-6:]
    return f"TRF-{stamp}-{secrets.token_hex(2).upper()}"


def effective_rate(
    from_account: Account,
    to_account: Account,
    *,
    manual_rate: Decimal | None,
    rate_source: RateSource | None,
) -> Decimal:
    if from_account.currency == to_account.currency:
        return Decimal("1")
    if manual_rate is not None:
        try:
            manual = rate(manual_rate)
        except InvalidOperation as exc:
            raise ValidationError("Manual rate is not a valid number.") from exc
        if not manual.is_finite() or manual <= 0:
            raise ValidationError("Manual rate must be greater than zero.")
        return manual
    if rate_source is None:
        raise ValidationError("A manual rate is required when no rate provider is configured.")
    return rate(cross_rate(from_account.currency, to_account.currency, rate_source()))


def _lock_pair(db: Session, from_account_id: int, to_account_id: int) -> tuple[Account, Account]:
    # Lock in id order so two opposite transfers cannot deadlock.
    locked: dict[int, Account] = {}
    for account_id in sorted({from_account_id, to_account_id}):
        account = get_account(db, account_id, for_update=True)
        if account is None:
            raise ValidationError(f"Account {account_id} not found.")
        locked[account_id] = account
    return locked[from_account_id], locked[to_account_id]


def transfer(
    db: Session,
    *,
    actor: User,
    from_account_id: int,
    to_account_id: int,
    amount: Decimal,
    manual_rate: Decimal | None = None,
    rate_source: RateSource | None = None,
    description: str = "",
    tx_date: date | None = None,
) -> TransferResult:
    """Move money between two accounts as a pair of approved transactions.

    The outgoing leg is posted in the source currency, the incoming leg in the
    destination currency at ``amount * rate``. Both legs share one reference
    and are flushed in the same unit of work, so the caller's commit applies
    both or neither.
    """
    require_admin(actor)
    if from_account_id == to_account_id:
        raise InvalidStateTransition("Source and destination accounts must differ.")
    amount = positive_amount(amount)

    from_account, to_account = _lock_pair(db, from_account_id, to_account_id)
    if from_account.is_locked or to_account.is_locked:
        raise ValidationError("Transfers cannot use a locked account.")
    if amount > money(from_account.balance):
        raise InsufficientBalance(
            f"Source balance {money(from_account.balance):,.2f} {from_account.currency.value} "
            f"is below the transfer amount {amount:,.2f}."
        )

    applied_rate = effective_rate(
        from_account,
        to_account,
        manual_rate=manual_rate,
        rate_source=rate_source,
    )
    received = positive_amount(amount * applied_rate, label="Converted amount")

    reference = generate_reference()
    note = description.strip()
    suffix = f": {note}" if note else ""
    outgoing = record_transaction(
        db,
        account=from_account,
        transaction_type=TransactionType.OUT,
        amount=amount,
        status=TransactionStatus.APPROVED,
        created_by=actor,
        category=TRANSFER_CATEGORY,
        description=f"Transfer to {to_account.name}{suffix} (Ref: {reference})",
        tx_date=tx_date,
        project_id=from_account.project_id,
        reference=reference,
    )
    incoming = record_transaction(
        db,
        account=to_account,
        transaction_type=TransactionType.IN,
        amount=received,
        status=TransactionStatus.APPROVED,
        created_by=actor,
        category=TRANSFER_CATEGORY,
        description=f"Transfer from {from_account.name}{suffix} (Ref: {reference})",
        tx_date=tx_date,
        project_id=to_account.project_id,
        reference=reference,
    )
    log_activity(
        db,
        actor=actor,
        action="transfer.create",
        entity_type="transfer",
        entity_id=reference,
        details={
            "from_account_id": from_account.id,
            "to_account_id": to_account.id,
            "amount": str(amount),
            "from_currency": from_account.currency.value,
            "to_currency": to_account.currency.value,
            "rate": str(applied_rate),
            "received_amount": str(received),
            "manual_rate": manual_rate is not None,
        },
    )
    return TransferResult(
        reference=reference,
        rate=applied_rate,
        received_amount=received,
        outgoing=outgoing,
        incoming=incoming,
    )
