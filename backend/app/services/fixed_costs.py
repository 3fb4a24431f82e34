"""Recurring cost templates and the job that turns them into PENDING expenses.

Generation is idempotent per ``(fixed_cost_id, period)``: the transactions
table carries a unique constraint on that pair, so a second run inside the same
period, or two runs racing each other, can never create a duplicate.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import NotFound, ValidationError
from app.models.account import Account
from app.models.enums import FixedCostCycle, FixedCostStatus, TransactionStatus, TransactionType
from app.models.fixed_cost import FixedCost
from app.models.project import Project
from app.models.transaction import Transaction
from app.models.user import User
from app.schemas.catalog import FixedCostCreateRequest, FixedCostUpdateRequest
from app.services.activity import log_activity
from app.services.ledger import get_account, positive_amount, record_transaction
from app.services.permissions import require_admin


logger = logging.getLogger("ledger.fixed_costs")

FIXED_COST_SOURCE = "fixed_cost"

SKIP_NO_ACCOUNT = "no_account"
SKIP_ACCOUNT_MISSING = "account_missing"
SKIP_CURRENCY_MISMATCH = "currency_mismatch"
SKIP_PROJECT_MISMATCH = "project_mismatch"
SKIP_ACCOUNT_LOCKED = "account_locked"
SKIP_INVALID_AMOUNT = "invalid_amount"


@dataclass
class FixedCostRun:
    created: list[Transaction] = field(default_factory=list)
    already_generated: list[int] = field(default_factory=list)
    skipped: list[tuple[int, str]] = field(default_factory=list)


def period_marker(cycle: FixedCostCycle, today: date) -> str:
    cycle = FixedCostCycle(cycle)
    if cycle == FixedCostCycle.MONTHLY:
        return f"{today.year:04d}-{today.month:02d}"
    if cycle == FixedCostCycle.QUARTERLY:
        return f"{today.year:04d}-Q{(today.month - 1) // 3 + 1}"
    return f"{today.year:04d}"


def _validate_links(db: Session, account_id: int | None, project_id: int | None) -> None:
    if account_id is not None and db.get(Account, account_id) is None:
        raise ValidationError("Account not found.")
    if project_id is not None and db.get(Project, project_id) is None:
        raise ValidationError("Project not found.")


def list_fixed_costs(db: Session) -> list[FixedCost]:
    return list(db.scalars(select(FixedCost).order_by(FixedCost.id)).all())


def create_fixed_cost(db: Session, *, actor: User, payload: FixedCostCreateRequest) -> FixedCost:
    require_admin(actor)
    _validate_links(db, payload.account_id, payload.project_id)
    cost = FixedCost(
        name=payload.name.strip(),
        description=payload.description,
        amount=positive_amount(payload.amount),
        currency=payload.currency,
        cycle=payload.cycle,
        status=payload.status,
        category=payload.category,
        account_id=payload.account_id,
        project_id=payload.project_id,
    )
    db.add(cost)
    db.flush()
    log_activity(
        db,
        actor=actor,
        action="fixed_cost.create",
        entity_type="fixed_cost",
        entity_id=cost.id,
        project_id=cost.project_id,
        details=payload.model_dump(mode="json"),
    )
    return cost


def update_fixed_cost(
    db: Session,
    *,
    actor: User,
    fixed_cost_id: int,
    payload: FixedCostUpdateRequest,
) -> FixedCost:
    require_admin(actor)
    cost = db.get(FixedCost, fixed_cost_id)
    if cost is None:
        raise NotFound("Fixed cost not found.")
    changes = payload.model_dump(exclude_unset=True)
    _validate_links(db, changes.get("account_id"), changes.get("project_id"))
    for key, value in changes.items():
        if key == "amount" and value is not None:
            value = positive_amount(value)
        if key in {"name", "amount", "currency", "cycle", "status", "category"} and value is None:
            continue
        setattr(cost, key, value)
    db.flush()
    log_activity(
        db,
        actor=actor,
        action="fixed_cost.update",
        entity_type="fixed_cost",
        entity_id=cost.id,
        project_id=cost.project_id,
        details=payload.model_dump(exclude_unset=True, mode="json"),
    )
    return cost


def _already_generated(db: Session, cost: FixedCost, period: str) -> bool:
    if cost.last_generated == period:
        return True
    existing = db.scalar(
        select(Transaction.id).where(
            Transaction.fixed_cost_id == cost.id,
            Transaction.fixed_cost_period == period,
        )
    )
    return existing is not None


def generate_fixed_cost_transactions(
    db: Session,
    *,
    today: date,
    actor: User | None = None,
) -> FixedCostRun:
    """Create this period's PENDING expense for every active fixed cost.

    ``actor`` is ``None`` when the job runs outside a request (scheduler or
    script); interactive callers must be admins.
    """
    if actor is not None:
        require_admin(actor)

    run = FixedCostRun()
    costs = db.scalars(
        select(FixedCost).where(FixedCost.status == FixedCostStatus.ON).order_by(FixedCost.id)
    ).all()
    for cost in costs:
        period = period_marker(cost.cycle, today)
        if _already_generated(db, cost, period):
            cost.last_generated = period
            run.already_generated.append(cost.id)
            continue
        if cost.amount is None or cost.amount <= 0:
            run.skipped.append((cost.id, SKIP_INVALID_AMOUNT))
            continue
        if cost.account_id is None:
            run.skipped.append((cost.id, SKIP_NO_ACCOUNT))
            continue
        account = get_account(db, cost.account_id, for_update=True)
        if account is None:
            run.skipped.append((cost.id, SKIP_ACCOUNT_MISSING))
            continue
        if account.currency != cost.currency:
            run.skipped.append((cost.id, SKIP_CURRENCY_MISMATCH))
            continue
        if cost.project_id is not None and account.project_id is not None and cost.project_id != account.project_id:
            run.skipped.append((cost.id, SKIP_PROJECT_MISMATCH))
            continue
        if account.is_locked:
            run.skipped.append((cost.id, SKIP_ACCOUNT_LOCKED))
            continue

        try:
            with db.begin_nested():
                transaction = record_transaction(
                    db,
                    account=account,
                    transaction_type=TransactionType.OUT,
                    amount=cost.amount,
                    status=TransactionStatus.PENDING,
                    created_by=actor,
                    category=cost.category,
                    description=f"Fixed cost: {cost.name} ({cost.cycle.value})",
                    source=FIXED_COST_SOURCE,
                    tx_date=today,
                    project_id=cost.project_id if cost.project_id is not None else account.project_id,
                    fixed_cost_id=cost.id,
                    fixed_cost_period=period,
                )
                cost.last_generated = period
        except IntegrityError:
            logger.info("Fixed cost %s already generated for %s by a concurrent run.", cost.id, period)
            run.already_generated.append(cost.id)
            continue
        run.created.append(transaction)

    db.flush()
    for cost_id, reason in run.skipped:
        logger.warning("Fixed cost %s skipped: %s", cost_id, reason)
    logger.info(
        "Fixed-cost run for %s: %d created, %d already generated, %d skipped.",
        today.isoformat(),
        len(run.created),
        len(run.already_generated),
        len(run.skipped),
    )
    log_activity(
        db,
        actor=actor,
        action="fixed_cost.generate",
        entity_type="fixed_cost_run",
        entity_id=today.isoformat(),
        details={
            "created_transaction_ids": [transaction.id for transaction in run.created],
            "already_generated": run.already_generated,
            "skipped": [{"fixed_cost_id": cost_id, "reason": reason} for cost_id, reason in run.skipped],
        },
    )
    return run
