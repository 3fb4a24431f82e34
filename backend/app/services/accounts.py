from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import NotFound, ValidationError
from app.models.account import Account
from app.models.enums import ProjectPermission
from app.models.project import Project
from app.models.user import User
from app.schemas.accounts import AccountCreateRequest, AccountUpdateRequest
from app.services.activity import log_activity
from app.services.ledger import LedgerCheck, flush, get_account, ledger_check
from app.services.permissions import accessible_projects, is_admin, require_permission
from app.utils.decimal_math import money


def _project_or_error(db: Session, project_id: int | None) -> Project | None:
    if project_id is None:
        return None
    project = db.get(Project, project_id)
    if project is None:
        raise ValidationError("Project not found.")
    return project


def list_accessible_accounts(db: Session, actor: User, *, project_id: int | None = None) -> list[Account]:
    query = select(Account).order_by(Account.id)
    if project_id is not None:
        query = query.where(Account.project_id == project_id)
    accounts = list(db.scalars(query).all())
    if is_admin(actor):
        return accounts
    projects = db.scalars(select(Project).order_by(Project.id)).all()
    visible = {project.id for project in accessible_projects(actor, projects)}
    return [account for account in accounts if account.project_id in visible]


def get_visible_account(db: Session, *, actor: User, account_id: int) -> Account:
    account = db.get(Account, account_id)
    if account is None:
        raise NotFound("Account not found.")
    if not is_admin(actor):
        project = db.get(Project, account.project_id) if account.project_id is not None else None
        if project is None or not accessible_projects(actor, [project]):
            raise NotFound("Account not found.")
    return account


def create_account(db: Session, *, actor: User, payload: AccountCreateRequest) -> Account:
    project = _project_or_error(db, payload.project_id)
    # Unassigned accounts are an ADMIN concern; has_permission(None) only holds for admins.
    require_permission(actor, project, ProjectPermission.manage_accounts)

    opening = money(payload.opening_balance)
    account = Account(
        name=payload.name.strip(),
        account_type=payload.account_type,
        currency=payload.currency,
        opening_balance=opening,
        balance=opening,
        project_id=payload.project_id,
        is_locked=payload.is_locked,
    )
    db.add(account)
    flush(db)
    log_activity(
        db,
        actor=actor,
        action="account.create",
        entity_type="account",
        entity_id=account.id,
        project_id=account.project_id,
        details={
            "name": account.name,
            "currency": account.currency.value,
            "opening_balance": str(opening),
        },
    )
    return account


def update_account(
    db: Session,
    *,
    actor: User,
    account_id: int,
    payload: AccountUpdateRequest,
) -> Account:
    account = get_account(db, account_id, for_update=True)
    if account is None:
        raise NotFound("Account not found.")
    require_permission(actor, _project_or_error(db, account.project_id), ProjectPermission.manage_accounts)

    if payload.clear_project or payload.project_id is not None:
        target_id = None if payload.clear_project else payload.project_id
        # Moving an account means giving it up on one project and taking it on another.
        require_permission(actor, _project_or_error(db, target_id), ProjectPermission.manage_accounts)
        account.project_id = target_id
    if payload.name is not None:
        account.name = payload.name.strip()
    if payload.account_type is not None:
        account.account_type = payload.account_type
    if payload.is_locked is not None:
        account.is_locked = payload.is_locked
    flush(db)
    log_activity(
        db,
        actor=actor,
        action="account.update",
        entity_type="account",
        entity_id=account.id,
        project_id=account.project_id,
        details=payload.model_dump(exclude_unset=True, mode="json"),
    )
    return account


def check_account(db: Session, *, actor: User, account_id: int) -> LedgerCheck:
    return ledger_check(db, get_visible_account(db, actor=actor, account_id=account_id))
