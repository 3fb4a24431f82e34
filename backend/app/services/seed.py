from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.account import Account
from app.models.category import MasterCategory
from app.models.enums import (
    AccountType,
    Currency,
    FixedCostCycle,
    ProjectRole,
    ProjectStatus,
    SystemRole,
    TransactionType,
)
from app.models.fixed_cost import FixedCost
from app.models.fund import Fund
from app.models.project import Project, ProjectMember
from app.models.user import User
from app.services.permissions import default_permissions
from app.utils.decimal_math import money

DEMO_ADMIN_EMAIL = "admin@ledger.local"


def _get_or_create_user(
    db: Session,
    *,
    email: str,
    full_name: str,
    system_role: SystemRole,
) -> User:
    user = db.scalar(select(User).where(User.email == email))
    if user is not None:
        return user

    user = User(email=email, full_name=full_name, system_role=system_role, is_active=True)
    db.add(user)
    db.flush()
    return user


def _get_or_create_project(
    db: Session,
    *,
    name: str,
    currency: Currency,
    budget: Decimal,
    created_by: User,
) -> Project:
    project = db.scalar(select(Project).where(Project.name == name))
    if project is not None:
        return project

    project = Project(
        name=name,
        status=ProjectStatus.ACTIVE,
        currency=currency,
        budget=money(budget),
        created_by_user_id=created_by.id,
    )
    db.add(project)
    db.flush()
    return project


def _ensure_member(db: Session, *, project: Project, user: User, role: ProjectRole, added_by: User) -> None:
    exists = db.scalar(
        select(ProjectMember.id).where(
            ProjectMember.project_id == project.id,
            ProjectMember.user_id == user.id,
        )
    )
    if exists is None:
        db.add(
            ProjectMember(
                project_id=project.id,
                user_id=user.id,
                role=role,
                permissions=default_permissions(role),
                added_by_user_id=added_by.id,
            )
        )


def _get_or_create_account(
    db: Session,
    *,
    name: str,
    currency: Currency,
    account_type: AccountType,
    opening_balance: Decimal,
    project: Project | None,
) -> Account:
    account = db.scalar(select(Account).where(Account.name == name))
    if account is not None:
        return account

    account = Account(
        name=name,
        currency=currency,
        account_type=account_type,
        opening_balance=money(opening_balance),
        balance=money(opening_balance),
        project_id=project.id if project is not None else None,
    )
    db.add(account)
    db.flush()
    return account


def _ensure_category(db: Session, *, name: str, category_type: TransactionType, parent_name: str | None) -> None:
    exists = db.scalar(
        select(MasterCategory.id).where(
            MasterCategory.name == name,
            MasterCategory.category_type == category_type,
        )
    )
    if exists is None:
        db.add(MasterCategory(name=name, category_type=category_type, parent_name=parent_name))


def _ensure_fund(db: Session, *, name: str, target_budget: Decimal, keywords: list[str]) -> None:
    if db.scalar(select(Fund.id).where(Fund.name == name)) is None:
        db.add(Fund(name=name, target_budget=money(target_budget), keywords=keywords))


def seed_demo_data(db: Session) -> None:
    admin = _get_or_create_user(
        db,
        email=DEMO_ADMIN_EMAIL,
        full_name="Administrator",
        system_role=SystemRole.admin,
    )
    manager = _get_or_create_user(
        db,
        email="manager@ledger.local",
        full_name="Project Manager",
        system_role=SystemRole.user,
    )
    member = _get_or_create_user(
        db,
        email="member@ledger.local",
        full_name="Field Member",
        system_role=SystemRole.user,
    )
    viewer = _get_or_create_user(
        db,
        email="viewer@ledger.local",
        full_name="Report Viewer",
        system_role=SystemRole.user,
    )

    saigon = _get_or_create_project(
        db,
        name="Saigon Office Fit-out",
        currency=Currency.VND,
        budget=Decimal("500000000"),
        created_by=admin,
    )
    phnom_penh = _get_or_create_project(
        db,
        name="Phnom Penh Outreach",
        currency=Currency.USD,
        budget=Decimal("25000"),
        created_by=admin,
    )

    _ensure_member(db, project=saigon, user=admin, role=ProjectRole.OWNER, added_by=admin)
    _ensure_member(db, project=saigon, user=manager, role=ProjectRole.MANAGER, added_by=admin)
    _ensure_member(db, project=saigon, user=member, role=ProjectRole.MEMBER, added_by=admin)
    _ensure_member(db, project=saigon, user=viewer, role=ProjectRole.VIEWER, added_by=admin)
    _ensure_member(db, project=phnom_penh, user=admin, role=ProjectRole.OWNER, added_by=admin)
    _ensure_member(db, project=phnom_penh, user=manager, role=ProjectRole.MEMBER, added_by=admin)

    operating = _get_or_create_account(
        db,
        name="Saigon Operating (VND)",
        currency=Currency.VND,
        account_type=AccountType.BANK,
        opening_balance=Decimal("120000000"),
        project=saigon,
    )
    _get_or_create_account(
        db,
        name="Saigon Petty Cash",
        currency=Currency.VND,
        account_type=AccountType.CASH,
        opening_balance=Decimal("5000000"),
        project=saigon,
    )
    _get_or_create_account(
        db,
        name="Phnom Penh USD",
        currency=Currency.USD,
        account_type=AccountType.BANK,
        opening_balance=Decimal("8000"),
        project=phnom_penh,
    )
    _get_or_create_account(
        db,
        name="Treasury KHR",
        currency=Currency.KHR,
        account_type=AccountType.E_WALLET,
        opening_balance=Decimal("0"),
        project=None,
    )

    for name, category_type, parent in [
        ("Salary", TransactionType.OUT, "Personnel"),
        ("Contractor", TransactionType.OUT, "Personnel"),
        ("Rent", TransactionType.OUT, "Facilities"),
        ("Utilities", TransactionType.OUT, "Facilities"),
        ("Materials", TransactionType.OUT, "Operations"),
        ("Donation", TransactionType.IN, "Funding"),
        ("Grant", TransactionType.IN, "Funding"),
    ]:
        _ensure_category(db, name=name, category_type=category_type, parent_name=parent)

    _ensure_fund(db, name="Marketing", target_budget=Decimal("3000"), keywords=["ads", "promotion"])
    _ensure_fund(db, name="Equipment", target_budget=Decimal("10000"), keywords=["laptop", "hardware"])

    if db.scalar(select(FixedCost.id).where(FixedCost.name == "Office rent")) is None:
        db.add(
            FixedCost(
                name="Office rent",
                amount=money(Decimal("18000000")),
                currency=Currency.VND,
                cycle=FixedCostCycle.MONTHLY,
                category="Rent",
                account_id=operating.id,
                project_id=saigon.id,
            )
        )

    db.commit()
