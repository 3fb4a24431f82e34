from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import PermissionDenied
from app.models.account import Account
from app.models.enums import ProjectPermission
from app.models.fund import Fund
from app.models.project import Project
from app.models.transaction import Transaction
from app.models.user import User
from app.services.aggregation import Report, ReportFilter, aggregate
from app.services.permissions import is_admin, projects_with_permission


def report_scope(db: Session, actor: User) -> frozenset[int] | None:
    """Project ids the actor may report on; ``None`` when unrestricted."""
    if is_admin(actor):
        return None
    projects = db.scalars(select(Project).order_by(Project.id)).all()
    return frozenset(
        project.id for project in projects_with_permission(actor, projects, ProjectPermission.view_reports)
    )


def build_report(
    db: Session,
    *,
    actor: User,
    flt: ReportFilter,
    rates: Mapping[str, Decimal],
) -> Report:
    """Load the rows a filter can touch and hand them to ``aggregate``."""
    scope = report_scope(db, actor)
    if scope is not None and flt.project_id is not None and flt.project_id not in scope:
        raise PermissionDenied("Missing permission 'view_reports' for this project.")
    flt = replace(flt, project_ids=scope)

    tx_query = select(Transaction)
    account_query = select(Account)
    project_query = select(Project)
    if scope is not None:
        ids = sorted(scope)
        tx_query = tx_query.where(Transaction.project_id.in_(ids))
        account_query = account_query.where(Account.project_id.in_(ids))
        project_query = project_query.where(Project.id.in_(ids))
    if flt.project_id is not None:
        tx_query = tx_query.where(Transaction.project_id == flt.project_id)
        account_query = account_query.where(Account.project_id == flt.project_id)
        project_query = project_query.where(Project.id == flt.project_id)
    if flt.date_from is not None:
        tx_query = tx_query.where(Transaction.tx_date >= flt.date_from)
    if flt.date_to is not None:
        tx_query = tx_query.where(Transaction.tx_date <= flt.date_to)

    return aggregate(
        db.scalars(tx_query).all(),
        db.scalars(account_query).all(),
        rates,
        flt,
        projects=db.scalars(project_query).all(),
        funds=db.scalars(select(Fund)).all(),
    )
