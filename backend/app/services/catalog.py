"""Admin-maintained reference data: funds and master categories."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import NotFound, ValidationError
from app.models.category import MasterCategory
from app.models.enums import TransactionType
from app.models.fund import Fund
from app.models.user import User
from app.schemas.catalog import (
    CategoryCreateRequest,
    CategoryUpdateRequest,
    FundCreateRequest,
    FundUpdateRequest,
)
from app.services.activity import log_activity
from app.services.permissions import require_admin
from app.utils.decimal_math import money


def _clean_keywords(keywords: list[str]) -> list[str]:
    seen: list[str] = []
    for keyword in keywords:
        value = keyword.strip()
        if value and value not in seen:
            seen.append(value)
    return seen


def _flush_unique(db: Session, message: str) -> None:
    try:
        with db.begin_nested():
            db.flush()
    except IntegrityError as exc:
        raise ValidationError(message) from exc


def list_funds(db: Session) -> list[Fund]:
    return list(db.scalars(select(Fund).order_by(Fund.name)).all())


def create_fund(db: Session, *, actor: User, payload: FundCreateRequest) -> Fund:
    require_admin(actor)
    fund = Fund(
        name=payload.name.strip(),
        description=payload.description,
        target_budget=money(payload.target_budget) if payload.target_budget is not None else None,
        keywords=_clean_keywords(payload.keywords),
    )
    db.add(fund)
    _flush_unique(db, "A fund with this name already exists.")
    log_activity(
        db,
        actor=actor,
        action="fund.create",
        entity_type="fund",
        entity_id=fund.id,
        details={"name": fund.name},
    )
    return fund


def update_fund(db: Session, *, actor: User, fund_id: int, payload: FundUpdateRequest) -> Fund:
    require_admin(actor)
    fund = db.get(Fund, fund_id)
    if fund is None:
        raise NotFound("Fund not found.")
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name") is not None:
        fund.name = payload.name.strip()
    if "description" in changes:
        fund.description = payload.description
    if "target_budget" in changes:
        fund.target_budget = money(payload.target_budget) if payload.target_budget is not None else None
    if payload.keywords is not None:
        fund.keywords = _clean_keywords(payload.keywords)
    _flush_unique(db, "A fund with this name already exists.")
    log_activity(
        db,
        actor=actor,
        action="fund.update",
        entity_type="fund",
        entity_id=fund.id,
        details=payload.model_dump(exclude_unset=True, mode="json"),
    )
    return fund


def list_categories(
    db: Session,
    *,
    category_type: TransactionType | None = None,
    include_inactive: bool = False,
) -> list[MasterCategory]:
    query = select(MasterCategory).order_by(MasterCategory.category_type, MasterCategory.name)
    if category_type is not None:
        query = query.where(MasterCategory.category_type == category_type)
    if not include_inactive:
        query = query.where(MasterCategory.is_active.is_(True))
    return list(db.scalars(query).all())


def create_category(db: Session, *, actor: User, payload: CategoryCreateRequest) -> MasterCategory:
    require_admin(actor)
    category = MasterCategory(
        name=payload.name.strip(),
        category_type=payload.category_type,
        parent_name=(payload.parent_name or "").strip() or None,
        is_active=payload.is_active,
    )
    db.add(category)
    _flush_unique(db, "This category already exists for the given type.")
    log_activity(
        db,
        actor=actor,
        action="category.create",
        entity_type="master_category",
        entity_id=category.id,
        details={
            "name": category.name,
            "type": category.category_type.value,
            "parent_name": category.parent_name,
        },
    )
    return category


def update_category(
    db: Session,
    *,
    actor: User,
    category_id: int,
    payload: CategoryUpdateRequest,
) -> MasterCategory:
    require_admin(actor)
    category = db.get(MasterCategory, category_id)
    if category is None:
        raise NotFound("Category not found.")
    changes = payload.model_dump(exclude_unset=True)
    if "parent_name" in changes:
        category.parent_name = (payload.parent_name or "").strip() or None
    if payload.is_active is not None:
        category.is_active = payload.is_active
    db.flush()
    log_activity(
        db,
        actor=actor,
        action="category.update",
        entity_type="master_category",
        entity_id=category.id,
        details=payload.model_dump(exclude_unset=True, mode="json"),
    )
    return category
