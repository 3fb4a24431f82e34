from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.models.enums import TransactionType
from app.models.user import User
from app.schemas.catalog import CategoryCreateRequest, CategoryOut, CategoryUpdateRequest
from app.services.catalog import create_category, list_categories, update_category


router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=list[CategoryOut])
def get_categories(
    category_type: TransactionType | None = Query(default=None, alias="type"),
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return list_categories(db, category_type=category_type, include_inactive=include_inactive)


@router.post("", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
def post_category(
    payload: CategoryCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    category = create_category(db, actor=current_user, payload=payload)
    db.commit()
    db.refresh(category)
    return category


@router.patch("/{category_id}", response_model=CategoryOut)
def patch_category(
    category_id: int,
    payload: CategoryUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    category = update_category(db, actor=current_user, category_id=category_id, payload=payload)
    db.commit()
    db.refresh(category)
    return category
