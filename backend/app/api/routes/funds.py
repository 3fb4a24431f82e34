from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.models.user import User
from app.schemas.catalog import FundCreateRequest, FundOut, FundUpdateRequest
from app.services.catalog import create_fund, list_funds, update_fund


router = APIRouter(prefix="/funds", tags=["funds"])


@router.get("", response_model=list[FundOut])
def get_funds(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return list_funds(db)


@router.post("", response_model=FundOut, status_code=status.HTTP_201_CREATED)
def post_fund(
    payload: FundCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    fund = create_fund(db, actor=current_user, payload=payload)
    db.commit()
    db.refresh(fund)
    return fund


@router.patch("/{fund_id}", response_model=FundOut)
def patch_fund(
    fund_id: int,
    payload: FundUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    fund = update_fund(db, actor=current_user, fund_id=fund_id, payload=payload)
    db.commit()
    db.refresh(fund)
    return fund
