from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.models.user import User
from app.schemas.accounts import AccountCreateRequest, AccountOut, AccountUpdateRequest, LedgerCheckOut
from app.services.accounts import (
    check_account,
    create_account,
    get_visible_account,
    list_accessible_accounts,
    update_account,
)


router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("", response_model=list[AccountOut])
def list_accounts(
    project_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return list_accessible_accounts(db, current_user, project_id=project_id)


@router.post("", response_model=AccountOut, status_code=status.HTTP_201_CREATED)
def post_account(
    payload: AccountCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    account = create_account(db, actor=current_user, payload=payload)
    db.commit()
    db.refresh(account)
    return account


@router.get("/{account_id}", response_model=AccountOut)
def get_account(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return get_visible_account(db, actor=current_user, account_id=account_id)


@router.patch("/{account_id}", response_model=AccountOut)
def patch_account(
    account_id: int,
    payload: AccountUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    account = update_account(db, actor=current_user, account_id=account_id, payload=payload)
    db.commit()
    db.refresh(account)
    return account


@router.get("/{account_id}/ledger-check", response_model=LedgerCheckOut)
def get_ledger_check(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return check_account(db, actor=current_user, account_id=account_id)
