from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.core.errors import NotFound
from app.models.enums import TransactionStatus, TransactionType
from app.models.user import User
from app.schemas.transactions import (
    TransactionCreateRequest,
    TransactionCreateResponse,
    TransactionOut,
    TransactionRejectRequest,
    TransactionUpdateRequest,
)
from app.services.ledger import (
    approve_transaction,
    create_transaction,
    get_transaction_or_404,
    list_transactions,
    reject_transaction,
    update_transaction,
    viewable_project_ids,
)
from app.services.permissions import is_admin


router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=list[TransactionOut])
def get_transactions(
    project_id: int | None = Query(default=None),
    account_id: int | None = Query(default=None),
    status_filter: TransactionStatus | None = Query(default=None, alias="status"),
    transaction_type: TransactionType | None = Query(default=None, alias="type"),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    limit: int = Query(default=500, ge=1, le=2000),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return list_transactions(
        db,
        actor=current_user,
        project_id=project_id,
        account_id=account_id,
        status=status_filter,
        transaction_type=transaction_type,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
    )


@router.post("", response_model=TransactionCreateResponse, status_code=status.HTTP_201_CREATED)
def post_transaction(
    payload: TransactionCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> TransactionCreateResponse:
    result = create_transaction(db, actor=current_user, payload=payload)
    db.commit()
    db.refresh(result.transaction)
    return TransactionCreateResponse(
        transaction=TransactionOut.model_validate(result.transaction),
        warnings=result.warnings,
    )


@router.get("/{transaction_id}", response_model=TransactionOut)
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    transaction = get_transaction_or_404(db, transaction_id)
    if not is_admin(current_user) and transaction.project_id not in viewable_project_ids(current_user):
        raise NotFound("Transaction not found.")
    return transaction


@router.patch("/{transaction_id}", response_model=TransactionOut)
def patch_transaction(
    transaction_id: int,
    payload: TransactionUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    transaction = update_transaction(db, transaction_id=transaction_id, actor=current_user, payload=payload)
    db.commit()
    db.refresh(transaction)
    return transaction


@router.post("/{transaction_id}/approve", response_model=TransactionOut)
def post_approve(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    transaction = approve_transaction(db, transaction_id=transaction_id, actor=current_user)
    db.commit()
    db.refresh(transaction)
    return transaction


@router.post("/{transaction_id}/reject", response_model=TransactionOut)
def post_reject(
    transaction_id: int,
    payload: TransactionRejectRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    transaction = reject_transaction(
        db,
        transaction_id=transaction_id,
        actor=current_user,
        reason=payload.reason,
    )
    db.commit()
    db.refresh(transaction)
    return transaction
