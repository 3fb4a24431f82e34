from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_exchange_rates
from app.models.user import User
from app.schemas.transactions import TransactionOut, TransferRequest, TransferResponse
from app.services.exchange_rates import ExchangeRateProvider
from app.services.transfers import transfer


router = APIRouter(prefix="/transfers", tags=["transfers"])


@router.post("", response_model=TransferResponse, status_code=status.HTTP_201_CREATED)
def post_transfer(
    payload: TransferRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    rates: ExchangeRateProvider = Depends(get_exchange_rates),
) -> TransferResponse:
    result = transfer(
        db,
        actor=current_user,
        from_account_id=payload.from_account_id,
        to_account_id=payload.to_account_id,
        amount=payload.amount,
        manual_rate=payload.manual_rate,
        rate_source=rates.fetch,
        description=payload.description,
        tx_date=payload.tx_date,
    )
    db.commit()
    db.refresh(result.outgoing)
    db.refresh(result.incoming)
    return TransferResponse(
        reference=result.reference,
        rate=result.rate,
        received_amount=result.received_amount,
        outgoing=TransactionOut.model_validate(result.outgoing),
        incoming=TransactionOut.model_validate(result.incoming),
    )
