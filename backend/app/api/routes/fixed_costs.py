from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.models.user import User
from app.schemas.catalog import (
    FixedCostCreateRequest,
    FixedCostOut,
    FixedCostRunOut,
    FixedCostSkipOut,
    FixedCostUpdateRequest,
)
from app.services.fixed_costs import (
    create_fixed_cost,
    generate_fixed_cost_transactions,
    list_fixed_costs,
    update_fixed_cost,
)
from app.services.permissions import require_admin


router = APIRouter(prefix="/fixed-costs", tags=["fixed-costs"])


@router.get("", response_model=list[FixedCostOut])
def get_fixed_costs(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_admin(current_user)
    return list_fixed_costs(db)


@router.post("", response_model=FixedCostOut, status_code=status.HTTP_201_CREATED)
def post_fixed_cost(
    payload: FixedCostCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cost = create_fixed_cost(db, actor=current_user, payload=payload)
    db.commit()
    db.refresh(cost)
    return cost


@router.patch("/{fixed_cost_id}", response_model=FixedCostOut)
def patch_fixed_cost(
    fixed_cost_id: int,
    payload: FixedCostUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cost = update_fixed_cost(db, actor=current_user, fixed_cost_id=fixed_cost_id, payload=payload)
    db.commit()
    db.refresh(cost)
    return cost


@router.post("/generate", response_model=FixedCostRunOut)
def post_generate(
    as_of: date | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FixedCostRunOut:
    run = generate_fixed_cost_transactions(db, today=as_of or date.today(), actor=current_user)
    db.commit()
    return FixedCostRunOut(
        created_transaction_ids=[transaction.id for transaction in run.created],
        already_generated=run.already_generated,
        skipped=[FixedCostSkipOut(fixed_cost_id=cost_id, reason=reason) for cost_id, reason in run.skipped],
    )
