from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.models.user import User
from app.schemas.catalog import ActivityLogOut
from app.services.activity import list_activity


router = APIRouter(prefix="/activity", tags=["activity"])


@router.get("", response_model=list[ActivityLogOut])
def get_activity(
    project_id: int | None = Query(default=None),
    entity_type: str | None = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return list_activity(
        db,
        actor=current_user,
        project_id=project_id,
        entity_type=entity_type,
        limit=limit,
    )
