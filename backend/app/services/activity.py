from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.activity import ActivityLog
from app.models.user import User
from app.services.permissions import require_admin


logger = logging.getLogger("ledger.activity")


def log_activity(
    db: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str,
    entity_id: str | int,
    project_id: int | None = None,
    details: dict[str, Any] | None = None,
) -> ActivityLog | None:
    """Append an activity entry without ever failing the caller.

    The row is written inside a savepoint so a failed insert rolls back only
    the log entry, never the ledger change it describes.
    """
    entry = ActivityLog(
        actor_user_id=actor.id if actor is not None else None,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        project_id=project_id,
        details=details,
    )
    try:
        with db.begin_nested():
            db.add(entry)
    except SQLAlchemyError:
        logger.exception("Activity log write failed for %s %s:%s", action, entity_type, entity_id)
        return None
    return entry


def list_activity(
    db: Session,
    *,
    actor: User,
    project_id: int | None = None,
    entity_type: str | None = None,
    limit: int = 200,
) -> list[ActivityLog]:
    require_admin(actor)
    query = select(ActivityLog)
    if project_id is not None:
        query = query.where(ActivityLog.project_id == project_id)
    if entity_type is not None:
        query = query.where(ActivityLog.entity_type == entity_type)
    query = query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(max(1, min(limit, 1000)))
    return list(db.scalars(query).all())
