from collections.abc import Generator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.user import User
from app.services.attachments import LocalAttachmentStore, get_attachment_store
from app.services.exchange_rates import ExchangeRateProvider, get_rate_provider
from app.services.seed import DEMO_ADMIN_EMAIL


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    db: Session = Depends(get_db),
    x_user_id: int | None = Header(default=None),
) -> User:
    if x_user_id is None:
        # Safe default for local development.
        user = db.scalar(select(User).where(User.email == DEMO_ADMIN_EMAIL))
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required.",
            )
        return user

    user = db.get(User, x_user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user.",
        )
    return user


def get_exchange_rates() -> ExchangeRateProvider:
    return get_rate_provider()


def get_attachments() -> LocalAttachmentStore:
    return get_attachment_store()
