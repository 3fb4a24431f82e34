from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_exchange_rates
from app.core.config import get_settings
from app.core.errors import ValidationError
from app.models.enums import Currency
from app.models.user import User
from app.schemas.reports import ReportOut
from app.services.aggregation import ReportFilter
from app.services.exchange_rates import ExchangeRateProvider
from app.services.reports import build_report


router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/summary", response_model=ReportOut)
def get_summary(
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    project_id: int | None = Query(default=None),
    currency: Currency | None = Query(default=None),
    granularity: Literal["day", "month"] = Query(default="day"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    rates: ExchangeRateProvider = Depends(get_exchange_rates),
) -> ReportOut:
    if date_from is not None and date_to is not None and date_from > date_to:
        raise ValidationError("date_from must not be after date_to.")
    settings = get_settings()
    flt = ReportFilter(
        date_from=date_from,
        date_to=date_to,
        project_id=project_id,
        currency=currency,
        granularity=granularity,
        report_currency=settings.report_currency,
        watchlist_limit=settings.watchlist_limit,
    )
    # Native single-currency reports never convert, so they skip the provider.
    rate_table, is_fallback = ({}, False) if currency is not None else rates.fetch_or_fallback()
    report = build_report(db, actor=current_user, flt=flt, rates=rate_table)
    out = ReportOut.model_validate(report)
    out.rates_fallback = is_fallback
    return out
