from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.enums import Currency, FixedCostCycle, FixedCostStatus


class FixedCost(Base):
    __tablename__ = "fixed_costs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(24, 2), nullable=False)
    currency: Mapped[Currency] = mapped_column(Enum(Currency, name="currency_code"), nullable=False)
    cycle: Mapped[FixedCostCycle] = mapped_column(
        Enum(FixedCostCycle, name="fixed_cost_cycle"),
        default=FixedCostCycle.MONTHLY,
        nullable=False,
    )
    status: Mapped[FixedCostStatus] = mapped_column(
        Enum(FixedCostStatus, name="fixed_cost_status"),
        default=FixedCostStatus.ON,
        nullable=False,
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="general")
    account_id: Mapped[int | None] = mapped_column(
        ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )
    project_id: Mapped[int | None] = mapped_column(
        ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )
    last_generated: Mapped[str | None] = mapped_column(String(10), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
