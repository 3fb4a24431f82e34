from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from app.core.errors import ValidationError
from app.db.base import Base
from app.models.enums import Currency, ProjectPermission, ProjectRole, ProjectStatus


PERMISSION_UNIVERSE = frozenset(permission.value for permission in ProjectPermission)


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[ProjectStatus] = mapped_column(
        Enum(ProjectStatus, name="project_status"),
        default=ProjectStatus.ACTIVE,
        nullable=False,
    )
    budget: Mapped[Decimal | None] = mapped_column(Numeric(24, 2), nullable=True)
    currency: Mapped[Currency] = mapped_column(
        Enum(Currency, name="currency_code"),
        default=Currency.VND,
        nullable=False,
    )
    created_by_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    members: Mapped[list["ProjectMember"]] = relationship(
        "ProjectMember",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectMember.id",
    )
    accounts: Mapped[list["Account"]] = relationship("Account", back_populates="project")


class ProjectMember(Base):
    __tablename__ = "project_members"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_members_project_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[ProjectRole] = mapped_column(
        Enum(ProjectRole, name="project_role"),
        default=ProjectRole.MEMBER,
        nullable=False,
    )
    permissions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    added_by_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    project: Mapped["Project"] = relationship("Project", back_populates="members")
    user: Mapped["User"] = relationship(
        "User", back_populates="memberships", foreign_keys=[user_id]
    )

    @validates("permissions")
    def _validate_permissions(self, _key: str, value: list[str] | None) -> list[str]:
        granted = {getattr(item, "value", item) for item in (value or [])}
        unknown = granted - PERMISSION_UNIVERSE
        if unknown:
            raise ValidationError(f"Unknown project permissions: {sorted(unknown)}")
        # Canonical order keeps stored JSON stable across toggles.
        return [permission.value for permission in ProjectPermission if permission.value in granted]
