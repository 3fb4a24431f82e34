from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models.enums import Currency, ProjectPermission, ProjectRole, ProjectStatus
from app.schemas.common import ORMModel


class ProjectCreateRequest(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    status: ProjectStatus = ProjectStatus.ACTIVE
    budget: Decimal | None = Field(default=None, ge=0)
    currency: Currency = Currency.VND


class ProjectUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    status: ProjectStatus | None = None
    budget: Decimal | None = Field(default=None, ge=0)
    currency: Currency | None = None


class ProjectMemberOut(ORMModel):
    id: int
    project_id: int
    user_id: int
    role: ProjectRole
    permissions: list[ProjectPermission]
    added_by_user_id: int | None = None
    added_at: datetime


class ProjectSummary(ORMModel):
    id: int
    name: str
    description: str | None = None
    status: ProjectStatus
    budget: Decimal | None = None
    currency: Currency
    created_by_user_id: int | None = None
    created_at: datetime


class ProjectDetail(ProjectSummary):
    members: list[ProjectMemberOut]
    my_role: str | None = None
    my_permissions: list[ProjectPermission] = Field(default_factory=list)


class MemberCreateRequest(BaseModel):
    user_id: int
    role: ProjectRole = ProjectRole.MEMBER


class MemberRoleUpdateRequest(BaseModel):
    role: ProjectRole


class MemberPermissionToggleRequest(BaseModel):
    permission: ProjectPermission
