from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.models.enums import ProjectPermission
from app.models.project import Project
from app.models.user import User
from app.schemas.projects import (
    MemberCreateRequest,
    MemberPermissionToggleRequest,
    MemberRoleUpdateRequest,
    ProjectCreateRequest,
    ProjectDetail,
    ProjectMemberOut,
    ProjectSummary,
    ProjectUpdateRequest,
)
from app.services.permissions import effective_permissions, resolve_role
from app.services.projects import (
    add_member,
    change_member_role,
    create_project,
    get_visible_project,
    list_accessible_projects,
    remove_member,
    toggle_member_permission,
    update_project,
)


router = APIRouter(prefix="/projects", tags=["projects"])


def _detail(project: Project, current_user: User) -> ProjectDetail:
    role = resolve_role(current_user, project)
    granted = effective_permissions(current_user, project)
    return ProjectDetail(
        id=project.id,
        name=project.name,
        description=project.description,
        status=project.status,
        budget=project.budget,
        currency=project.currency,
        created_by_user_id=project.created_by_user_id,
        created_at=project.created_at,
        members=[ProjectMemberOut.model_validate(member) for member in project.members],
        my_role=role.value if role is not None else None,
        my_permissions=[permission for permission in ProjectPermission if permission in granted],
    )


@router.get("", response_model=list[ProjectSummary])
def list_projects(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return list_accessible_projects(db, current_user)


@router.post("", response_model=ProjectDetail, status_code=status.HTTP_201_CREATED)
def post_project(
    payload: ProjectCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ProjectDetail:
    project = create_project(db, actor=current_user, payload=payload)
    db.commit()
    db.refresh(project)
    return _detail(project, current_user)


@router.get("/{project_id}", response_model=ProjectDetail)
def get_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ProjectDetail:
    project = get_visible_project(db, actor=current_user, project_id=project_id)
    return _detail(project, current_user)


@router.patch("/{project_id}", response_model=ProjectDetail)
def patch_project(
    project_id: int,
    payload: ProjectUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ProjectDetail:
    project = update_project(db, actor=current_user, project_id=project_id, payload=payload)
    db.commit()
    db.refresh(project)
    return _detail(project, current_user)


@router.post(
    "/{project_id}/members",
    response_model=ProjectMemberOut,
    status_code=status.HTTP_201_CREATED,
)
def post_member(
    project_id: int,
    payload: MemberCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    member = add_member(
        db,
        actor=current_user,
        project_id=project_id,
        user_id=payload.user_id,
        role=payload.role,
    )
    db.commit()
    db.refresh(member)
    return member


@router.put("/{project_id}/members/{user_id}/role", response_model=ProjectMemberOut)
def put_member_role(
    project_id: int,
    user_id: int,
    payload: MemberRoleUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    member = change_member_role(
        db,
        actor=current_user,
        project_id=project_id,
        user_id=user_id,
        role=payload.role,
    )
    db.commit()
    db.refresh(member)
    return member


@router.post("/{project_id}/members/{user_id}/permissions/toggle", response_model=ProjectMemberOut)
def post_member_permission_toggle(
    project_id: int,
    user_id: int,
    payload: MemberPermissionToggleRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    member = toggle_member_permission(
        db,
        actor=current_user,
        project_id=project_id,
        user_id=user_id,
        permission=payload.permission,
    )
    db.commit()
    db.refresh(member)
    return member


@router.delete("/{project_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_member(
    project_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> None:
    remove_member(db, actor=current_user, project_id=project_id, user_id=user_id)
    db.commit()
