from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import NotFound, ValidationError
from app.models.enums import ProjectPermission, ProjectRole
from app.models.project import Project, ProjectMember
from app.models.user import User
from app.schemas.projects import ProjectCreateRequest, ProjectUpdateRequest
from app.services.activity import log_activity
from app.services.permissions import (
    accessible_projects,
    change_role,
    default_permissions,
    find_member,
    require_admin,
    require_permission,
    toggle_permission,
)
from app.utils.decimal_math import money


def get_project_or_404(db: Session, project_id: int) -> Project:
    project = db.get(Project, project_id)
    if project is None:
        raise NotFound("Project not found.")
    return project


def list_accessible_projects(db: Session, actor: User) -> list[Project]:
    projects = db.scalars(select(Project).order_by(Project.id)).all()
    return accessible_projects(actor, projects)


def get_visible_project(db: Session, *, actor: User, project_id: int) -> Project:
    project = get_project_or_404(db, project_id)
    if not accessible_projects(actor, [project]):
        # Non-members cannot tell a hidden project from a missing one.
        raise NotFound("Project not found.")
    return project


def create_project(db: Session, *, actor: User, payload: ProjectCreateRequest) -> Project:
    require_admin(actor)
    project = Project(
        name=payload.name.strip(),
        description=payload.description,
        status=payload.status,
        budget=money(payload.budget) if payload.budget is not None else None,
        currency=payload.currency,
        created_by_user_id=actor.id,
    )
    project.members.append(
        ProjectMember(
            user=actor,
            role=ProjectRole.OWNER,
            permissions=default_permissions(ProjectRole.OWNER),
            added_by_user_id=actor.id,
        )
    )
    db.add(project)
    db.flush()
    log_activity(
        db,
        actor=actor,
        action="project.create",
        entity_type="project",
        entity_id=project.id,
        project_id=project.id,
        details={"name": project.name, "currency": project.currency.value},
    )
    return project


def update_project(
    db: Session,
    *,
    actor: User,
    project_id: int,
    payload: ProjectUpdateRequest,
) -> Project:
    project = get_project_or_404(db, project_id)
    require_permission(actor, project, ProjectPermission.edit_project)
    changes = payload.model_dump(exclude_unset=True)
    if "name" in changes and changes["name"] is not None:
        project.name = changes["name"].strip()
    if "description" in changes:
        project.description = changes["description"]
    if changes.get("status") is not None:
        project.status = payload.status
    if "budget" in changes:
        project.budget = money(payload.budget) if payload.budget is not None else None
    if changes.get("currency") is not None:
        project.currency = payload.currency
    db.flush()
    log_activity(
        db,
        actor=actor,
        action="project.update",
        entity_type="project",
        entity_id=project.id,
        project_id=project.id,
        details=payload.model_dump(exclude_unset=True, mode="json"),
    )
    return project


def _member_or_404(project: Project, user_id: int) -> ProjectMember:
    for member in project.members:
        if member.user_id == user_id:
            return member
    raise NotFound("Member not found in this project.")


def add_member(
    db: Session,
    *,
    actor: User,
    project_id: int,
    user_id: int,
    role: ProjectRole,
) -> ProjectMember:
    project = get_project_or_404(db, project_id)
    require_permission(actor, project, ProjectPermission.manage_members)
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise ValidationError("User not found.")
    if find_member(user, project) is not None:
        raise ValidationError("User is already a member of this project.")

    member = ProjectMember(
        user=user,
        role=ProjectRole(role),
        permissions=default_permissions(role),
        added_by_user_id=actor.id,
    )
    project.members.append(member)
    db.flush()
    log_activity(
        db,
        actor=actor,
        action="member.add",
        entity_type="project_member",
        entity_id=member.id,
        project_id=project.id,
        details={"user_id": user.id, "role": member.role.value},
    )
    return member


def change_member_role(
    db: Session,
    *,
    actor: User,
    project_id: int,
    user_id: int,
    role: ProjectRole,
) -> ProjectMember:
    project = get_project_or_404(db, project_id)
    require_permission(actor, project, ProjectPermission.manage_members)
    member = _member_or_404(project, user_id)
    previous_role = member.role
    previous_permissions = list(member.permissions or [])
    change_role(member, role)
    db.flush()
    log_activity(
        db,
        actor=actor,
        action="member.change_role",
        entity_type="project_member",
        entity_id=member.id,
        project_id=project.id,
        details={
            "user_id": user_id,
            "from_role": previous_role.value,
            "to_role": member.role.value,
            "dropped_permissions": sorted(set(previous_permissions) - set(member.permissions)),
        },
    )
    return member


def toggle_member_permission(
    db: Session,
    *,
    actor: User,
    project_id: int,
    user_id: int,
    permission: ProjectPermission,
) -> ProjectMember:
    project = get_project_or_404(db, project_id)
    require_permission(actor, project, ProjectPermission.manage_members)
    member = _member_or_404(project, user_id)
    granted = toggle_permission(member, permission)
    db.flush()
    log_activity(
        db,
        actor=actor,
        action="member.toggle_permission",
        entity_type="project_member",
        entity_id=member.id,
        project_id=project.id,
        details={
            "user_id": user_id,
            "permission": ProjectPermission(permission).value,
            "granted": granted,
        },
    )
    return member


def remove_member(db: Session, *, actor: User, project_id: int, user_id: int) -> None:
    project = get_project_or_404(db, project_id)
    require_permission(actor, project, ProjectPermission.manage_members)
    member = _member_or_404(project, user_id)
    member_id = member.id
    role = member.role
    user = member.user
    db.delete(member)
    db.flush()
    db.expire(project, ["members"])
    if user is not None:
        db.expire(user, ["memberships"])
    log_activity(
        db,
        actor=actor,
        action="member.remove",
        entity_type="project_member",
        entity_id=member_id,
        project_id=project.id,
        details={"user_id": user_id, "role": role.value},
    )
