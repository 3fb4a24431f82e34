"""Project-scoped authorization.

Every query here is a total function over plain model attributes: no session,
no I/O, no exceptions. Absence of access is ``False`` or an empty set, and the
``require_*`` guards turn that into :class:`PermissionDenied` for callers that
are about to mutate state.
"""
from __future__ import annotations

from collections.abc import Iterable
from typing import TypeVar

from app.core.errors import PermissionDenied
from app.models.enums import ProjectPermission, ProjectRole, SystemRole
from app.models.project import Project, ProjectMember
from app.models.user import User


P = ProjectPermission

ROLE_PERMISSIONS: dict[ProjectRole, frozenset[ProjectPermission]] = {
    ProjectRole.OWNER: frozenset(ProjectPermission),
    ProjectRole.MANAGER: frozenset(
        {
            P.view_transactions,
            P.create_income,
            P.create_expense,
            P.approve_transactions,
            P.manage_accounts,
            P.view_reports,
        }
    ),
    ProjectRole.MEMBER: frozenset({P.view_transactions, P.create_income, P.create_expense}),
    ProjectRole.VIEWER: frozenset({P.view_transactions, P.view_reports}),
}

ALL_PERMISSIONS: frozenset[ProjectPermission] = frozenset(ProjectPermission)

ProjectT = TypeVar("ProjectT")


def is_admin(user: User | None) -> bool:
    return user is not None and user.system_role == SystemRole.admin


def default_permissions(role: ProjectRole) -> list[str]:
    granted = ROLE_PERMISSIONS[ProjectRole(role)]
    return [permission.value for permission in ProjectPermission if permission in granted]


def find_member(user: User | None, project: Project | None) -> ProjectMember | None:
    if user is None or project is None or user.id is None:
        return None
    for member in project.members:
        if member.user_id == user.id:
            return member
    return None


def resolve_role(user: User | None, project: Project | None) -> SystemRole | ProjectRole | None:
    """Global admins resolve to ``SystemRole.admin`` on every project."""
    if is_admin(user):
        return SystemRole.admin
    member = find_member(user, project)
    return member.role if member is not None else None


def effective_permissions(user: User | None, project: Project | None) -> frozenset[ProjectPermission]:
    if is_admin(user):
        return ALL_PERMISSIONS
    member = find_member(user, project)
    if member is None:
        return frozenset()
    return frozenset(ProjectPermission(value) for value in (member.permissions or []))


def has_permission(user: User | None, project: Project | None, permission: ProjectPermission) -> bool:
    return ProjectPermission(permission) in effective_permissions(user, project)


def require_permission(user: User | None, project: Project | None, permission: ProjectPermission) -> None:
    if not has_permission(user, project, permission):
        label = ProjectPermission(permission).value
        raise PermissionDenied(f"Missing permission '{label}' for this project.")


def require_admin(user: User | None) -> None:
    if not is_admin(user):
        raise PermissionDenied("Only system administrators can perform this action.")


def change_role(member: ProjectMember, new_role: ProjectRole) -> ProjectMember:
    """Set the role and reset permissions to its default, dropping overrides."""
    member.role = ProjectRole(new_role)
    member.permissions = default_permissions(member.role)
    return member


def toggle_permission(member: ProjectMember, permission: ProjectPermission) -> bool:
    """Flip one permission on the member. Returns whether it is now granted."""
    value = ProjectPermission(permission).value
    current = list(member.permissions or [])
    if value in current:
        member.permissions = [item for item in current if item != value]
        return False
    member.permissions = current + [value]
    return True


def accessible_projects(user: User | None, projects: Iterable[ProjectT]) -> list[ProjectT]:
    if is_admin(user):
        return list(projects)
    if user is None:
        return []
    return [project for project in projects if find_member(user, project) is not None]


def projects_with_permission(
    user: User | None,
    projects: Iterable[ProjectT],
    permission: ProjectPermission,
) -> list[ProjectT]:
    return [project for project in accessible_projects(user, projects) if has_permission(user, project, permission)]
