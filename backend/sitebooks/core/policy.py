"""
Role-based access policy.

A single table keyed by (role, resource, action). Routers enforce it with
`PolicyChecker`; services use the project-scope helpers below for site
managers, who only ever see their assigned project.
"""
from typing import List, Optional

from sitebooks.core.errors import AccessDeniedError, ValidationError

SUPER_ADMIN = "super_admin"
ADMIN = "admin"
SITE_MANAGER = "site_manager"

ROLES = (SUPER_ADMIN, ADMIN, SITE_MANAGER)

ROLE_DISPLAY = {
    SUPER_ADMIN: "Super Admin",
    ADMIN: "Admin",
    SITE_MANAGER: "Site Manager",
}

VIEW = "view"
CREATE = "create"
EDIT = "edit"
DELETE = "delete"

EVERYONE = ROLES
ADMINS = (SUPER_ADMIN, ADMIN)
SUPER = (SUPER_ADMIN,)

# Site records: anyone may view and create, only admins may change them
_SITE_RECORD = {VIEW: EVERYONE, CREATE: EVERYONE, EDIT: ADMINS, DELETE: ADMINS}

RULES = {
    "users": {VIEW: ADMINS, CREATE: ADMINS, EDIT: ADMINS, DELETE: ADMINS},
    "audit_logs": {VIEW: ADMINS},
    "projects": {VIEW: EVERYONE, CREATE: ADMINS, EDIT: SUPER, DELETE: SUPER},
    "project_ledger": {VIEW: EVERYONE, CREATE: SUPER, EDIT: SUPER, DELETE: SUPER},
    "bank_accounts": {VIEW: ADMINS, CREATE: ADMINS, EDIT: SUPER, DELETE: SUPER},
    "bank_transactions": {VIEW: ADMINS, CREATE: SUPER, EDIT: SUPER, DELETE: SUPER},
    "contractors": _SITE_RECORD,
    "machines": _SITE_RECORD,
    "vendors": _SITE_RECORD,
    "employees": _SITE_RECORD,
    "expenses": _SITE_RECORD,
    "consumable_items": _SITE_RECORD,
    "stock_consumption": _SITE_RECORD,
    "non_consumables": _SITE_RECORD,
    "reports": {VIEW: EVERYONE},
}

POLICY = frozenset(
    (role, resource, action)
    for resource, actions in RULES.items()
    for action, roles in actions.items()
    for role in roles
)


def is_allowed(role: str, resource: str, action: str) -> bool:
    return (role, resource, action) in POLICY


def roles_allowed(resource: str, action: str) -> List[str]:
    return [role for role in ROLES if (role, resource, action) in POLICY]


def normalize_role(value: Optional[str]) -> str:
    """'Site Manager' -> 'site_manager'"""
    return (value or "").strip().lower().replace(" ", "_")


def can_manage_user(actor_role: str, target_role: str) -> bool:
    """Super admins manage everyone; admins manage site managers only"""
    if actor_role == SUPER_ADMIN:
        return True
    return actor_role == ADMIN and target_role == SITE_MANAGER


# ==================== PROJECT SCOPE ====================

def is_site_manager(actor) -> bool:
    return actor.role == SITE_MANAGER


def scoped_project_id(actor, requested: Optional[int] = None) -> Optional[int]:
    """Project filter for list queries: site managers always get their own"""
    if is_site_manager(actor):
        return actor.assigned_project_id
    return requested


def can_access_project(actor, project_id: Optional[int]) -> bool:
    if not is_site_manager(actor):
        return True
    return actor.assigned_project_id is not None and actor.assigned_project_id == project_id


def ensure_project_access(actor, project_id: Optional[int], message: str = "Project not found or access denied"):
    if not can_access_project(actor, project_id):
        raise AccessDeniedError(message)


def project_for_create(actor, requested: Optional[int], what: str) -> int:
    """Project a new record is written to: forced to the assigned project for site managers"""
    if is_site_manager(actor):
        if not actor.assigned_project_id:
            raise ValidationError(f"Site Manager must be assigned to a project to create {what}")
        return actor.assigned_project_id
    if not requested:
        raise ValidationError("Project is required")
    return requested
