"""
User Service - accounts, login and role management
"""
from typing import Optional, List, Dict
from sqlalchemy.orm import Session
from datetime import datetime
import logging

from sitebooks.models import User, Project
from sitebooks.core.security import get_password_hash, verify_password
from sitebooks.core.errors import NotFoundError, AccessDeniedError, ValidationError
from sitebooks.core import policy
from sitebooks.services.audit_service import AuditService, AuditAction
from sitebooks.services.helpers import iso

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Check credentials; returns the user or None"""
        user = self.get_by_email(email)
        if not user or not verify_password(password, user.hashed_password):
            return None
        user.last_login = datetime.utcnow()
        return user

    def list(self, actor) -> List[User]:
        query = self.db.query(User)
        if actor.role == policy.ADMIN:
            query = query.filter(User.role == policy.SITE_MANAGER)
        return query.order_by(User.created_at.desc(), User.id.desc()).all()

    def _validate_role(self, actor, role: str) -> str:
        role = policy.normalize_role(role)
        if role not in policy.ROLES:
            raise ValidationError(f"Invalid role: {role}")
        if not policy.can_manage_user(actor.role, role):
            raise AccessDeniedError(f"You cannot manage users with role {policy.ROLE_DISPLAY[role]}")
        return role

    def _validate_project(self, project_id: Optional[int]):
        if project_id is None:
            return
        if not self.db.query(Project.id).filter(Project.id == project_id).first():
            raise NotFoundError("Project not found")

    def create(self, actor, data) -> User:
        role = self._validate_role(actor, data.role)
        if self.get_by_email(data.email):
            raise ValidationError("Email already in use")
        self._validate_project(data.assigned_project_id)

        user = User(
            name=data.name.strip(),
            email=data.email.strip().lower(),
            hashed_password=get_password_hash(data.password),
            role=role,
            assigned_project_id=data.assigned_project_id if role == policy.SITE_MANAGER else None,
            is_active=True,
        )
        self.db.add(user)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "user", user.id,
            description=f"Created user {user.email}",
            new_values=user_to_dict(user),
        )
        return user

    def update(self, actor, user_id: int, data) -> User:
        user = self.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        if not policy.can_manage_user(actor.role, user.role):
            raise AccessDeniedError("User not found or access denied")

        old_values = user_to_dict(user)
        update = data.model_dump(exclude_unset=True)

        if "role" in update and update["role"] is not None:
            user.role = self._validate_role(actor, update["role"])
        if "email" in update and update["email"]:
            email = update["email"].strip().lower()
            existing = self.get_by_email(email)
            if existing and existing.id != user.id:
                raise ValidationError("Email already in use")
            user.email = email
        if update.get("name"):
            user.name = update["name"].strip()
        if update.get("password"):
            user.hashed_password = get_password_hash(update["password"])
        if "is_active" in update and update["is_active"] is not None:
            if user.id == actor.id and not update["is_active"]:
                raise ValidationError("Cannot deactivate yourself")
            user.is_active = update["is_active"]
        if "assigned_project_id" in update:
            self._validate_project(update["assigned_project_id"])
            user.assigned_project_id = update["assigned_project_id"]
        if user.role != policy.SITE_MANAGER:
            user.assigned_project_id = None

        self.db.flush()
        self.db.expire(user, ["assigned_project"])
        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "user", user.id,
            description=f"Updated user {user.email}",
            old_values=old_values,
            new_values=user_to_dict(user),
        )
        return user

    def delete(self, actor, user_id: int):
        if user_id == actor.id:
            raise ValidationError("Cannot delete yourself")
        user = self.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        if not policy.can_manage_user(actor.role, user.role):
            raise AccessDeniedError("User not found or access denied")

        old_values = user_to_dict(user)
        self.db.delete(user)
        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.DELETE, "user", user_id,
            description=f"Deleted user {old_values['email']}",
            old_values=old_values,
        )

    def ensure_superadmin(self, email: Optional[str], password: Optional[str], name: str) -> Optional[User]:
        """Create the first super admin when the users table is empty"""
        if not email or not password:
            return None
        if self.db.query(User.id).first():
            return None
        user = User(
            name=name,
            email=email.strip().lower(),
            hashed_password=get_password_hash(password),
            role=policy.SUPER_ADMIN,
            is_active=True,
        )
        self.db.add(user)
        self.db.flush()
        logger.info(f"Created initial super admin {user.email}")
        return user


def user_to_dict(user: User) -> Dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "role_display": policy.ROLE_DISPLAY.get(user.role, user.role),
        "assigned_project_id": user.assigned_project_id,
        "assigned_project_name": user.assigned_project.name if user.assigned_project else None,
        "is_active": user.is_active,
        "last_login": iso(user.last_login),
        "created_at": iso(user.created_at),
    }
