"""
User Management and Audit Log API Routes
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from sitebooks.core.database import get_db
from sitebooks.core.security import get_current_active_user, PolicyChecker
from sitebooks.core import policy
from sitebooks.schemas import UserCreate, UserUpdate
from sitebooks.services.user_service import UserService, user_to_dict
from sitebooks.services.audit_service import AuditService

router = APIRouter(tags=["Users"])


@router.get("/users", dependencies=[Depends(PolicyChecker("users", policy.VIEW))])
async def list_users(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    """List users the current user may manage"""
    return [user_to_dict(u) for u in UserService(db).list(current_user)]


@router.post("/users", dependencies=[Depends(PolicyChecker("users", policy.CREATE))])
async def create_user(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    user = UserService(db).create(current_user, user_data)
    db.commit()
    return user_to_dict(user)


@router.patch("/users/{user_id}", dependencies=[Depends(PolicyChecker("users", policy.EDIT))])
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    user = UserService(db).update(current_user, user_id, user_data)
    db.commit()
    return user_to_dict(user)


@router.delete("/users/{user_id}", dependencies=[Depends(PolicyChecker("users", policy.DELETE))])
async def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    UserService(db).delete(current_user, user_id)
    db.commit()
    return {"message": "User deleted successfully"}


@router.get("/audit-logs", dependencies=[Depends(PolicyChecker("audit_logs", policy.VIEW))])
async def list_audit_logs(
    module: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    page: Optional[int] = Query(None, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db)
):
    """Audit trail, newest first"""
    return AuditService(db).list(module=module, action=action, page=page, page_size=page_size)
