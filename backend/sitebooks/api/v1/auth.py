"""
Authentication API Routes
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from sitebooks.core.database import get_db
from sitebooks.core.security import create_user_token, get_current_active_user
from sitebooks.schemas import LoginRequest
from sitebooks.services.user_service import UserService, user_to_dict

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login")
async def login(
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """Exchange email and password for a bearer token"""
    user = UserService(db).authenticate(login_data.email, login_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )
    db.commit()

    return {
        "access_token": create_user_token(user),
        "token_type": "bearer",
        "user": user_to_dict(user),
    }


@router.get("/me")
async def get_me(current_user=Depends(get_current_active_user)):
    """Current user's profile"""
    return user_to_dict(current_user)
