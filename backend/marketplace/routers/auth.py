from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from marketplace.models.user import AuthResponse, UserCreate, UserLogin, UserResponse
from marketplace.models_sqlalchemy import get_db
from marketplace.models_sqlalchemy.models import User
from marketplace.services.auth import get_current_user, login_user, register_user
from marketplace.utils.logger import logger

router = APIRouter(prefix="/api/auth", tags=["authentication"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: Session = Depends(get_db)):
    logger.info(f"Registration attempt for email: {user_data.email}")
    return register_user(db, user_data)


@router.post("/login", response_model=AuthResponse)
async def login(credentials: UserLogin, request: Request, db: Session = Depends(get_db)):
    rid = getattr(request.state, "rid", "unknown")
    logger.info(f"Login attempt email={credentials.email} rid={rid}")
    return login_user(db, credentials)


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return current_user
