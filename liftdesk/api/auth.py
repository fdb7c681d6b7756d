from datetime import timedelta
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import logging

from liftdesk.database import get_db
from liftdesk.models import User
from liftdesk.schemas import CompanyRegister, UserLogin, Token, User as UserSchema, UserCreate, UserUpdate
from liftdesk.services.auth import (
    ROLES, create_user, register_company, authenticate_user, get_user_by_email
)
from liftdesk.utils.security import create_access_token, verify_token
from liftdesk.utils.rate_limiter import limiter, RateLimits
from liftdesk.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    email = verify_token(credentials.credentials)
    if email is None:
        raise credentials_exception

    user = get_user_by_email(db, email=email)
    if user is None or not user.is_active:
        raise credentials_exception
    return user


def require_admin(user: User):
    """Ensure user has admin role"""
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )


def require_write_access(user: User):
    """Read-only users may browse but not change anything"""
    if user.is_readonly:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Read-only users cannot modify data"
        )


def _issue_token(user: User) -> dict:
    access_token = create_access_token(
        data={"sub": user.email},
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes)
    )
    return {"access_token": access_token, "token_type": "bearer", "user": user}


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
@limiter.limit(RateLimits.REGISTER)
async def register(request: Request, data: CompanyRegister, db: Session = Depends(get_db)):
    """Sign up a new company; the registering user becomes its admin"""
    user = register_company(
        db,
        company_name=data.company_name,
        email=data.email,
        password=data.password,
        full_name=data.full_name,
        phone=data.phone
    )
    return _issue_token(user)


@router.post("/login", response_model=Token)
@limiter.limit(RateLimits.LOGIN)
async def login(request: Request, user_credentials: UserLogin, db: Session = Depends(get_db)):
    user = authenticate_user(db, user_credentials.email, user_credentials.password)
    if not user:
        logger.warning(f"Failed login for {user_credentials.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _issue_token(user)


@router.get("/me", response_model=UserSchema)
async def read_users_me(current_user: User = Depends(get_current_user)):
    return current_user


# ============================================================================
# User management (admin)
# ============================================================================

@router.get("/users", response_model=List[UserSchema])
async def list_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_admin(current_user)
    return db.query(User).filter(
        User.company_id == current_user.company_id
    ).order_by(User.full_name).all()


@router.post("/users", response_model=UserSchema, status_code=status.HTTP_201_CREATED)
async def create_company_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_admin(current_user)
    return create_user(
        db,
        company_id=current_user.company_id,
        email=data.email,
        password=data.password,
        full_name=data.full_name,
        role=data.role,
        phone=data.phone
    )


@router.put("/users/{user_id}", response_model=UserSchema)
async def update_company_user(
    user_id: int,
    data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Change a user's role, profile or active flag"""
    require_admin(current_user)

    user = db.query(User).filter(
        User.id == user_id,
        User.company_id == current_user.company_id
    ).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    update_data = data.model_dump(exclude_unset=True)

    if "role" in update_data and update_data["role"] not in ROLES:
        raise HTTPException(status_code=400, detail=f"Invalid role. Must be one of: {', '.join(ROLES)}")

    if user.id == current_user.id and (
        update_data.get("is_active") is False or update_data.get("role", "admin") != "admin"
    ):
        raise HTTPException(status_code=400, detail="You cannot demote or deactivate your own account")

    for field, value in update_data.items():
        setattr(user, field, value)

    db.commit()
    db.refresh(user)

    logger.info(f"User {user.id} updated by {current_user.email}: {update_data}")
    return user
