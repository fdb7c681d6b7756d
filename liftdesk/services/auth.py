"""
User and company account logic used by the auth router and the admin scripts
"""
import logging
from datetime import datetime
from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from liftdesk.models import User, Company
from liftdesk.utils.security import get_password_hash, verify_password, validate_password_complexity

logger = logging.getLogger(__name__)

ROLES = ["admin", "dispatcher", "technician", "readonly"]


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower()).first()


def _check_new_user(db: Session, email: str, password: str, role: str):
    if role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid role. Must be one of: {', '.join(ROLES)}"
        )
    if not validate_password_complexity(password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password must be at least 8 characters and contain letters and digits"
        )
    if get_user_by_email(db, email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )


def create_user(
    db: Session,
    company_id: int,
    email: str,
    password: str,
    full_name: str,
    role: str = "dispatcher",
    phone: Optional[str] = None
) -> User:
    _check_new_user(db, email, password, role)

    user = User(
        company_id=company_id,
        email=email.lower(),
        full_name=full_name,
        phone=phone,
        hashed_password=get_password_hash(password),
        role=role,
        is_active=True
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"Created user {user.id} '{user.email}' with role {role} for company {company_id}")
    return user


def register_company(db: Session, company_name: str, email: str, password: str, full_name: str, phone: Optional[str] = None) -> User:
    """Create a company together with its first admin user"""
    if not company_name or not company_name.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Company name is required")
    _check_new_user(db, email, password, "admin")

    company = Company(name=company_name.strip(), email=email.lower(), phone=phone)
    db.add(company)
    db.flush()

    user = User(
        company_id=company.id,
        email=email.lower(),
        full_name=full_name,
        phone=phone,
        hashed_password=get_password_hash(password),
        role="admin",
        is_active=True
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"Registered company {company.id} '{company.name}' with admin {user.email}")
    return user


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    user = get_user_by_email(db, email)
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None

    user.last_login = datetime.utcnow()
    db.commit()
    return user


def set_password(db: Session, user: User, new_password: str):
    if not validate_password_complexity(new_password):
        raise ValueError("Password must be at least 8 characters and contain letters and digits")
    user.hashed_password = get_password_hash(new_password)
    db.commit()
    logger.info(f"Password reset for user {user.email}")
