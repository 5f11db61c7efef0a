# app/routers/auth.py
import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, Request, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN

from app.core.security import (
    verify_password, hash_password, try_rehash_on_success,
    create_access_token, decode_access_token,
)
from app.db.session import get_db
from app.models.user import User, ROLE_STUDENT
from app.schemas.user import RegisterIn, LoginIn
from app.services.audit import write_log
from app.services.integrity import commit_unique
from app.utils.datetime import utcnow

log = logging.getLogger("auth")

router = APIRouter(prefix="/auth", tags=["Auth"])

_bearer = HTTPBearer(auto_error=False)
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ===================== Auth gate =====================
def get_current_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    db: Session = Depends(get_db),
) -> User:
    if creds is None or not creds.credentials:
        raise HTTPException(HTTP_401_UNAUTHORIZED, "No token provided")

    claims = decode_access_token(creds.credentials)
    if not claims or "sub" not in claims:
        raise HTTPException(HTTP_401_UNAUTHORIZED, "Invalid token")

    try:
        user_id = int(claims["sub"])
    except (TypeError, ValueError):
        raise HTTPException(HTTP_401_UNAUTHORIZED, "Invalid token")

    # Lookup failures propagate; the token payload alone is never trusted
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(HTTP_401_UNAUTHORIZED, "User not found")
    if not user.is_active:
        raise HTTPException(HTTP_403_FORBIDDEN, "Account is deactivated")

    request.state.actor = {"id": user.id, "role": user.role, "email": user.email}
    return user


def require_user(user: User = Depends(get_current_user)) -> User:
    return user


def require_roles(*roles: str):
    def _dep(user: User = Depends(get_current_user)) -> User:
        if roles and user.role not in roles:
            raise HTTPException(HTTP_403_FORBIDDEN, "Access denied")
        return user
    return _dep


require_superadmin = require_roles("superadmin")
require_student = require_roles("student")
require_party = require_roles("party")


def login_payload(user: User, token: str) -> dict:
    return {
        "id": user.id,
        "token": token,
        "role": user.role,
        "name": user.name,
        "email": user.email,
        "is_admin": bool(user.is_admin),
        "department": user.department.brief() if user.department else None,
    }


# ===================== Routes =====================
@router.post("/register", status_code=201)
def register(payload: RegisterIn, request: Request, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(400, "User with this email already exists")

    u = User(
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        role=ROLE_STUDENT,
        is_active=True,
    )
    db.add(u)
    commit_unique(db, "User with this email already exists")

    write_log(
        db, category="auth", action="user_registered",
        description=f"New user registered: {email}", user=u, request=request,
    )
    db.commit()
    return {"message": "User registered successfully", "id": u.id}


@router.post("/login")
def login(payload: LoginIn, request: Request, db: Session = Depends(get_db)):
    email = (payload.email or "").strip().lower()
    password = payload.password or ""
    if not email or not password:
        raise HTTPException(400, "Email and password are required")
    if not EMAIL_RE.match(email):
        raise HTTPException(400, "Invalid email format")

    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(password, user.password_hash):
        write_log(
            db, level="warn", category="security", action="login_failed",
            description=f"Failed login attempt for {email}", request=request,
            user_email=email, response_status=400,
            metadata={"reason": "Invalid credentials"},
        )
        db.commit()
        raise HTTPException(400, "Invalid credentials")
    if not user.is_active:
        write_log(
            db, level="warn", category="security", action="login_failed",
            description=f"Login attempt on deactivated account {email}", user=user,
            request=request, response_status=403,
            metadata={"reason": "Account is deactivated"},
        )
        db.commit()
        raise HTTPException(HTTP_403_FORBIDDEN, "Account is deactivated")

    # upgrade the hash when the policy changed
    new_hash = try_rehash_on_success(password, user.password_hash)
    if new_hash:
        user.password_hash = new_hash

    user.last_login_at = utcnow()
    write_log(
        db, category="auth", action="login_success",
        description="User logged in successfully", user=user, request=request,
        response_status=200, metadata={"login_method": "email_password"},
    )
    db.commit()
    db.refresh(user)

    token = create_access_token(user.id, user.role)
    return login_payload(user, token)


@router.get("/verify")
def verify(user: User = Depends(require_user)):
    return {"valid": True, "user": user.to_dict()}
