# app/core/security.py
"""Password hashing (bcrypt via passlib) and bearer tokens (HS256 via python-jose)."""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings

_pwd = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)


def _peppered(plain: str) -> str:
    return f"{plain or ''}{settings.PASSWORD_PEPPER}"


# ---------------- Passwords ----------------
def hash_password(password: str) -> str:
    return _pwd.hash(_peppered(password))


def verify_password(plain_password: str, password_hash: Optional[str]) -> bool:
    """False for a wrong password and for a stored value passlib cannot read."""
    if not password_hash:
        return False
    try:
        return _pwd.verify(_peppered(plain_password), password_hash)
    except (ValueError, TypeError):
        return False


def try_rehash_on_success(plain_password: str, password_hash: str) -> Optional[str]:
    """
    Called after a successful login. Returns a new hash when the stored one was made
    under an older policy (fewer rounds, deprecated scheme), else None.
    """
    try:
        outdated = _pwd.needs_update(password_hash)
    except (ValueError, TypeError):
        return None
    if outdated and verify_password(plain_password, password_hash):
        return hash_password(plain_password)
    return None


# ---------------- Bearer tokens ----------------
def create_access_token(user_id: int, role: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    )
    claims = {"sub": str(user_id), "role": role, "exp": expire}
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the claims of a valid token, or None if it is invalid or expired."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except (JWTError, ValueError, TypeError):
        return None
