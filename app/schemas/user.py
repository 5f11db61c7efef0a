# app/schemas/user.py
from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, field_validator

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$")


def _check_name(v: str) -> str:
    s = (v or "").strip()
    if not 2 <= len(s) <= 50:
        raise ValueError("Name must be between 2 and 50 characters")
    return s


def _check_email(v: str) -> str:
    s = (v or "").strip().lower()
    if not EMAIL_RE.match(s):
        raise ValueError("Please provide a valid email")
    return s


def _check_password(v: str) -> str:
    if not PASSWORD_RE.match(v or ""):
        raise ValueError(
            "Password must be at least 8 characters long and contain at least one lowercase "
            "letter, one uppercase letter, one number, and one special character"
        )
    return v


class RegisterIn(BaseModel):
    name: str
    email: str
    password: str

    @field_validator("name")
    @classmethod
    def _name(cls, v):
        return _check_name(v)

    @field_validator("email")
    @classmethod
    def _email(cls, v):
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v):
        return _check_password(v)


class LoginIn(BaseModel):
    # checked by the route for the exact messages
    email: Optional[str] = None
    password: Optional[str] = None


class UserCreate(RegisterIn):
    role: str = "student"
    is_admin: bool = False
    department_id: Optional[int] = None
    is_active: bool = True


class UserUpdate(BaseModel):
    # PATCH semantics: only the sent fields change
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    is_admin: Optional[bool] = None
    department_id: Optional[int] = None
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v):
        return None if v is None else _check_name(v)

    @field_validator("email")
    @classmethod
    def _email(cls, v):
        return None if v is None else _check_email(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v):
        return None if v is None else _check_password(v)


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    current_password: Optional[str] = None
    new_password: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v):
        return None if v is None else _check_name(v)

    @field_validator("email")
    @classmethod
    def _email(cls, v):
        return None if v is None else _check_email(v)

    @field_validator("new_password")
    @classmethod
    def _new_password(cls, v):
        return None if v is None else _check_password(v)
