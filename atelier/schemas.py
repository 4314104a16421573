from datetime import datetime
from typing import Optional

from pydantic import field_validator

from .shared.schemas import CamelModel
from .shared.validators import validate_email


class RegisterRequest(CamelModel):
    name: str
    email: str
    password: str
    phone: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("password")
    @classmethod
    def check_password(cls, v):
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v


class LoginRequest(CamelModel):
    email: str
    password: str


class UserResponse(CamelModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None
