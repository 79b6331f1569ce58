"""
StudyShare Backend — Authentication Schemas
=============================================

Request bodies for register / login / password reset, and the token
response returned by register and login.
"""

from typing import Literal

from pydantic import EmailStr, Field, field_validator

from studyshare.config import settings
from studyshare.schemas.common import CamelModel
from studyshare.schemas.user import UserProfile


def _normalize_email(v: str) -> str:
    return v.strip().lower()


class RegisterRequest(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    email: EmailStr
    password: str
    department: str = Field(min_length=1, max_length=100)
    semester: int = Field(ge=1)
    role: Literal["student", "admin"] = "student"

    @field_validator("name", "department", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < settings.password_min_length:
            raise ValueError(
                f"Password must be at least {settings.password_min_length} characters long"
            )
        return v


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


class ResetPasswordRequest(CamelModel):
    email: EmailStr
    reset_code: str = Field(min_length=6, max_length=6, pattern=r"^\d{6}$")
    new_password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < settings.password_min_length:
            raise ValueError(
                f"Password must be at least {settings.password_min_length} characters long"
            )
        return v


class TokenResponse(CamelModel):
    message: str
    token: str
    user: UserProfile


class ForgotPasswordResponse(CamelModel):
    message: str = "Password reset code sent to your email address"
    email: str
