"""
StudyShare Backend — User Schemas
===================================

Three views of a user:
    UserSummary  id, name, email             (comment authors)
    UserPublic   + department                (resource owners in listings)
    UserProfile  + role, semester, timestamps (the account holder themself)
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from studyshare.schemas.common import CamelModel


class UserSummary(CamelModel):
    id: uuid.UUID
    name: str
    email: str


class UserPublic(UserSummary):
    department: str


class UserProfile(UserPublic):
    role: str
    semester: int
    created_at: datetime
    updated_at: datetime


class UserProfileResponse(CamelModel):
    user: UserProfile


class UserProfileUpdatedResponse(CamelModel):
    message: str = "Profile updated successfully"
    user: UserProfile


class UserUpdateRequest(CamelModel):
    """
    PATCH /api/users/me body. Every field is optional; omitted fields are untouched.

    Rules:
        email       valid address, not used by another account (checked in the service)
        semester    1-8
        department  2-100 characters after trimming
    """
    email: Optional[EmailStr] = None
    semester: Optional[int] = Field(default=None, ge=1, le=8)
    department: Optional[str] = Field(default=None, min_length=2, max_length=100)

    @field_validator("department", mode="before")
    @classmethod
    def strip_department(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v
