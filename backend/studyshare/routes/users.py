"""
StudyShare Backend — Current User Routes
==========================================

    GET   /api/users/me   → {user}
    PATCH /api/users/me   → {message, user}
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studyshare.database import get_db_session
from studyshare.dependencies import get_current_user
from studyshare.models.user import User
from studyshare.schemas.common import ErrorResponse
from studyshare.schemas.user import (
    UserProfileResponse,
    UserProfileUpdatedResponse,
    UserUpdateRequest,
)
from studyshare.services.user_service import user_service

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get(
    "/me",
    response_model=UserProfileResponse,
    responses={401: {"description": "Not authenticated", "model": ErrorResponse}},
    summary="Profile of the signed-in user",
)
async def get_me(user: User = Depends(get_current_user)) -> UserProfileResponse:
    return UserProfileResponse(user=user_service.get_profile(user))


@router.patch(
    "/me",
    response_model=UserProfileUpdatedResponse,
    responses={
        401: {"description": "Not authenticated", "model": ErrorResponse},
        409: {"description": "Email already in use", "model": ErrorResponse},
    },
    summary="Update email, semester or department",
)
async def update_me(
    body: UserUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserProfileUpdatedResponse:
    profile = await user_service.update_profile(db, user, body)
    return UserProfileUpdatedResponse(user=profile)
