"""
StudyShare Backend — Authentication Routes
============================================

    POST /api/auth/register          → 201 {message, token, user}
    POST /api/auth/login             → 200 {message, token, user}
    POST /api/auth/forgot-password   → 200 {message, email}
    POST /api/auth/reset-password    → 200 {message}

All public. Error statuses come from the global handlers: 400 for a bad
reset code, 401 for wrong credentials, 404 for an unknown email on
forgot-password, 409 for a duplicate registration, 422 for malformed bodies.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studyshare.database import get_db_session
from studyshare.schemas.auth import (
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
)
from studyshare.schemas.common import ErrorResponse, MessageResponse
from studyshare.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/register",
    status_code=201,
    response_model=TokenResponse,
    responses={409: {"description": "Email already registered", "model": ErrorResponse}},
    summary="Create an account",
)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    return await auth_service.register(db, body)


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={401: {"description": "Invalid credentials", "model": ErrorResponse}},
    summary="Sign in with email and password",
)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    return await auth_service.login(db, body.email, body.password)


@router.post(
    "/forgot-password",
    response_model=ForgotPasswordResponse,
    responses={
        404: {"description": "No account with this email", "model": ErrorResponse},
        503: {"description": "Email could not be sent", "model": ErrorResponse},
    },
    summary="Email a 6-digit password reset code",
)
async def forgot_password(
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ForgotPasswordResponse:
    await auth_service.forgot_password(db, body.email)
    return ForgotPasswordResponse(email=body.email)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={400: {"description": "Invalid or expired reset code", "model": ErrorResponse}},
    summary="Set a new password using a reset code",
)
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.reset_password(db, body)
    return MessageResponse(message="Password has been successfully reset")
