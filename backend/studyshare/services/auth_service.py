"""
StudyShare Backend — Authentication Service
=============================================

What:  Account registration, login, and the emailed-code password reset.
How:   Passwords are hashed with bcrypt through passlib; sessions are
       stateless HS256 JWTs (python-jose) carrying userId and email and
       expiring after settings.access_token_expire_minutes (7 days).

Password reset flow:
    1. forgot_password(email): unknown email → 404. Otherwise older codes for
       the email are deleted, a fresh 6-digit code valid for
       settings.reset_code_ttl_minutes is stored and emailed.
    2. reset_password(email, code, new_password): the code must exist, be
       unused and unexpired. The password is replaced and the code marked used.
"""

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from studyshare.config import settings
from studyshare.exceptions import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from studyshare.models.password_reset import PasswordReset
from studyshare.models.user import User
from studyshare.schemas.auth import (
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
)
from studyshare.schemas.user import UserProfile
from studyshare.services.email_service import email_service

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ── Password hashing ──────────────────────────────────────────────────────


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


# ── Tokens ────────────────────────────────────────────────────────────────


def create_access_token(user_id: uuid.UUID, email: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Issue a signed access token.

    Payload: {"userId": "<uuid>", "email": "...", "exp": <epoch seconds>}
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {"userId": str(user_id), "email": email, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the token payload, or None if the signature or expiry check fails."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def generate_reset_code() -> str:
    """Six decimal digits, never with a leading zero (100000-999999)."""
    return str(secrets.randbelow(900_000) + 100_000)


class AuthService:
    """Account lifecycle operations. Stateless; the session is passed per call."""

    async def get_user_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def register(self, db: AsyncSession, data: RegisterRequest) -> TokenResponse:
        """
        Create an account and sign it in.

        Raises:
            ConflictError: the email is already registered
        """
        if await self.get_user_by_email(db, data.email):
            raise ConflictError(
                message="User already exists with this email",
                context={"email": data.email},
            )

        user = User(
            name=data.name,
            email=data.email,
            password_hash=hash_password(data.password),
            department=data.department,
            semester=data.semester,
            role=data.role,
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Lost a race against a concurrent registration of the same email
            raise ConflictError(
                message="User already exists with this email",
                context={"email": data.email},
            )

        logger.info("Registered user %s (%s)", user.id, user.email)
        return TokenResponse(
            message="User registered successfully",
            token=create_access_token(user.id, user.email),
            user=UserProfile.model_validate(user),
        )

    async def login(self, db: AsyncSession, email: str, password: str) -> TokenResponse:
        """
        Verify credentials and issue a token.

        Unknown email and wrong password give the same error, so the endpoint
        does not reveal which accounts exist.
        """
        user = await self.get_user_by_email(db, email)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Failed login attempt for %s", email)
            raise UnauthorizedError(message="Invalid credentials")

        return TokenResponse(
            message="Login successful",
            token=create_access_token(user.id, user.email),
            user=UserProfile.model_validate(user),
        )

    async def forgot_password(self, db: AsyncSession, email: str) -> None:
        """
        Issue and email a fresh reset code.

        Raises:
            NotFoundError: no account uses this email
            EmailDeliveryError: the code could not be sent
        """
        user = await self.get_user_by_email(db, email)
        if user is None:
            raise NotFoundError(resource="user", context={"email": email})

        await db.execute(delete(PasswordReset).where(PasswordReset.email == email))

        code = generate_reset_code()
        db.add(
            PasswordReset(
                email=email,
                reset_code=code,
                expires_at=datetime.now(timezone.utc)
                + timedelta(minutes=settings.reset_code_ttl_minutes),
                used=False,
            )
        )
        await db.flush()
        logger.info("Issued password reset code for %s", email)

        await email_service.send_reset_code(user.email, user.name, code)

    async def reset_password(self, db: AsyncSession, data: ResetPasswordRequest) -> None:
        """
        Consume a reset code and set the new password.

        Raises:
            ValidationError: code unknown, already used or expired
            NotFoundError: the account was deleted after the code was issued
        """
        result = await db.execute(
            select(PasswordReset).where(
                PasswordReset.email == data.email,
                PasswordReset.reset_code == data.reset_code,
                PasswordReset.used.is_(False),
                PasswordReset.expires_at > datetime.now(timezone.utc),
            )
        )
        entry = result.scalars().first()
        if entry is None:
            raise ValidationError(message="Invalid or expired reset code", field="resetCode")

        user = await self.get_user_by_email(db, data.email)
        if user is None:
            raise NotFoundError(resource="user", context={"email": data.email})

        user.password_hash = hash_password(data.new_password)
        entry.used = True
        await db.flush()
        logger.info("Password reset completed for user %s", user.id)

    async def get_user_for_token(self, db: AsyncSession, token: str) -> User:
        """
        Resolve a bearer token to its user.

        Raises:
            UnauthorizedError: token invalid/expired, or its user no longer exists
        """
        payload = decode_access_token(token)
        if not payload or "userId" not in payload:
            raise UnauthorizedError(message="Invalid or expired token")

        try:
            user_id = uuid.UUID(str(payload["userId"]))
        except ValueError:
            raise UnauthorizedError(message="Invalid or expired token")

        user = await db.get(User, user_id)
        if user is None:
            raise UnauthorizedError(message="User not found")
        return user


# ── Singleton Instance ────────────────────────────────────────────────────
auth_service = AuthService()
