"""
StudyShare Backend — Request Dependencies
===========================================

Authentication for protected routes.

    @router.get("/me")
    async def get_me(user: User = Depends(get_current_user)):
        ...

The client sends `Authorization: Bearer <token>`. Missing header, bad token
and deleted account all raise UnauthorizedError (HTTP 401).
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from studyshare.database import get_db_session
from studyshare.exceptions import UnauthorizedError
from studyshare.models.user import User
from studyshare.services.auth_service import auth_service


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError(message="Authentication required")

    return await auth_service.get_user_for_token(db, token.strip())
