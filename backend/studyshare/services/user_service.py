"""
StudyShare Backend — User Profile Service
===========================================

Reads and edits the authenticated user's own profile (GET/PATCH /api/users/me).
Only email, semester and department are editable; name and role are fixed
at registration.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from studyshare.exceptions import ConflictError
from studyshare.models.user import User
from studyshare.schemas.user import UserProfile, UserUpdateRequest

logger = logging.getLogger(__name__)


class UserService:
    def get_profile(self, user: User) -> UserProfile:
        return UserProfile.model_validate(user)

    async def update_profile(
        self,
        db: AsyncSession,
        user: User,
        data: UserUpdateRequest,
    ) -> UserProfile:
        """
        Apply the supplied fields to the user's profile.

        Raises:
            ConflictError: the new email belongs to another account
        """
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        new_email = changes.get("email")
        if new_email and new_email != user.email:
            taken = await db.execute(
                select(User.id).where(User.email == new_email, User.id != user.id)
            )
            if taken.first() is not None:
                raise ConflictError(
                    message="Email already in use by another account",
                    context={"email": new_email},
                )

        for field, value in changes.items():
            setattr(user, field, value)

        try:
            await db.flush()
        except IntegrityError:
            raise ConflictError(
                message="Email already in use by another account",
                context={"email": new_email},
            )
        await db.refresh(user)

        logger.info("Updated profile of user %s (fields=%s)", user.id, sorted(changes))
        return UserProfile.model_validate(user)


# ── Singleton Instance ────────────────────────────────────────────────────
user_service = UserService()
