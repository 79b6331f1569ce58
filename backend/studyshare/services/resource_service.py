"""
StudyShare Backend — Resource Service (Business Logic Orchestrator)
=====================================================================

What:  Create, read, update and delete resources; toggle upvotes; append comments.
Why:   Keeps every rule about resources (ownership, upload cleanup, the
       upvote counter) out of the HTTP layer.
How:   Stateless; each call receives the request's AsyncSession. Writes are
       flushed here and committed by get_db_session.

Upload flow (POST /api/resources):
    ┌──────────┐    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐
    │  Route   │───▶│ StorageServ. │───▶│  INSERT row  │───▶│ reload with  │
    │ (form)   │    │ validate+save│    │  + tags      │    │ owner/tags   │
    └──────────┘    └──────────────┘    └──────────────┘    └──────────────┘
    If the INSERT fails, the stored file is deleted again.

Upvote toggle:
    The (resource, user) pair lives in resource_upvotes, whose composite
    primary key allows one row per user. The toggle inserts or deletes that
    row, then sets resources.upvotes to the row count in one UPDATE. Two
    concurrent toggles can no longer overwrite each other's change, and the
    counter always equals the size of the upvoter set.

Comments:
    Appended with a plain INSERT; concurrent comments never lose each other.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studyshare.exceptions import (
    DatabaseError,
    DataUnavailableError,
    ForbiddenError,
    NotFoundError,
)
from studyshare.models.resource import Comment, Resource, resource_upvotes
from studyshare.models.user import User
from studyshare.schemas.resource import (
    CommentResponse,
    ResourceCreateRequest,
    ResourceResponse,
    ResourceUpdateRequest,
    UpvoteResponse,
)
from studyshare.services.storage_service import storage_service

logger = logging.getLogger(__name__)


def parse_resource_id(value) -> uuid.UUID:
    """An id that is not a UUID cannot name an existing resource → 404."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFoundError(resource="resource", resource_id=str(value))


class ResourceService:
    """
    Business logic for resources.

    Error Handling Strategy:
        Missing rows become NotFoundError, foreign owners ForbiddenError.
        Failed reads become DataUnavailableError (503); failed writes become
        DatabaseError (500) with the driver message kept out of the response.
    """

    # ── Reads ─────────────────────────────────────────────────────────────

    async def _load(self, db: AsyncSession, resource_id) -> Resource:
        """
        Fetch a resource with owner, tags, upvoters and comments loaded.

        populate_existing refreshes objects already in the session, which
        matters after toggle_upvote / add_comment changed rows behind the ORM.
        """
        rid = parse_resource_id(resource_id)
        result = await db.execute(
            select(Resource)
            .where(Resource.id == rid)
            .execution_options(populate_existing=True)
        )
        resource = result.scalar_one_or_none()
        if resource is None:
            raise NotFoundError(resource="resource", resource_id=str(rid))
        return resource

    async def get_resource(self, db: AsyncSession, resource_id) -> ResourceResponse:
        try:
            resource = await self._load(db, resource_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching resource %s: %s", resource_id, str(e))
            raise DataUnavailableError(context={"resource_id": str(resource_id)})
        return ResourceResponse.model_validate(resource)

    async def list_resources(
        self,
        db: AsyncSession,
        owner_id: Optional[uuid.UUID] = None,
    ) -> List[ResourceResponse]:
        """All resources (or one user's), newest first."""
        query = select(Resource).order_by(Resource.created_at.desc(), Resource.seq.desc())
        if owner_id is not None:
            query = query.where(Resource.uploaded_by_id == owner_id)

        try:
            result = await db.execute(query.execution_options(populate_existing=True))
            resources = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error listing resources: %s", str(e), exc_info=True)
            raise DataUnavailableError(context={"error_type": type(e).__name__})

        return [ResourceResponse.model_validate(r) for r in resources]

    # ── Writes ────────────────────────────────────────────────────────────

    async def create_resource(
        self,
        db: AsyncSession,
        owner: User,
        data: ResourceCreateRequest,
        filename: str,
        content: bytes,
        content_type: Optional[str],
        content_length: Optional[int] = None,
    ) -> ResourceResponse:
        """
        Store the uploaded document and record it as a new resource.

        Raises:
            UploadRejectedError: the file failed validation (nothing stored)
            FileStorageError: the backend could not write the file
            DatabaseError: the row could not be inserted (stored file removed)
        """
        stored = await storage_service.store(
            filename=filename,
            content=content,
            content_type=content_type,
            content_length=content_length,
        )

        try:
            resource = Resource(
                title=data.title,
                description=data.description,
                subject=data.subject,
                department=data.department,
                semester=data.semester,
                teacher=data.teacher,
                file_url=stored.url,
                file_key=stored.key,
                file_type=stored.content_type,
                uploaded_by_id=owner.id,
                upvotes=0,
            )
            resource.set_tags(data.tags)
            db.add(resource)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Failed to insert resource for %s: %s", stored.key, str(e), exc_info=True)
            await storage_service.delete(stored.key)
            raise DatabaseError(
                message="Could not save the resource. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Resource %s created by user %s (%s)", resource.id, owner.id, stored.key)
        return ResourceResponse.model_validate(await self._load(db, resource.id))

    async def _load_owned(self, db: AsyncSession, resource_id, user: User, action: str) -> Resource:
        resource = await self._load(db, resource_id)
        if resource.uploaded_by_id != user.id:
            logger.warning(
                "User %s tried to %s resource %s owned by %s",
                user.id, action, resource.id, resource.uploaded_by_id,
            )
            raise ForbiddenError(
                message=f"Not authorized to {action} this resource",
                context={"resource_id": str(resource.id)},
            )
        return resource

    async def update_resource(
        self,
        db: AsyncSession,
        user: User,
        resource_id,
        data: ResourceUpdateRequest,
    ) -> ResourceResponse:
        """Owner-only metadata edit. Fields left empty keep their stored value."""
        resource = await self._load_owned(db, resource_id, user, "update")

        changes = data.model_dump(exclude_none=True)
        tags = changes.pop("tags", None)
        for field, value in changes.items():
            setattr(resource, field, value)
        if tags is not None:
            resource.set_tags(tags)

        await db.flush()
        logger.info("Resource %s updated (fields=%s)", resource.id, sorted(data.model_dump(exclude_none=True)))
        return ResourceResponse.model_validate(await self._load(db, resource.id))

    async def delete_resource(self, db: AsyncSession, user: User, resource_id) -> str:
        """
        Owner-only delete. Tags, upvotes and comments go with the row.

        Returns:
            The storage key of the document, for background deletion by the caller.
        """
        resource = await self._load_owned(db, resource_id, user, "delete")
        file_key = resource.file_key
        await db.delete(resource)
        await db.flush()
        logger.info("Resource %s deleted by user %s", resource.id, user.id)
        return file_key

    async def _require_exists(self, db: AsyncSession, resource_id) -> uuid.UUID:
        rid = parse_resource_id(resource_id)
        found = await db.execute(select(Resource.id).where(Resource.id == rid))
        if found.scalar_one_or_none() is None:
            raise NotFoundError(resource="resource", resource_id=str(rid))
        return rid

    async def toggle_upvote(self, db: AsyncSession, user: User, resource_id) -> UpvoteResponse:
        """
        Add the caller's upvote, or remove it if already present.

        Returns:
            UpvoteResponse with the new counter and whether the caller now upvotes.
        """
        rid = await self._require_exists(db, resource_id)
        pair = (resource_upvotes.c.resource_id == rid) & (resource_upvotes.c.user_id == user.id)

        removed = await db.execute(delete(resource_upvotes).where(pair))
        if removed.rowcount:
            has_upvoted = False
        else:
            try:
                async with db.begin_nested():
                    await db.execute(
                        insert(resource_upvotes).values(
                            resource_id=rid,
                            user_id=user.id,
                            created_at=datetime.now(timezone.utc),
                        )
                    )
            except IntegrityError:
                # A concurrent request from the same user inserted the pair first
                logger.debug("Upvote by %s on %s already recorded", user.id, rid)
            has_upvoted = True

        upvoter_count = (
            select(func.count())
            .select_from(resource_upvotes)
            .where(resource_upvotes.c.resource_id == rid)
            .scalar_subquery()
        )
        await db.execute(
            update(Resource)
            .where(Resource.id == rid)
            .values(upvotes=upvoter_count)
            .execution_options(synchronize_session=False)
        )
        upvotes = (await db.execute(select(Resource.upvotes).where(Resource.id == rid))).scalar_one()

        logger.info(
            "User %s %s resource %s (upvotes=%d)",
            user.id, "upvoted" if has_upvoted else "removed upvote from", rid, upvotes,
        )
        return UpvoteResponse(
            message="Resource upvoted successfully" if has_upvoted else "Upvote removed successfully",
            upvotes=upvotes,
            has_upvoted=has_upvoted,
        )

    async def add_comment(self, db: AsyncSession, user: User, resource_id, text: str) -> CommentResponse:
        """Append a comment by the caller to the resource's thread."""
        rid = await self._require_exists(db, resource_id)

        comment = Comment(resource_id=rid, user_id=user.id, text=text)
        comment.user = user
        db.add(comment)
        await db.flush()

        logger.info("Comment %s added to resource %s by user %s", comment.id, rid, user.id)
        return CommentResponse.model_validate(comment)


# ── Singleton Instance ────────────────────────────────────────────────────
resource_service = ResourceService()
