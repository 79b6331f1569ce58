"""
StudyShare Backend — Resource Service Tests
=============================================

What:  Upload orchestration, ownership rules, upvote toggling and comments.
How:   In-memory SQLite for state; the storage service is mocked where the
       test is about the database side of an upload.

What we test:
    ✅ Upload stores the file, persists the row, and cleans up on DB failure
    ✅ Only the owner can edit or delete
    ✅ Upvote toggle keeps upvotes == |upvoters|
    ✅ Comments are appended with their author
"""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from studyshare.exceptions import (
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    UploadRejectedError,
)
from studyshare.models.resource import resource_upvotes
from studyshare.schemas.resource import ResourceCreateRequest, ResourceUpdateRequest
from studyshare.services.resource_service import ResourceService
from studyshare.services.storage_base import StoredFile


def _create_request(**overrides):
    fields = {
        "title": "Operating Systems Notes",
        "subject": "Operating Systems",
        "department": "CS",
        "semester": 4,
        "tags": "kernel, scheduling",
    }
    fields.update(overrides)
    return ResourceCreateRequest(**fields)


def _stored(key="resources/abc-1700000000000.pdf"):
    return StoredFile(url=f"/api/files/{key}", key=key, content_type="application/pdf", size=42)


class TestCreateResource:
    def setup_method(self):
        self.service = ResourceService()

    @pytest.mark.asyncio
    async def test_create_persists_metadata_and_file_reference(self, db_session, make_user, pdf_bytes):
        owner = await make_user(name="Ada")

        with patch("studyshare.services.resource_service.storage_service") as mock_storage:
            mock_storage.store = AsyncMock(return_value=_stored())
            result = await self.service.create_resource(
                db_session,
                owner=owner,
                data=_create_request(),
                filename="os.pdf",
                content=pdf_bytes,
                content_type="application/pdf",
            )

        assert result.title == "Operating Systems Notes"
        assert result.tags == ["kernel", "scheduling"]
        assert result.file_url == "/api/files/resources/abc-1700000000000.pdf"
        assert result.file_type == "application/pdf"
        assert result.uploaded_by.id == owner.id
        assert result.uploaded_by.name == "Ada"
        assert result.upvotes == 0
        assert result.upvoted_by == []
        assert result.comments == []

    @pytest.mark.asyncio
    async def test_create_with_real_local_storage(self, db_session, make_user, pdf_bytes):
        owner = await make_user()

        result = await self.service.create_resource(
            db_session,
            owner=owner,
            data=_create_request(tags=None),
            filename="os.pdf",
            content=pdf_bytes,
            content_type="application/pdf",
        )

        assert result.file_url.startswith("/api/files/resources/")
        assert result.file_url.endswith(".pdf")
        assert result.tags == []

    @pytest.mark.asyncio
    async def test_rejected_upload_creates_nothing(self, db_session, make_user):
        owner = await make_user()

        with pytest.raises(UploadRejectedError):
            await self.service.create_resource(
                db_session,
                owner=owner,
                data=_create_request(),
                filename="photo.png",
                content=b"\x89PNG\r\n\x1a\n",
                content_type="image/png",
            )

        assert await self.service.list_resources(db_session) == []

    @pytest.mark.asyncio
    async def test_database_failure_removes_stored_file(self, mock_db_session, pdf_bytes):
        owner = type("Owner", (), {"id": uuid.uuid4()})()
        mock_db_session.flush.side_effect = OperationalError("INSERT", {}, Exception("disk full"))

        with patch("studyshare.services.resource_service.storage_service") as mock_storage:
            mock_storage.store = AsyncMock(return_value=_stored("resources/orphan.pdf"))
            mock_storage.delete = AsyncMock()

            with pytest.raises(DatabaseError):
                await self.service.create_resource(
                    mock_db_session,
                    owner=owner,
                    data=_create_request(),
                    filename="os.pdf",
                    content=pdf_bytes,
                    content_type="application/pdf",
                )

            mock_storage.delete.assert_awaited_once_with("resources/orphan.pdf")


class TestReadResources:
    def setup_method(self):
        self.service = ResourceService()

    @pytest.mark.asyncio
    async def test_get_missing_resource(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.get_resource(db_session, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_get_with_malformed_id_is_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.get_resource(db_session, "definitely-not-an-id")

    @pytest.mark.asyncio
    async def test_list_newest_first_and_by_owner(self, db_session, make_user, make_resource):
        alice = await make_user()
        bob = await make_user()
        a1 = await make_resource(alice)
        b1 = await make_resource(bob)
        a2 = await make_resource(alice)

        everything = await self.service.list_resources(db_session)
        mine = await self.service.list_resources(db_session, owner_id=alice.id)

        assert [r.id for r in everything] == [a2.id, b1.id, a1.id]
        assert [r.id for r in mine] == [a2.id, a1.id]

    @pytest.mark.asyncio
    async def test_list_same_timestamp_newest_insert_first(self, db_session, make_user, make_resource):
        owner = await make_user()
        instant = datetime(2024, 9, 1, 12, 0, tzinfo=timezone.utc)
        created = [await make_resource(owner, created_at=instant) for _ in range(8)]

        listed = await self.service.list_resources(db_session)

        assert [r.id for r in listed] == [r.id for r in reversed(created)]


class TestOwnership:
    def setup_method(self):
        self.service = ResourceService()

    @pytest.mark.asyncio
    async def test_owner_updates_only_supplied_fields(self, db_session, make_user, make_resource):
        owner = await make_user()
        resource = await make_resource(owner, title="Old", subject="Networks", tags=["a", "b"])

        result = await self.service.update_resource(
            db_session,
            owner,
            resource.id,
            ResourceUpdateRequest(title="New", subject="", tags="b, c"),
        )

        assert result.title == "New"
        assert result.subject == "Networks"
        assert result.tags == ["b", "c"]

    @pytest.mark.asyncio
    async def test_non_owner_cannot_update(self, db_session, make_user, make_resource):
        owner = await make_user()
        intruder = await make_user()
        resource = await make_resource(owner)

        with pytest.raises(ForbiddenError):
            await self.service.update_resource(
                db_session, intruder, resource.id, ResourceUpdateRequest(title="Mine now")
            )

    @pytest.mark.asyncio
    async def test_non_owner_cannot_delete(self, db_session, make_user, make_resource):
        owner = await make_user()
        intruder = await make_user()
        resource = await make_resource(owner)

        with pytest.raises(ForbiddenError):
            await self.service.delete_resource(db_session, intruder, resource.id)

    @pytest.mark.asyncio
    async def test_delete_returns_file_key_and_removes_row(self, db_session, make_user, make_resource):
        owner = await make_user()
        voter = await make_user()
        resource = await make_resource(owner, file_key="resources/gone.pdf", comments=2, upvoters=[voter])
        resource_id = resource.id

        key = await self.service.delete_resource(db_session, owner, resource_id)

        assert key == "resources/gone.pdf"
        with pytest.raises(NotFoundError):
            await self.service.get_resource(db_session, resource_id)
        remaining = await db_session.execute(
            select(func.count()).select_from(resource_upvotes).where(
                resource_upvotes.c.resource_id == resource_id
            )
        )
        assert remaining.scalar() == 0


class TestUpvoteToggle:
    def setup_method(self):
        self.service = ResourceService()

    async def _upvoter_count(self, db, resource_id):
        result = await db.execute(
            select(func.count()).select_from(resource_upvotes).where(
                resource_upvotes.c.resource_id == resource_id
            )
        )
        return result.scalar()

    @pytest.mark.asyncio
    async def test_toggle_adds_then_removes(self, db_session, make_user, make_resource):
        owner = await make_user()
        voter = await make_user()
        resource = await make_resource(owner)

        first = await self.service.toggle_upvote(db_session, voter, resource.id)
        assert first.has_upvoted is True
        assert first.upvotes == 1
        assert first.message == "Resource upvoted successfully"

        second = await self.service.toggle_upvote(db_session, voter, resource.id)
        assert second.has_upvoted is False
        assert second.upvotes == 0
        assert second.message == "Upvote removed successfully"

    @pytest.mark.asyncio
    async def test_counter_matches_upvoter_set(self, db_session, make_user, make_resource):
        owner = await make_user()
        voters = [await make_user() for _ in range(3)]
        resource = await make_resource(owner)

        for voter in voters:
            await self.service.toggle_upvote(db_session, voter, resource.id)
        last = await self.service.toggle_upvote(db_session, voters[1], resource.id)

        assert last.upvotes == 2
        assert await self._upvoter_count(db_session, resource.id) == 2

        view = await self.service.get_resource(db_session, resource.id)
        assert view.upvotes == 2
        assert set(view.upvoted_by) == {voters[0].id, voters[2].id}

    @pytest.mark.asyncio
    async def test_counter_repaired_from_upvoter_set(self, db_session, make_user, make_resource):
        """A drifted counter is recomputed from the set on the next toggle."""
        owner = await make_user()
        voter = await make_user()
        resource = await make_resource(owner, upvotes=7)

        result = await self.service.toggle_upvote(db_session, voter, resource.id)

        assert result.upvotes == 1

    @pytest.mark.asyncio
    async def test_upvote_missing_resource(self, db_session, make_user):
        voter = await make_user()
        with pytest.raises(NotFoundError):
            await self.service.toggle_upvote(db_session, voter, uuid.uuid4())


class TestComments:
    def setup_method(self):
        self.service = ResourceService()

    @pytest.mark.asyncio
    async def test_add_comment_returns_author(self, db_session, make_user, make_resource):
        owner = await make_user()
        commenter = await make_user(name="Grace")
        resource = await make_resource(owner)

        comment = await self.service.add_comment(db_session, commenter, resource.id, "Very helpful")

        assert comment.text == "Very helpful"
        assert comment.user.id == commenter.id
        assert comment.user.name == "Grace"

        view = await self.service.get_resource(db_session, resource.id)
        assert [c.text for c in view.comments] == ["Very helpful"]

    @pytest.mark.asyncio
    async def test_comments_append_in_order(self, db_session, make_user, make_resource):
        owner = await make_user()
        resource = await make_resource(owner)

        for text in ("first", "second", "third"):
            await self.service.add_comment(db_session, owner, resource.id, text)

        view = await self.service.get_resource(db_session, resource.id)
        assert [c.text for c in view.comments] == ["first", "second", "third"]

    @pytest.mark.asyncio
    async def test_comment_on_missing_resource(self, db_session, make_user):
        user = await make_user()
        with pytest.raises(NotFoundError):
            await self.service.add_comment(db_session, user, uuid.uuid4(), "hello")
