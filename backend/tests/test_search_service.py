"""
StudyShare Backend — Search Service Tests
===========================================

What:  Filter composition, sort orders and pagination of SearchService.search.
How:   Real queries against in-memory SQLite, seeded through the factories in
       conftest.py; one mocked session for the store-failure path.

What we test:
    ✅ Pagination window, total and page count (25 matches, limit 10)
    ✅ searchText OR across title/description/subject/teacher
    ✅ Every other filter ANDed, tags as set intersection
    ✅ Sort orders hold across page boundaries (concatenated pages)
    ✅ Equal timestamps fall back to insertion order
    ✅ A page far past the end is empty and sends no page query
    ✅ Store failure → DataUnavailableError, nothing partial
"""

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from studyshare.exceptions import DataUnavailableError
from studyshare.schemas.resource import ResourceSearchParams
from studyshare.services.search_service import SearchService, build_filters, page_count

SAME_INSTANT = datetime(2024, 9, 1, 12, 0, tzinfo=timezone.utc)


async def _all_pages(service, db, **params):
    """Concatenate every page of a search into one list of resources."""
    first = await service.search(db, ResourceSearchParams(page=1, **params))
    items = list(first.resources)
    for page in range(2, first.pagination.pages + 1):
        result = await service.search(db, ResourceSearchParams(page=page, **params))
        items.extend(result.resources)
    return items


class TestPagination:
    def setup_method(self):
        self.service = SearchService()

    @pytest.mark.asyncio
    async def test_25_matches_limit_10(self, db_session, make_user, make_resource):
        owner = await make_user()
        for _ in range(25):
            await make_resource(owner, department="CS")
        await make_resource(owner, department="EE")

        sizes = {}
        for page in (1, 3, 4):
            result = await self.service.search(
                db_session, ResourceSearchParams(department="CS", limit=10, page=page)
            )
            sizes[page] = len(result.resources)
            assert result.pagination.total == 25
            assert result.pagination.pages == 3
            assert result.pagination.page == page
            assert result.pagination.limit == 10

        assert sizes == {1: 10, 3: 5, 4: 0}

    @pytest.mark.asyncio
    async def test_pages_partition_the_result_set(self, db_session, make_user, make_resource):
        owner = await make_user()
        created = [await make_resource(owner) for _ in range(7)]

        items = await _all_pages(self.service, db_session, limit=3)

        assert len(items) == 7
        assert {r.id for r in items} == {r.id for r in created}

    @pytest.mark.asyncio
    async def test_total_is_independent_of_sort_and_page(self, db_session, make_user, make_resource):
        owner = await make_user()
        for i in range(6):
            await make_resource(owner, comments=i % 3)

        totals = set()
        for sort_by in ("recent", "upvotes", "comments"):
            for page in (1, 2, 9):
                result = await self.service.search(
                    db_session, ResourceSearchParams(sort_by=sort_by, page=page, limit=4)
                )
                totals.add(result.pagination.total)
        assert totals == {6}

    @pytest.mark.asyncio
    async def test_no_matches(self, db_session, make_user, make_resource):
        owner = await make_user()
        await make_resource(owner, subject="Algorithms")

        result = await self.service.search(db_session, ResourceSearchParams(subject="Botany"))

        assert result.resources == []
        assert result.pagination.total == 0
        assert result.pagination.pages == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("sort_by", ["recent", "upvotes", "comments"])
    async def test_page_far_past_the_end_is_empty(self, db_session, make_user, make_resource, sort_by):
        owner = await make_user()
        await make_resource(owner)

        result = await self.service.search(
            db_session, ResourceSearchParams(page=2**62, limit=20, sort_by=sort_by)
        )

        assert result.resources == []
        assert result.pagination.total == 1
        assert result.pagination.pages == 1
        assert result.pagination.page == 2**62

    @pytest.mark.asyncio
    async def test_page_past_the_end_runs_only_the_count(self, mock_db_session):
        count_result = type("CountResult", (), {"scalar": lambda self: 3})()
        mock_db_session.execute.return_value = count_result

        result = await self.service.search(mock_db_session, ResourceSearchParams(page=2, limit=3))

        assert result.resources == []
        assert result.pagination.total == 3
        mock_db_session.execute.assert_awaited_once()

    def test_page_count(self):
        assert page_count(0, 20) == 0
        assert page_count(1, 20) == 1
        assert page_count(20, 20) == 1
        assert page_count(21, 20) == 2


class TestFilters:
    def setup_method(self):
        self.service = SearchService()

    @pytest.mark.asyncio
    async def test_search_text_matches_any_text_field(self, db_session, make_user, make_resource):
        owner = await make_user()
        by_title = await make_resource(owner, title="Data Structures Notes")
        by_description = await make_resource(owner, title="Week 3", description="Covers metadata handling")
        by_subject = await make_resource(owner, title="Slides", subject="Big DATA Systems")
        by_teacher = await make_resource(owner, title="Quiz", teacher="Prof. Databrook")
        await make_resource(owner, title="Operating Systems", description="Scheduling")

        result = await self.service.search(db_session, ResourceSearchParams(search_text="data"))

        assert {r.id for r in result.resources} == {
            by_title.id, by_description.id, by_subject.id, by_teacher.id,
        }

    @pytest.mark.asyncio
    async def test_search_text_wildcards_are_literal(self, db_session, make_user, make_resource):
        owner = await make_user()
        literal = await make_resource(owner, title="100% coverage guide")
        await make_resource(owner, title="1000 practice problems")

        result = await self.service.search(db_session, ResourceSearchParams(search_text="0%"))

        assert [r.id for r in result.resources] == [literal.id]

    @pytest.mark.asyncio
    async def test_filters_are_anded(self, db_session, make_user, make_resource):
        owner = await make_user()
        match = await make_resource(owner, subject="Calculus", semester=2, teacher="Dr. Rao")
        await make_resource(owner, subject="Calculus", semester=4, teacher="Dr. Rao")
        await make_resource(owner, subject="Physics", semester=2, teacher="Dr. Rao")

        result = await self.service.search(
            db_session,
            ResourceSearchParams(subject="calc", semester=2, teacher="rao"),
        )

        assert [r.id for r in result.resources] == [match.id]

    @pytest.mark.asyncio
    async def test_search_text_combined_with_filter(self, db_session, make_user, make_resource):
        owner = await make_user()
        match = await make_resource(owner, title="Graph theory", department="CS")
        await make_resource(owner, title="Graph theory", department="Math")

        result = await self.service.search(
            db_session, ResourceSearchParams(search_text="graph", department="CS")
        )

        assert [r.id for r in result.resources] == [match.id]

    @pytest.mark.asyncio
    async def test_tags_match_any_overlap(self, db_session, make_user, make_resource):
        owner = await make_user()
        exam_notes = await make_resource(owner, tags=["exam", "notes"])
        lab = await make_resource(owner, tags=["lab"])
        await make_resource(owner, tags=["slides"])
        await make_resource(owner)

        result = await self.service.search(
            db_session, ResourceSearchParams(tags="notes, lab")
        )

        assert {r.id for r in result.resources} == {exam_notes.id, lab.id}
        assert result.pagination.total == 2

    @pytest.mark.asyncio
    async def test_tags_are_case_sensitive(self, db_session, make_user, make_resource):
        owner = await make_user()
        await make_resource(owner, tags=["Exam"])

        result = await self.service.search(db_session, ResourceSearchParams(tags=["exam"]))

        assert result.pagination.total == 0

    @pytest.mark.asyncio
    async def test_file_type_substring(self, db_session, make_user, make_resource):
        owner = await make_user()
        pdf = await make_resource(owner, file_type="application/pdf")
        await make_resource(owner, file_type="application/msword")

        result = await self.service.search(db_session, ResourceSearchParams(file_type="PDF"))

        assert [r.id for r in result.resources] == [pdf.id]

    @pytest.mark.asyncio
    async def test_uploaded_by(self, db_session, make_user, make_resource):
        alice = await make_user()
        bob = await make_user()
        mine = await make_resource(alice)
        await make_resource(bob)

        result = await self.service.search(
            db_session, ResourceSearchParams(uploaded_by=str(alice.id))
        )

        assert [r.id for r in result.resources] == [mine.id]
        assert result.resources[0].uploaded_by.name == alice.name

    @pytest.mark.asyncio
    async def test_unparsable_uploaded_by_matches_nothing(self, db_session, make_user, make_resource):
        owner = await make_user()
        await make_resource(owner)

        result = await self.service.search(
            db_session, ResourceSearchParams(uploaded_by="not-a-user-id")
        )

        assert result.resources == []
        assert result.pagination.total == 0

    def test_absent_parameters_add_no_conditions(self):
        assert build_filters(ResourceSearchParams()) == []
        assert len(build_filters(ResourceSearchParams(subject="x", semester=1))) == 2
        assert len(build_filters(ResourceSearchParams(uploaded_by=str(uuid.uuid4())))) == 1


class TestSorting:
    def setup_method(self):
        self.service = SearchService()

    @pytest.mark.asyncio
    async def test_recent_is_newest_first(self, db_session, make_user, make_resource):
        owner = await make_user()
        created = [await make_resource(owner) for _ in range(5)]

        items = await _all_pages(self.service, db_session, limit=2)

        assert [r.id for r in items] == [r.id for r in reversed(created)]

    @pytest.mark.asyncio
    async def test_upvotes_non_increasing_across_pages(self, db_session, make_user, make_resource):
        owner = await make_user()
        voters = [await make_user() for _ in range(4)]
        for n in (1, 4, 0, 2, 3, 2):
            await make_resource(owner, upvoters=voters[:n])

        items = await _all_pages(self.service, db_session, sort_by="upvotes", limit=4)

        counts = [r.upvotes for r in items]
        assert counts == sorted(counts, reverse=True)
        assert len(items) == 6
        # the counter mirrors the upvoter set
        assert all(r.upvotes == len(r.upvoted_by) for r in items)

    @pytest.mark.asyncio
    async def test_upvote_ties_newest_first(self, db_session, make_user, make_resource):
        owner = await make_user()
        voter = await make_user()
        older = await make_resource(owner, upvoters=[voter])
        newer = await make_resource(owner, upvoters=[voter])

        result = await self.service.search(db_session, ResourceSearchParams(sort_by="upvotes"))

        assert [r.id for r in result.resources] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_comments_sorted_over_full_result_set(self, db_session, make_user, make_resource):
        """The page boundary must not reset the order: counts decrease across pages."""
        owner = await make_user()
        for n in (0, 3, 1, 5, 2, 4, 0):
            await make_resource(owner, comments=n)

        items = await _all_pages(self.service, db_session, sort_by="comments", limit=2)

        assert [len(r.comments) for r in items] == [5, 4, 3, 2, 1, 0, 0]

    @pytest.mark.asyncio
    async def test_comment_ties_keep_insertion_order(self, db_session, make_user, make_resource):
        owner = await make_user()
        first = await make_resource(owner, comments=1)
        second = await make_resource(owner, comments=1)
        top = await make_resource(owner, comments=2)

        result = await self.service.search(db_session, ResourceSearchParams(sort_by="comments"))

        assert [r.id for r in result.resources] == [top.id, first.id, second.id]

    @pytest.mark.asyncio
    async def test_same_timestamp_recent_in_reverse_insertion_order(
        self, db_session, make_user, make_resource
    ):
        owner = await make_user()
        created = [await make_resource(owner, created_at=SAME_INSTANT) for _ in range(12)]

        items = await _all_pages(self.service, db_session, limit=5)

        assert [r.id for r in items] == [r.id for r in reversed(created)]

    @pytest.mark.asyncio
    async def test_same_timestamp_upvote_ties_in_reverse_insertion_order(
        self, db_session, make_user, make_resource
    ):
        owner = await make_user()
        voter = await make_user()
        created = [
            await make_resource(owner, upvoters=[voter], created_at=SAME_INSTANT)
            for _ in range(6)
        ]

        items = await _all_pages(self.service, db_session, sort_by="upvotes", limit=4)

        assert [r.id for r in items] == [r.id for r in reversed(created)]

    @pytest.mark.asyncio
    async def test_same_timestamp_comment_ties_keep_insertion_order(
        self, db_session, make_user, make_resource
    ):
        owner = await make_user()
        created = [await make_resource(owner, created_at=SAME_INSTANT) for _ in range(12)]

        items = await _all_pages(self.service, db_session, sort_by="comments", limit=5)

        assert [r.id for r in items] == [r.id for r in created]

    @pytest.mark.asyncio
    async def test_comments_sort_respects_filters(self, db_session, make_user, make_resource):
        owner = await make_user()
        cs = await make_resource(owner, department="CS", comments=1)
        await make_resource(owner, department="EE", comments=9)

        result = await self.service.search(
            db_session, ResourceSearchParams(sort_by="comments", department="CS")
        )

        assert [r.id for r in result.resources] == [cs.id]
        assert result.pagination.total == 1


class TestStoreFailure:
    def setup_method(self):
        self.service = SearchService()

    @pytest.mark.asyncio
    async def test_count_failure_raises_data_unavailable(self, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        with pytest.raises(DataUnavailableError) as exc_info:
            await self.service.search(mock_db_session, ResourceSearchParams())

        assert exc_info.value.retry_after > 0
        mock_db_session.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_page_query_failure_raises_data_unavailable(self, mock_db_session):
        count_result = type("CountResult", (), {"scalar": lambda self: 3})()
        mock_db_session.execute.side_effect = [
            count_result,
            OperationalError("SELECT", {}, Exception("connection lost")),
        ]

        with pytest.raises(DataUnavailableError):
            await self.service.search(
                mock_db_session, ResourceSearchParams(sort_by="comments")
            )
