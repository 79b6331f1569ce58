"""
StudyShare Backend — Resource Search Service
==============================================

What:  Filtered, sorted, paginated search over resources (GET /api/resources/search).
Why:   The browse page of the SPA is driven entirely by this query.
How:   Translates ResourceSearchParams into SQL predicates, runs a COUNT and
       a page query, and returns resources plus pagination metadata.
Who:   Called by the resources router. Public: no identity is required.

Filter composition:
    Every supplied filter is ANDed. searchText is itself an OR across
    title / description / subject / teacher, ANDed with the rest.

        searchText   ILIKE %text% on any of 4 columns (wildcards escaped)
        subject      ILIKE %value%
        department   ILIKE %value%
        teacher      ILIKE %value%
        fileType     ILIKE %value%
        semester     = value
        uploadedBy   = owner id (an unparsable id matches nothing)
        tags         EXISTS tag row with name IN (...)   (set intersection)

Sort modes:
    recent    created_at DESC, seq DESC          → ORDER BY / OFFSET / LIMIT in SQL
    upvotes   upvotes DESC, created_at DESC,     → ORDER BY / OFFSET / LIMIT in SQL
              seq DESC
    comments  len(comments) DESC                 → fetch ALL matches, sort in
                                                   Python, then slice the window

    The comment count is not a stored column, so the comments mode sorts the
    whole match set before paginating. Sorting only the current page would
    give a different order than the true global one.

    seq is the insertion counter of resources, so equal timestamps still
    come back in insertion order.

Pagination:
    skip  = (page - 1) * limit
    page  = matches[skip : skip + limit]
    total = COUNT of all matches (independent of sort and page)
    pages = ceil(total / limit); a page past the end is empty, not an error,
            and no page query is sent for it

Failure:
    Any database error becomes DataUnavailableError (HTTP 503, retryable).
    No retry happens here and no partial result is returned.
"""

import logging
import math
import uuid
from typing import List, Optional

from sqlalchemy import Select, false, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from studyshare.exceptions import DataUnavailableError
from studyshare.models.resource import Resource, ResourceTag
from studyshare.schemas.resource import (
    PaginationMeta,
    ResourceResponse,
    ResourceSearchParams,
    ResourceSearchResponse,
)

logger = logging.getLogger(__name__)


def build_filters(params: ResourceSearchParams) -> List[ColumnElement[bool]]:
    """
    Translate search parameters into a list of SQL predicates (implicitly ANDed).

    Absent parameters contribute nothing; they never mean "match empty".
    """
    conditions: List[ColumnElement[bool]] = []

    if params.search_text:
        text = params.search_text
        conditions.append(
            or_(
                Resource.title.icontains(text, autoescape=True),
                Resource.description.icontains(text, autoescape=True),
                Resource.subject.icontains(text, autoescape=True),
                Resource.teacher.icontains(text, autoescape=True),
            )
        )

    if params.subject:
        conditions.append(Resource.subject.icontains(params.subject, autoescape=True))
    if params.department:
        conditions.append(Resource.department.icontains(params.department, autoescape=True))
    if params.teacher:
        conditions.append(Resource.teacher.icontains(params.teacher, autoescape=True))
    if params.file_type:
        conditions.append(Resource.file_type.icontains(params.file_type, autoescape=True))

    if params.semester is not None:
        conditions.append(Resource.semester == params.semester)

    if params.uploaded_by:
        owner_id = _parse_id(params.uploaded_by)
        conditions.append(Resource.uploaded_by_id == owner_id if owner_id else false())

    if params.tags:
        conditions.append(Resource.tag_links.any(ResourceTag.name.in_(params.tags)))

    return conditions


def _parse_id(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        return None


def _where(query: Select, conditions: List[ColumnElement[bool]]) -> Select:
    for condition in conditions:
        query = query.where(condition)
    return query


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


class SearchService:
    """
    Stateless search over the resource store.

    Methods take the session per call, so one instance serves every request
    and any number of searches can run concurrently (reads only).
    """

    async def search(
        self,
        db: AsyncSession,
        params: ResourceSearchParams,
    ) -> ResourceSearchResponse:
        """
        Run a search and return one page of results plus pagination metadata.

        Args:
            db: Async database session
            params: Coerced search parameters

        Returns:
            ResourceSearchResponse with `resources` and `pagination`

        Raises:
            DataUnavailableError: the count or page query failed
        """
        conditions = build_filters(params)
        skip = params.skip

        try:
            count_query = _where(select(func.count(Resource.id)), conditions)
            total = (await db.execute(count_query)).scalar() or 0

            if skip >= total:
                # Past the last page; OFFSET may not even fit in a BIGINT
                resources = []
            elif params.sort_by == "comments":
                resources = await self._comment_sorted_window(db, conditions, skip, params.limit)
            else:
                resources = await self._store_sorted_window(
                    db, conditions, params.sort_by, skip, params.limit
                )
        except SQLAlchemyError as e:
            logger.error(
                "Resource search failed (sort=%s, page=%d): %s",
                params.sort_by,
                params.page,
                str(e),
                exc_info=True,
            )
            raise DataUnavailableError(context={"error_type": type(e).__name__})

        logger.debug(
            "Search matched %d resources; returning %d (page=%d, limit=%d, sort=%s)",
            total,
            len(resources),
            params.page,
            params.limit,
            params.sort_by,
        )

        return ResourceSearchResponse(
            resources=[ResourceResponse.model_validate(r) for r in resources],
            pagination=PaginationMeta(
                total=total,
                page=params.page,
                limit=params.limit,
                pages=page_count(total, params.limit),
            ),
        )

    async def _store_sorted_window(
        self,
        db: AsyncSession,
        conditions: List[ColumnElement[bool]],
        sort_by: str,
        skip: int,
        limit: int,
    ) -> List[Resource]:
        """recent / upvotes: the database sorts and slices."""
        if sort_by == "upvotes":
            order = (Resource.upvotes.desc(), Resource.created_at.desc(), Resource.seq.desc())
        else:
            order = (Resource.created_at.desc(), Resource.seq.desc())

        query = _where(select(Resource), conditions).order_by(*order).offset(skip).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def _comment_sorted_window(
        self,
        db: AsyncSession,
        conditions: List[ColumnElement[bool]],
        skip: int,
        limit: int,
    ) -> List[Resource]:
        """
        comments: fetch every match, sort by comment count, then slice.

        Matches are fetched oldest first; list.sort is stable (also with
        reverse=True), so resources with equal counts stay in insertion order.
        """
        query = _where(select(Resource), conditions).order_by(
            Resource.created_at.asc(), Resource.seq.asc()
        )
        result = await db.execute(query)
        matches = list(result.scalars().all())
        matches.sort(key=lambda r: r.comment_count, reverse=True)
        return matches[skip:skip + limit]


# ── Singleton Instance ────────────────────────────────────────────────────
search_service = SearchService()
