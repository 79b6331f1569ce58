"""
StudyShare Backend — Resource Schemas
=======================================

What:  API contract for resources: the resource view, mutation bodies and
       the search parameter / result models.
Who:   Routes use these as response models; SearchService consumes
       ResourceSearchParams and produces ResourceSearchResponse.

Search parameter coercion:
    Query strings reach ResourceSearchParams already typed by FastAPI, but the
    model is also built from raw mappings (tests, internal callers). Every
    field therefore coerces with mode="before" validators instead of failing:

        page / limit    invalid or < 1      → default (1 / 20)
        limit           above 100           → 100
        semester        non-numeric         → unset (no constraint)
        sortBy          unknown value       → "recent"
        text filters    empty / whitespace  → unset
        tags            "a,b" or ["a","b"]  → ["a", "b"] (empty → unset)
"""

import uuid
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import Field, field_validator

from studyshare.schemas.common import CamelModel
from studyshare.schemas.user import UserPublic, UserSummary
from studyshare.utils.validators import (
    blank_to_none,
    coerce_int,
    coerce_positive_int,
    split_tags,
)

SortBy = Literal["recent", "upvotes", "comments"]
SORT_OPTIONS = ("recent", "upvotes", "comments")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


# ══════════════════════════════════════════════════════════════════════════
# Resource views
# ══════════════════════════════════════════════════════════════════════════


class CommentResponse(CamelModel):
    id: uuid.UUID
    user: UserSummary
    text: str
    created_at: datetime


class ResourceResponse(CamelModel):
    """
    Full resource representation, owner populated with public fields.

    Built with ResourceResponse.model_validate(orm_resource); `tags` and
    `upvoted_by` come from the model's convenience properties.
    """
    id: uuid.UUID
    title: str
    description: str = ""
    subject: str
    department: str
    semester: int
    teacher: str = ""
    tags: List[str] = Field(default_factory=list)
    file_url: str
    file_type: str
    uploaded_by: UserPublic
    upvotes: int = 0
    upvoted_by: List[uuid.UUID] = Field(default_factory=list)
    comments: List[CommentResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ResourceEnvelope(CamelModel):
    resource: ResourceResponse


class ResourceListResponse(CamelModel):
    resources: List[ResourceResponse]


class ResourceMutationResponse(CamelModel):
    message: str
    resource: ResourceResponse


# ══════════════════════════════════════════════════════════════════════════
# Mutation bodies
# ══════════════════════════════════════════════════════════════════════════


class ResourceCreateRequest(CamelModel):
    """Metadata fields of the POST /api/resources multipart form."""
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    subject: str = Field(min_length=1, max_length=255)
    department: str = Field(min_length=1, max_length=255)
    semester: int = Field(ge=1)
    teacher: str = ""
    tags: List[str] = Field(default_factory=list)

    @field_validator("title", "description", "subject", "department", "teacher", mode="before")
    @classmethod
    def strip_text(cls, v):
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v

    @field_validator("tags", mode="before")
    @classmethod
    def split_tag_input(cls, v):
        return split_tags(v)


class ResourceUpdateRequest(CamelModel):
    """
    PUT /api/resources/{id} body.

    Empty or missing values keep the stored value, so a client can send the
    whole edit form without clearing fields it left blank.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    subject: Optional[str] = None
    department: Optional[str] = None
    semester: Optional[int] = Field(default=None, ge=1)
    teacher: Optional[str] = None
    tags: Optional[List[str]] = None

    @field_validator("title", "description", "subject", "department", "teacher", mode="before")
    @classmethod
    def blank_text_means_unchanged(cls, v):
        return blank_to_none(v)

    @field_validator("semester", mode="before")
    @classmethod
    def blank_semester_means_unchanged(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def split_tag_input(cls, v):
        if v is None:
            return None
        tags = split_tags(v)
        return tags or None


class CommentCreateRequest(CamelModel):
    text: str = Field(min_length=1, max_length=5000)

    @field_validator("text", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class CommentCreatedResponse(CamelModel):
    message: str = "Comment added successfully"
    comment: CommentResponse


class UpvoteResponse(CamelModel):
    message: str
    upvotes: int
    has_upvoted: bool


# ══════════════════════════════════════════════════════════════════════════
# Search
# ══════════════════════════════════════════════════════════════════════════


class ResourceSearchParams(CamelModel):
    """Optional search filters plus sort order and page window."""

    search_text: Optional[str] = None
    subject: Optional[str] = None
    department: Optional[str] = None
    semester: Optional[int] = None
    teacher: Optional[str] = None
    tags: Optional[List[str]] = None
    file_type: Optional[str] = None
    uploaded_by: Optional[str] = None
    sort_by: SortBy = "recent"
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @field_validator(
        "search_text", "subject", "department", "teacher", "file_type", "uploaded_by",
        mode="before",
    )
    @classmethod
    def blank_means_unset(cls, v: Any) -> Optional[str]:
        return blank_to_none(v)

    @field_validator("semester", mode="before")
    @classmethod
    def coerce_semester(cls, v: Any) -> Optional[int]:
        return coerce_int(v)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, v: Any) -> Optional[List[str]]:
        tags = split_tags(v)
        return tags or None

    @field_validator("sort_by", mode="before")
    @classmethod
    def coerce_sort(cls, v: Any) -> str:
        value = blank_to_none(v)
        return value if value in SORT_OPTIONS else "recent"

    @field_validator("page", mode="before")
    @classmethod
    def coerce_page(cls, v: Any) -> int:
        return coerce_positive_int(v, DEFAULT_PAGE)

    @field_validator("limit", mode="before")
    @classmethod
    def coerce_limit(cls, v: Any) -> int:
        return min(coerce_positive_int(v, DEFAULT_LIMIT), MAX_LIMIT)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class PaginationMeta(CamelModel):
    total: int = Field(description="Number of resources matching the filters (all pages)")
    page: int
    limit: int
    pages: int = Field(description="ceil(total / limit)")


class ResourceSearchResponse(CamelModel):
    resources: List[ResourceResponse]
    pagination: PaginationMeta
