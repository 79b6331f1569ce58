"""
StudyShare Backend — Resource Routes
======================================

What:  Upload, browse, search, edit and discuss study resources.
How:   Thin handlers; ResourceService and SearchService do the work and the
       global exception handlers turn their errors into responses.

Endpoints:
    POST   /api/resources                 auth   multipart upload → 201
    GET    /api/resources                 public all resources, newest first
    GET    /api/resources/search          public filtered, sorted, paginated
    GET    /api/resources/user            auth   the caller's uploads
    GET    /api/resources/{id}            public one resource with comments
    PUT    /api/resources/{id}            owner  metadata edit
    DELETE /api/resources/{id}            owner  delete (file removed in background)
    POST   /api/resources/{id}/upvote     auth   toggle the caller's upvote
    POST   /api/resources/{id}/comment    auth   append a comment → 201

Route order:
    /search and /user are declared before /{id}; otherwise the path
    parameter would capture them.

Search query parameters:
    Malformed numbers (page=abc, limit=0, semester=x) and a limit above 100
    are rejected here with 422 before the search runs. A page past the end
    is valid and comes back empty.
"""

import logging
from typing import List, Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    Query,
    UploadFile,
)
from sqlalchemy.ext.asyncio import AsyncSession

from studyshare.database import get_db_session
from studyshare.dependencies import get_current_user
from studyshare.exceptions import UploadRejectedError
from studyshare.models.user import User
from studyshare.schemas.common import ErrorResponse, MessageResponse
from studyshare.schemas.resource import (
    DEFAULT_LIMIT,
    DEFAULT_PAGE,
    MAX_LIMIT,
    CommentCreateRequest,
    CommentCreatedResponse,
    ResourceCreateRequest,
    ResourceEnvelope,
    ResourceListResponse,
    ResourceMutationResponse,
    ResourceSearchParams,
    ResourceSearchResponse,
    ResourceUpdateRequest,
    UpvoteResponse,
)
from studyshare.services.resource_service import resource_service
from studyshare.services.search_service import search_service
from studyshare.services.storage_service import storage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/resources", tags=["Resources"])

_AUTH_ERRORS = {401: {"description": "Not authenticated", "model": ErrorResponse}}
_NOT_FOUND = {404: {"description": "Resource not found", "model": ErrorResponse}}


@router.post(
    "",
    status_code=201,
    response_model=ResourceMutationResponse,
    responses={
        400: {"description": "File missing, unsupported or too large", "model": ErrorResponse},
        **_AUTH_ERRORS,
    },
    summary="Upload a study resource",
    description="Multipart upload of a PDF, DOCX, PPTX, DOC or PPT file (max 10MB) with its metadata.",
)
async def create_resource(
    file: Optional[UploadFile] = File(None, description="The document to share"),
    title: str = Form(...),
    subject: str = Form(...),
    department: str = Form(...),
    semester: int = Form(..., ge=1),
    description: str = Form(""),
    teacher: str = Form(""),
    tags: Optional[str] = Form(None, description="Comma-separated tags"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ResourceMutationResponse:
    if file is None:
        raise UploadRejectedError(message="No file uploaded")

    data = ResourceCreateRequest(
        title=title,
        description=description,
        subject=subject,
        department=department,
        semester=semester,
        teacher=teacher,
        tags=tags,
    )

    try:
        content = await file.read()
        logger.info(
            "Received upload: filename=%s, content_type=%s, size=%d bytes",
            file.filename or "unknown",
            file.content_type,
            len(content),
        )
        resource = await resource_service.create_resource(
            db,
            owner=user,
            data=data,
            filename=file.filename or "",
            content=content,
            content_type=file.content_type,
            content_length=file.size,
        )
    finally:
        await file.close()

    return ResourceMutationResponse(message="Resource created successfully", resource=resource)


@router.get(
    "",
    response_model=ResourceListResponse,
    summary="All resources, newest first",
)
async def list_resources(db: AsyncSession = Depends(get_db_session)) -> ResourceListResponse:
    return ResourceListResponse(resources=await resource_service.list_resources(db))


@router.get(
    "/search",
    response_model=ResourceSearchResponse,
    responses={503: {"description": "Resource data temporarily unavailable", "model": ErrorResponse}},
    summary="Search resources",
    description=(
        "Every supplied filter must match. searchText matches title, description, "
        "subject or teacher (case-insensitive substring). tags matches resources "
        "carrying at least one of the given tags."
    ),
)
async def search_resources(
    search_text: Optional[str] = Query(None, alias="searchText"),
    subject: Optional[str] = Query(None),
    department: Optional[str] = Query(None),
    semester: Optional[int] = Query(None, ge=1),
    teacher: Optional[str] = Query(None),
    tags: Optional[List[str]] = Query(None, description="Repeat the parameter or comma-separate"),
    file_type: Optional[str] = Query(None, alias="fileType"),
    uploaded_by: Optional[str] = Query(None, alias="uploadedBy"),
    sort_by: str = Query("recent", alias="sortBy", description="recent, upvotes or comments"),
    page: int = Query(DEFAULT_PAGE, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: AsyncSession = Depends(get_db_session),
) -> ResourceSearchResponse:
    params = ResourceSearchParams(
        search_text=search_text,
        subject=subject,
        department=department,
        semester=semester,
        teacher=teacher,
        tags=tags,
        file_type=file_type,
        uploaded_by=uploaded_by,
        sort_by=sort_by,
        page=page,
        limit=limit,
    )
    return await search_service.search(db, params)


@router.get(
    "/user",
    response_model=ResourceListResponse,
    responses=_AUTH_ERRORS,
    summary="Resources uploaded by the signed-in user",
)
async def list_my_resources(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ResourceListResponse:
    return ResourceListResponse(
        resources=await resource_service.list_resources(db, owner_id=user.id)
    )


@router.get(
    "/{resource_id}",
    response_model=ResourceEnvelope,
    responses=_NOT_FOUND,
    summary="One resource with its comments",
)
async def get_resource(
    resource_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> ResourceEnvelope:
    return ResourceEnvelope(resource=await resource_service.get_resource(db, resource_id))


@router.put(
    "/{resource_id}",
    response_model=ResourceMutationResponse,
    responses={
        **_AUTH_ERRORS,
        403: {"description": "Not the owner", "model": ErrorResponse},
        **_NOT_FOUND,
    },
    summary="Edit resource metadata",
)
async def update_resource(
    resource_id: str,
    body: ResourceUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ResourceMutationResponse:
    resource = await resource_service.update_resource(db, user, resource_id, body)
    return ResourceMutationResponse(message="Resource updated successfully", resource=resource)


@router.delete(
    "/{resource_id}",
    response_model=MessageResponse,
    responses={
        **_AUTH_ERRORS,
        403: {"description": "Not the owner", "model": ErrorResponse},
        **_NOT_FOUND,
    },
    summary="Delete a resource",
)
async def delete_resource(
    resource_id: str,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    file_key = await resource_service.delete_resource(db, user, resource_id)
    # Runs after the response is sent; the row is already gone either way
    background_tasks.add_task(storage_service.delete, file_key)
    return MessageResponse(message="Resource deleted successfully")


@router.post(
    "/{resource_id}/upvote",
    response_model=UpvoteResponse,
    responses={**_AUTH_ERRORS, **_NOT_FOUND},
    summary="Toggle the caller's upvote",
)
async def upvote_resource(
    resource_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UpvoteResponse:
    return await resource_service.toggle_upvote(db, user, resource_id)


@router.post(
    "/{resource_id}/comment",
    status_code=201,
    response_model=CommentCreatedResponse,
    responses={**_AUTH_ERRORS, **_NOT_FOUND},
    summary="Comment on a resource",
)
async def add_comment(
    resource_id: str,
    body: CommentCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> CommentCreatedResponse:
    comment = await resource_service.add_comment(db, user, resource_id, body.text)
    return CommentCreatedResponse(comment=comment)
