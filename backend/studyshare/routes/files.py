"""
StudyShare Backend — Stored File Route
========================================

    GET /api/files/{path}

Serves documents written by the local storage backend; their file_url points
here. With STORAGE_BACKEND=s3 clients get S3 URLs and this route answers 404.

Security:
    The path is resolved inside STORAGE_ROOT; anything escaping it
    (../../etc/passwd) is treated as not found.
"""

from fastapi import APIRouter
from fastapi.responses import FileResponse

from studyshare.exceptions import FileStorageError, NotFoundError
from studyshare.schemas.common import ErrorResponse
from studyshare.services.storage_service import LocalStorageBackend, storage_service

router = APIRouter(prefix="/api/files", tags=["Files"])


@router.get(
    "/{file_path:path}",
    response_class=FileResponse,
    responses={404: {"description": "File not found", "model": ErrorResponse}},
    summary="Download a stored document",
)
async def serve_file(file_path: str) -> FileResponse:
    backend = storage_service.backend
    if not isinstance(backend, LocalStorageBackend):
        raise NotFoundError(resource="file", resource_id=file_path)

    try:
        full_path = backend.resolve(file_path)
    except FileStorageError:
        raise NotFoundError(resource="file", resource_id=file_path)

    if not full_path.is_file():
        raise NotFoundError(resource="file", resource_id=file_path)

    # media_type is guessed from the extension
    return FileResponse(
        path=str(full_path),
        filename=full_path.name,
        content_disposition_type="inline",
        headers={"Cache-Control": "public, max-age=86400"},
    )
