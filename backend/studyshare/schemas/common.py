"""
StudyShare Backend — Shared Schemas
=====================================

What:  Base model with the camelCase wire convention, plus the error,
       message and health response shapes used by every router.
"""

from typing import Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base for every API schema.

    Python code uses snake_case attributes; JSON uses camelCase keys
    (fileUrl, uploadedBy, createdAt) as the SPA expects. populate_by_name
    lets services construct models with snake_case keyword arguments, and
    from_attributes lets them validate straight from ORM objects.
    """

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


class MessageResponse(CamelModel):
    message: str = Field(description="Human-readable result message")


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "upload_rejected",
            "message": "Unsupported file type. Allowed types: PDF, DOCX, PPTX, DOC, PPT",
            "details": {"field": "file", "content_type": "image/gif"},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    storage: str = Field(description="File storage status: available, unavailable")
    uptime_seconds: float = Field(description="Seconds since service started")
