"""
StudyShare Backend — Application Package Initializer
======================================================

What: Marks the `studyshare` directory as a Python package.
Why:  Enables module imports like `from studyshare.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    This backend follows a layered architecture:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Search, auth, storage, mutators
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Routes handle HTTP details (status codes, headers) and delegate to services.
    Services hold the rules and are tested without HTTP.
"""

__version__ = "1.0.0"
