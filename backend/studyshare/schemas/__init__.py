"""
StudyShare Backend — API Schemas Package
==========================================

Pydantic models that define the HTTP contract. They are kept apart from the
ORM models so the wire format (camelCase, populated owners, computed views)
can differ from the table layout.
"""
