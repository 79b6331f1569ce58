"""
StudyShare Backend — ORM Models Package
=========================================

Importing this package registers every table with `Base.metadata`, which
Alembic and the test fixtures rely on.
"""

from studyshare.models.user import User
from studyshare.models.resource import Comment, Resource, ResourceTag, resource_upvotes
from studyshare.models.password_reset import PasswordReset

__all__ = [
    "User",
    "Resource",
    "ResourceTag",
    "Comment",
    "resource_upvotes",
    "PasswordReset",
]
