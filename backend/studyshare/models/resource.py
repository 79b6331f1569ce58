"""
StudyShare Backend — Resource SQLAlchemy Models
=================================================

What:  ORM models for uploaded study resources and the rows that hang off them.
Why:   A resource owns a tag set, an upvoter set and an append-only comment
       thread. Each of these lives in its own table so that filters (tag
       intersection) and mutations (upvote toggle, comment append) are single
       SQL statements instead of read-modify-write cycles on a whole record.

Tables:
    resources          one row per uploaded document; seq counts inserts
    resource_tags      (resource_id, name)     set semantics via composite PK
    resource_upvotes   (resource_id, user_id)  at most one upvote per user
    comments           append-only thread, ordered by created_at

Invariant:
    resources.upvotes == COUNT(resource_upvotes WHERE resource_id = resources.id)
    Maintained by ResourceService.toggle_upvote, which recomputes the counter
    from the association set in the same UPDATE that follows the set change.

Loading strategy:
    Every relationship uses lazy="selectin". Async sessions cannot lazy-load
    on attribute access, so collections are fetched with the owning query
    (one extra SELECT ... WHERE id IN (...) per relationship).
"""

import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Sequence,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql.expression import FunctionElement

from studyshare.database import Base
from studyshare.models.user import User
from studyshare.utils.validators import split_tags


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Insertion counter ─────────────────────────────────────────────────────
# resources.seq orders rows that share a created_at. PostgreSQL draws it from
# a sequence; SQLite has no sequences, so the next value is MAX(seq) + 1
# computed inside the INSERT itself.
resource_seq = Sequence("resources_seq_seq", metadata=Base.metadata)


class next_resource_seq(FunctionElement):
    type = BigInteger()
    inherit_cache = True


@compiles(next_resource_seq)
def _next_seq_from_sequence(element, compiler, **kw):
    return compiler.process(resource_seq.next_value(), **kw)


@compiles(next_resource_seq, "sqlite")
def _next_seq_from_max(element, compiler, **kw):
    return "(SELECT COALESCE(MAX(seq), 0) + 1 FROM resources)"


# ── Upvote association ────────────────────────────────────────────────────
# Composite primary key = the "one upvote per user" rule, enforced by the database
resource_upvotes = Table(
    "resource_upvotes",
    Base.metadata,
    Column(
        "resource_id",
        Uuid,
        ForeignKey("resources.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "user_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("created_at", DateTime(timezone=True), nullable=False, default=_utcnow),
)


class ResourceTag(Base):
    """One tag of one resource. Tags are case-sensitive, matching is exact."""

    __tablename__ = "resource_tags"

    resource_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("resources.id", ondelete="CASCADE"), primary_key=True
    )
    name: Mapped[str] = mapped_column(String(100), primary_key=True)

    __table_args__ = (Index("idx_resource_tags_name", "name"),)


class Comment(Base):
    """A comment appended to a resource's discussion thread."""

    __tablename__ = "comments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    resource_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("resources.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    user: Mapped[User] = relationship(User, lazy="selectin")

    def __repr__(self) -> str:
        return f"<Comment(id={self.id}, resource_id={self.resource_id})>"


class Resource(Base):
    """
    An uploaded study document with its metadata.

    Lifecycle:
        1. Created on successful upload, owned by the uploader
        2. Metadata edited by the owner; upvotes toggled and comments
           appended by any authenticated user
        3. Deleted by the owner (tags, upvotes and comments cascade)
    """

    __tablename__ = "resources"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    seq: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=next_resource_seq()
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    department: Mapped[str] = mapped_column(String(255), nullable=False)
    semester: Mapped[int] = mapped_column(Integer, nullable=False)
    teacher: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # What: Public URL of the stored document and the backend key it lives under
    # Why both: the URL is what clients open; the key is what deletion needs
    file_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    file_key: Mapped[str] = mapped_column(String(512), nullable=False)
    file_type: Mapped[str] = mapped_column(String(255), nullable=False)

    uploaded_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Denormalized |upvoters| so that "sort by upvotes" runs in the database
    upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    # ── Relationships ─────────────────────────────────────────────────────
    uploaded_by: Mapped[User] = relationship(User, lazy="selectin")

    tag_links: Mapped[List[ResourceTag]] = relationship(
        ResourceTag,
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=ResourceTag.name,
    )

    upvoters: Mapped[List[User]] = relationship(
        User,
        secondary=resource_upvotes,
        lazy="selectin",
    )

    comments: Mapped[List[Comment]] = relationship(
        Comment,
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=Comment.created_at,
    )

    __table_args__ = (
        Index("idx_resources_created_at", "created_at"),
        Index("idx_resources_upvotes", "upvotes"),
        UniqueConstraint("seq", name="uq_resources_seq"),
    )

    # Fetch seq right after the INSERT; async sessions cannot load it lazily
    __mapper_args__ = {"eager_defaults": True}

    # ── Convenience views used by the response schemas ────────────────────
    @property
    def tags(self) -> List[str]:
        return [link.name for link in self.tag_links]

    def set_tags(self, names: Optional[Iterable[str]]) -> None:
        """
        Replace the tag set.

        Links whose name survives are kept as the same objects; rebuilding
        them would make the flush insert a duplicate (resource_id, name)
        before deleting the old row.
        """
        current = {link.name: link for link in self.tag_links}
        self.tag_links = [current.get(name) or ResourceTag(name=name) for name in split_tags(names)]

    @property
    def upvoted_by(self) -> List[uuid.UUID]:
        return [user.id for user in self.upvoters]

    @property
    def comment_count(self) -> int:
        return len(self.comments)

    def __repr__(self) -> str:
        return (
            f"<Resource(id={self.id}, title='{self.title}', "
            f"upvotes={self.upvotes}, created_at='{self.created_at}')>"
        )
