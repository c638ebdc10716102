"""Bookmarks and their ingest lifecycle."""
from __future__ import annotations

import uuid

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..ingest.errors import InvalidTransitionError, sanitize_error
from ..ingest.types import TERMINAL_STATUSES, BookmarkType, IngestStatus
from . import Base
from .timestamps import utcnow

ALLOWED_TRANSITIONS: dict[IngestStatus, frozenset[IngestStatus]] = {
    IngestStatus.PENDING: frozenset({IngestStatus.PROCESSING, IngestStatus.FAILED}),
    IngestStatus.PROCESSING: frozenset({IngestStatus.COMPLETED, IngestStatus.FAILED}),
}


class Bookmark(Base):
    """A saved URL, file or page snapshot and its converted Markdown."""

    __tablename__ = "bookmarks"
    __table_args__ = (Index("ix_bookmarks_user_status", "user_id", "ingest_status"),)

    id = Column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, server_default=func.gen_random_uuid()
    )
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    folder_id = Column(
        UUID(as_uuid=True),
        ForeignKey("folders.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    type = Column(String, nullable=False, default=BookmarkType.LINK.value, server_default=BookmarkType.LINK.value)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    url = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    source_type = Column(String, nullable=False)
    client_source = Column(String, nullable=False)
    platform = Column(String, nullable=True)
    file_extension = Column(String, nullable=True)
    file_size = Column(BigInteger, nullable=True)
    file_url = Column(Text, nullable=True)
    blob_key = Column(Text, nullable=True)
    ingest_status = Column(
        String,
        nullable=False,
        default=IngestStatus.PENDING.value,
        server_default=IngestStatus.PENDING.value,
    )
    ingest_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    user = relationship("User", back_populates="bookmarks")
    folder = relationship("Folder", back_populates="bookmarks")
    embeddings = relationship(
        "Embedding",
        back_populates="bookmark",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def status(self) -> IngestStatus:
        return IngestStatus(self.ingest_status)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition_to(
        self,
        target: IngestStatus | str,
        *,
        error: object | None = None,
        content: str | None = None,
    ) -> None:
        """Move to ``target`` if the state machine allows it.

        ``content`` is only stored on completion and ``ingest_error`` only on
        failure, so a completed bookmark never carries an error and a failed
        one never carries content.
        """

        target = IngestStatus(target)
        current = self.status
        if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
            raise InvalidTransitionError(current.value, target.value)

        self.ingest_status = target.value
        if target is IngestStatus.COMPLETED:
            self.content = content
            self.ingest_error = None
        elif target is IngestStatus.FAILED:
            self.content = None
            self.ingest_error = sanitize_error(error)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"Bookmark(id={self.id!s}, status={self.ingest_status!r})"
