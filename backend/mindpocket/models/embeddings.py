"""Vector rows generated from bookmark content."""
from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from pgvector.sqlalchemy import Vector

from ..core.config import settings
from . import Base
from .timestamps import utcnow


class Embedding(Base):
    """One embedded chunk of a bookmark's Markdown content."""

    __tablename__ = "embeddings"

    id = Column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, server_default=func.gen_random_uuid()
    )
    bookmark_id = Column(
        UUID(as_uuid=True),
        ForeignKey("bookmarks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    ordinal = Column(Integer, nullable=False, default=0, server_default="0")
    text = Column(Text, nullable=False)
    metadata_ = Column("metadata", JSONB, nullable=True)
    vector = Column(Vector(settings.EMBEDDING_DIM), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    bookmark = relationship("Bookmark", back_populates="embeddings")
