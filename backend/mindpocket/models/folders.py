"""User-defined folders grouping bookmarks."""
from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from . import Base
from .timestamps import utcnow

DEFAULT_FOLDER_EMOJI = "📁"
FOLDER_EMOJI_MAX_LENGTH = 16


class Folder(Base):
    __tablename__ = "folders"

    id = Column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, server_default=func.gen_random_uuid()
    )
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    emoji = Column(
        String(FOLDER_EMOJI_MAX_LENGTH),
        nullable=False,
        default=DEFAULT_FOLDER_EMOJI,
        server_default=DEFAULT_FOLDER_EMOJI,
    )
    sort_order = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    user = relationship("User", back_populates="folders")
    bookmarks = relationship("Bookmark", back_populates="folder")
