"""Per-user AI provider configuration."""
from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from . import Base
from .timestamps import utcnow


class AIProvider(Base):
    """A chat or embedding backend the user has configured.

    Only ``kind == "chat"`` rows flagged ``is_default`` are used for
    automatic folder assignment.
    """

    __tablename__ = "ai_providers"

    id = Column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, server_default=func.gen_random_uuid()
    )
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    kind = Column(String, nullable=False, default="chat", server_default="chat")
    base_url = Column(String, nullable=True)
    model = Column(String, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False, server_default="false")
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="ai_providers")
