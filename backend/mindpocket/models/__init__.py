"""SQLAlchemy declarative base for the application models."""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Imported after ``Base`` so the model modules can import it.
from .ai_providers import AIProvider  # noqa: F401,E402
from .bookmarks import Bookmark  # noqa: F401,E402
from .embeddings import Embedding  # noqa: F401,E402
from .folders import Folder  # noqa: F401,E402
from .users import User  # noqa: F401,E402


__all__ = [
    "AIProvider",
    "Base",
    "Bookmark",
    "Embedding",
    "Folder",
    "User",
]
