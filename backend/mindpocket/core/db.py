"""SQLAlchemy engine and session helpers shared by the API and the workers."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Generator, Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from .config import settings

SessionFactory = Callable[[], Session]


def _create_engine() -> Engine:
    return create_engine(settings.DATABASE_URL, pool_pre_ping=True, future=True)


ENGINE: Engine = _create_engine()
SessionLocal = sessionmaker[
    Session
](bind=ENGINE, autoflush=False, autocommit=False, expire_on_commit=False)


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a request-scoped session."""

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def session_scope(factory: SessionFactory | None = None) -> Iterator[Session]:
    """Open a session for background work, rolling back on error."""

    session = (factory or SessionLocal)()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
