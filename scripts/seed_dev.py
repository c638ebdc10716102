"""Seed the development database with the local-login user and an AI provider."""
from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.mindpocket.core.config import settings
from backend.mindpocket.core.db import SessionFactory, session_scope
from backend.mindpocket.models import AIProvider, Folder, User


def _get_or_create_user(session, email: str, display_name: str | None = None) -> User:
    user = session.query(User).filter(User.email == email).one_or_none()
    if user is None:
        user = User(email=email, display_name=display_name)
        session.add(user)
        session.flush()
    return user


def _ensure_default_provider(session, user: User) -> AIProvider:
    provider = (
        session.query(AIProvider)
        .filter(AIProvider.user_id == user.id, AIProvider.kind == "chat", AIProvider.is_default.is_(True))
        .one_or_none()
    )
    if provider is None:
        provider = AIProvider(
            user_id=user.id,
            kind="chat",
            base_url=settings.OLLAMA_HOST,
            model=settings.OLLAMA_MODEL,
            is_default=True,
        )
        session.add(provider)
        session.flush()
    return provider


def _ensure_folder(session, user: User, name: str, emoji: str) -> Folder:
    folder = session.query(Folder).filter(Folder.user_id == user.id, Folder.name == name).one_or_none()
    if folder is None:
        folder = Folder(user_id=user.id, name=name, emoji=emoji)
        session.add(folder)
        session.flush()
    return folder


def main(factory: SessionFactory | None = None) -> None:
    """Entry point for seeding data."""

    with session_scope(factory) as session:
        user = _get_or_create_user(session, email=settings.LOCAL_LOGIN_EMAIL.strip().lower(), display_name="Dev User")
        provider = _ensure_default_provider(session, user)
        folder = _ensure_folder(session, user, name="Reading list", emoji="📚")
        session.commit()

        print("Seeded development data:")
        print(f"  User ID: {user.id}")
        print(f"  Chat provider: {provider.model} @ {provider.base_url}")
        print(f"  Folder ID: {folder.id}")


if __name__ == "__main__":
    main()
