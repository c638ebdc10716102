from __future__ import annotations

import base64
import json
import sys
import uuid
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path

import itsdangerous
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import JSON

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.mindpocket.api import dependencies
from backend.mindpocket.core import db as db_module
from backend.mindpocket.core.config import settings
from backend.mindpocket.core.s3 import BlobStore
from backend.mindpocket.ingest.pipeline import IngestJob
from backend.mindpocket.main import create_app
from backend.mindpocket.models import Base, User


class FakeObject:
    def __init__(self, data: bytes, content_type: str) -> None:
        self._data = data
        self.content_type = content_type
        self.size = len(data)

    def read(self) -> bytes:
        return self._data

    def close(self) -> None:  # pragma: no cover - compatibility
        return None

    def release_conn(self) -> None:  # pragma: no cover - compatibility
        return None


class FakeMinio:
    def __init__(self) -> None:
        self._buckets: set[str] = set()
        self._objects: dict[tuple[str, str], FakeObject] = {}

    def bucket_exists(self, name: str) -> bool:
        return name in self._buckets

    def make_bucket(self, name: str) -> None:
        self._buckets.add(name)

    def put_object(self, bucket: str, object_name: str, data, length: int, *, content_type: str = "application/octet-stream") -> None:  # type: ignore[override]
        payload = data.read() if hasattr(data, "read") else data
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        if bucket not in self._buckets:
            raise AssertionError(f"bucket {bucket} was not created")
        self._objects[(bucket, object_name)] = FakeObject(bytes(payload), content_type)

    def get_object(self, bucket: str, object_name: str) -> FakeObject:
        obj = self._objects.get((bucket, object_name))
        if not obj:
            raise FileNotFoundError(object_name)
        return obj

    @property
    def object_keys(self) -> list[str]:
        return [key for _, key in self._objects]


class RecordingDispatcher:
    """Dispatcher that keeps jobs in memory instead of sending them to Celery."""

    def __init__(self) -> None:
        self.ingest_jobs: list[IngestJob] = []
        self.embedding_jobs: list[str] = []

    def enqueue_ingest(self, job: IngestJob) -> None:
        self.ingest_jobs.append(job)

    def enqueue_embeddings(self, bookmark_id: str) -> None:
        self.embedding_jobs.append(bookmark_id)


@pytest.fixture()
def fake_minio() -> FakeMinio:
    return FakeMinio()


@pytest.fixture()
def blob_store(fake_minio: FakeMinio) -> BlobStore:
    return BlobStore(fake_minio, bucket="mindpocket-test")


@pytest.fixture()
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


def _patch_json_columns() -> None:
    for table in Base.metadata.tables.values():
        for column in table.columns:
            if column.type.__class__.__name__ == "JSONB":
                column.type = JSON()


@pytest.fixture()
def engine() -> Iterator:
    _patch_json_columns()
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _register_functions(dbapi_connection, _):  # pragma: no cover - sqlite setup
        dbapi_connection.create_function("gen_random_uuid", 0, lambda: uuid.uuid4().hex)
        dbapi_connection.create_function("now", 0, lambda: datetime.now(timezone.utc).isoformat())

    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, class_=Session)


def _session_ctx(factory: sessionmaker):
    def _get_session() -> Iterator[Session]:
        session = factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return _get_session


@pytest.fixture()
def app(
    monkeypatch: pytest.MonkeyPatch,
    session_factory: sessionmaker,
    blob_store: BlobStore,
    dispatcher: RecordingDispatcher,
) -> TestClient:
    monkeypatch.setattr(db_module, "SessionLocal", session_factory)

    app = create_app()
    app.dependency_overrides[db_module.get_session] = _session_ctx(session_factory)
    app.dependency_overrides[dependencies.get_blob_store] = lambda: blob_store
    app.dependency_overrides[dependencies.get_dispatcher] = lambda: dispatcher
    return TestClient(app)


@pytest.fixture()
def user(session_factory: sessionmaker) -> User:
    with session_factory() as session:
        user = User(id=uuid.uuid4(), email=f"{uuid.uuid4().hex[:8]}@example.com", display_name="Test User")
        session.add(user)
        session.commit()
        return user


@pytest.fixture()
def auth_session(user: User) -> dict[str, str]:
    user_id = str(user.id)
    csrf_token = "test-csrf-token"
    signer = itsdangerous.TimestampSigner(settings.SESSION_SECRET)
    payload = base64.b64encode(
        json.dumps({"user_id": user_id, "csrf_token": csrf_token}).encode("utf-8")
    )
    cookie = signer.sign(payload).decode("utf-8")
    return {"cookie": cookie, "user_id": user_id, "csrf_token": csrf_token}


@pytest.fixture()
def client(app: TestClient, auth_session: dict[str, str]) -> TestClient:
    """Logged-in client sending the CSRF header on every request."""

    app.cookies.set(settings.SESSION_COOKIE_NAME, auth_session["cookie"])
    app.headers["X-CSRF-Token"] = auth_session["csrf_token"]
    return app
