"""MinIO blob storage for uploaded ingest payloads."""
from __future__ import annotations

import io
import logging
from urllib.parse import quote

from minio import Minio

from .config import settings

logger = logging.getLogger(__name__)


def get_minio_client() -> Minio:
    """Return a configured MinIO client."""
    return Minio(
        settings.MINIO_ENDPOINT,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_SECURE,
    )


def build_ingest_key(bookmark_id: object, file_name: str) -> str:
    return f"ingest/{bookmark_id}/{file_name}"


class BlobStore:
    """Write-once object storage addressed by ingest key."""

    def __init__(self, client: Minio | None = None, *, bucket: str | None = None) -> None:
        self.client = client or get_minio_client()
        self.bucket = bucket or settings.MINIO_BUCKET
        self._bucket_ready = False

    def put(self, key: str, data: bytes, *, content_type: str = "application/octet-stream") -> str:
        """Store ``data`` under ``key`` and return its public URL."""

        self._ensure_bucket()
        self.client.put_object(
            self.bucket,
            key,
            io.BytesIO(data),
            len(data),
            content_type=content_type,
        )
        logger.info("Stored blob %s (%s bytes)", key, len(data))
        return self.public_url(key)

    def get(self, key: str) -> bytes:
        response = self.client.get_object(self.bucket, key)
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()

    def public_url(self, key: str) -> str:
        endpoint = settings.MINIO_PUBLIC_ENDPOINT or settings.MINIO_ENDPOINT
        if "://" not in endpoint:
            scheme = "https" if settings.MINIO_SECURE else "http"
            endpoint = f"{scheme}://{endpoint}"
        return f"{endpoint.rstrip('/')}/{self.bucket}/{quote(key)}"

    def _ensure_bucket(self) -> None:
        if self._bucket_ready:
            return
        if not self.client.bucket_exists(self.bucket):
            self.client.make_bucket(self.bucket)
        self._bucket_ready = True
