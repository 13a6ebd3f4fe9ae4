from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from tinybox_backend.config import settings


_UNSAFE_NAME_CHARS_RE = re.compile(r"[^a-z0-9\-.]", re.IGNORECASE)


@dataclass(frozen=True)
class SignedUrl:
    url: str
    expires_at_epoch: int


class ObjectStorage(Protocol):
    async def put_bytes(
        self, key: str, data: bytes, *, content_type: str | None = None
    ) -> None: ...

    async def get_bytes(self, key: str) -> bytes: ...

    async def delete(self, key: str) -> None: ...

    def get_public_url(self, key: str) -> str: ...

    async def create_signed_url(self, key: str, ttl_seconds: int) -> SignedUrl: ...


def safe_object_name(filename: str | None) -> str:
    v = _UNSAFE_NAME_CHARS_RE.sub("_", (filename or "").strip()).lower()
    return v or "file"


def build_file_storage_key(*, user_id: int, filename: str | None, uploaded_ms: int) -> str:
    # Pinned layout: {user_id}/{uploaded_ms}-{safe_name}; identical for local and S3.
    return f"{user_id}/{uploaded_ms}-{safe_object_name(filename)}"


def get_object_storage() -> ObjectStorage:
    # Default to local storage when S3 config is incomplete.
    if settings.s3_configured():
        from .s3_storage import S3ObjectStorage

        return S3ObjectStorage(
            endpoint_url=settings.s3_endpoint_url,
            region=settings.s3_region,
            bucket=settings.s3_bucket,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            force_path_style=settings.s3_force_path_style,
            public_base_url=settings.s3_public_base_url,
        )

    from .local_storage import LocalObjectStorage

    return LocalObjectStorage(
        root_dir=settings.storage_local_dir,
        public_base_url=settings.public_base_url,
        signing_secret=settings.storage_signing_secret,
    )
