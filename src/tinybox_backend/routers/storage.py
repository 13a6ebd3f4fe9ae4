"""Download endpoints backing LocalObjectStorage URLs.

Signed URLs (``/storage/objects/{key}``) are verified against the HMAC minted by
``LocalObjectStorage.create_signed_url``; public URLs (``/storage/public/{key}``)
are served only while the owning file row is marked public.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse
from sqlmodel.ext.asyncio.session import AsyncSession

from tinybox_backend.db import get_session
from tinybox_backend.http_headers import build_content_disposition_attachment
from tinybox_backend.integrations.storage.local_storage import LocalObjectStorage
from tinybox_backend.integrations.storage.object_storage import ObjectStorage, get_object_storage
from tinybox_backend.models import StoredFile
from tinybox_backend.repositories import files_repo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/storage", tags=["storage"], include_in_schema=False)


def _require_local(storage: ObjectStorage) -> LocalObjectStorage:
    # Bucket-backed deployments hand out the bucket's own URLs.
    if not isinstance(storage, LocalObjectStorage):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    return storage


def _file_response(storage: LocalObjectStorage, key: str, row: StoredFile | None) -> FileResponse:
    try:
        path = storage.resolve_path(key)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="object not found") from None
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="object not found")

    filename = row.name if row is not None else path.name
    media_type = (row.mime_type if row is not None else None) or "application/octet-stream"
    return FileResponse(
        path,
        media_type=media_type,
        headers={"Content-Disposition": build_content_disposition_attachment(filename)},
    )


@router.get("/objects/{key:path}")
async def download_signed_object(
    key: str,
    expires: int = Query(...),
    nonce: str = Query(...),
    signature: str = Query(...),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
) -> FileResponse:
    local = _require_local(storage)
    if not local.verify_signature(key, expires=expires, nonce=nonce, signature=signature):
        logger.info("rejected signed download expires=%s", expires)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="invalid or expired link")

    row = await files_repo.get_file_by_storage_path(session, storage_path=key)
    return _file_response(local, key, row)


@router.get("/public/{key:path}")
async def download_public_object(
    key: str,
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
) -> FileResponse:
    local = _require_local(storage)
    row = await files_repo.get_public_file_by_storage_path(session, storage_path=key)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="object not found")
    return _file_response(local, key, row)
