from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlmodel.ext.asyncio.session import AsyncSession

from tinybox_backend.config import settings
from tinybox_backend.db import get_session
from tinybox_backend.deps import get_current_user
from tinybox_backend.integrations.storage.object_storage import ObjectStorage, get_object_storage
from tinybox_backend.models import StoredFile, User
from tinybox_backend.schemas import FileVisibilityUpdateRequest, StoredFileOut
from tinybox_backend.services import files_service

router = APIRouter(prefix="/files", tags=["files"])


def _to_out(row: StoredFile) -> StoredFileOut:
    return StoredFileOut(
        id=row.id,
        name=row.name,
        is_public=row.is_public,
        public_url=row.public_url,
        size_bytes=row.size_bytes,
        mime_type=row.mime_type,
        created_at=row.created_at,
    )


async def _read_upload_file_limited(*, file: UploadFile, max_bytes: int) -> bytes:
    # Read in chunks and hard-stop once size exceeds max_bytes.
    buf = bytearray()
    chunk_size = 1024 * 1024
    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_CONTENT_TOO_LARGE,
                detail="file too large",
            )
    return bytes(buf)


@router.get("", response_model=list[StoredFileOut])
async def list_files(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[StoredFileOut]:
    rows = await files_service.list_files(session=session, user_id=int(user.id or 0))
    return [_to_out(r) for r in rows]


@router.post("", response_model=StoredFileOut, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: Annotated[UploadFile, File()],
    make_public: Annotated[bool, Form()] = False,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
) -> StoredFileOut:
    max_bytes = int(settings.upload_max_size_bytes)
    if max_bytes > 0:
        data = await _read_upload_file_limited(file=file, max_bytes=max_bytes)
    else:
        data = await file.read()

    row = await files_service.upload_file(
        session=session,
        storage=storage,
        user_id=int(user.id or 0),
        filename=file.filename,
        content_type=file.content_type,
        data=data,
        make_public=make_public,
    )
    return _to_out(row)


@router.patch("/{file_id}/visibility", response_model=StoredFileOut)
async def set_visibility(
    file_id: str,
    payload: FileVisibilityUpdateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
) -> StoredFileOut:
    row = await files_service.set_file_visibility(
        session=session,
        storage=storage,
        user_id=int(user.id or 0),
        file_id=file_id,
        make_public=payload.is_public,
    )
    return _to_out(row)


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    file_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
) -> None:
    await files_service.delete_file(
        session=session, storage=storage, user_id=int(user.id or 0), file_id=file_id
    )
    return None
