from __future__ import annotations

import logging
import uuid

from sqlmodel.ext.asyncio.session import AsyncSession

from tinybox_backend.errors import FileNotFoundInStoreError, InvalidStateError
from tinybox_backend.integrations.storage.object_storage import (
    ObjectStorage,
    build_file_storage_key,
)
from tinybox_backend.models import StoredFile, utc_now
from tinybox_backend.repositories import files_repo, shares_repo

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(utc_now().timestamp() * 1000)


async def upload_file(
    *,
    session: AsyncSession,
    storage: ObjectStorage,
    user_id: int,
    filename: str | None,
    content_type: str | None,
    data: bytes,
    make_public: bool,
) -> StoredFile:
    if not data:
        raise InvalidStateError("select a file before uploading")

    storage_path = build_file_storage_key(
        user_id=user_id, filename=filename, uploaded_ms=_now_ms()
    )
    await storage.put_bytes(storage_path, data, content_type=content_type)

    now = utc_now()
    row = StoredFile(
        id=str(uuid.uuid4()),
        owner_id=user_id,
        name=(filename or "").strip() or "file",
        storage_path=storage_path,
        is_public=make_public,
        public_url=storage.get_public_url(storage_path) if make_public else None,
        size_bytes=len(data),
        mime_type=content_type or None,
        created_at=now,
        updated_at=now,
    )

    # If the DB write fails, remove the stored object again.
    try:
        session.add(row)
        await session.commit()
    except Exception:
        try:
            await session.rollback()
        except Exception:
            pass
        try:
            await storage.delete(storage_path)
        except Exception:
            logger.warning("orphan object cleanup failed key=%s", storage_path, exc_info=True)
        raise

    logger.info("file uploaded file_id=%s public=%s size=%s", row.id, make_public, row.size_bytes)
    return row


async def set_file_visibility(
    *,
    session: AsyncSession,
    storage: ObjectStorage,
    user_id: int,
    file_id: str,
    make_public: bool,
) -> StoredFile:
    file = await files_repo.get_file_owned(session, owner_id=user_id, file_id=file_id)
    if file is None:
        raise FileNotFoundInStoreError()

    public_url = storage.get_public_url(file.storage_path) if make_public else None
    updated = await files_repo.update_visibility_owned(
        session,
        owner_id=user_id,
        file_id=file_id,
        is_public=make_public,
        public_url=public_url,
        updated_at=utc_now(),
    )
    if updated == 0:
        await session.rollback()
        raise FileNotFoundInStoreError()
    await session.commit()

    refreshed = await files_repo.get_file_owned(session, owner_id=user_id, file_id=file_id)
    if refreshed is None:
        raise FileNotFoundInStoreError()
    await session.refresh(refreshed)
    logger.info("file visibility changed file_id=%s public=%s", file_id, make_public)
    return refreshed


async def delete_file(
    *,
    session: AsyncSession,
    storage: ObjectStorage,
    user_id: int,
    file_id: str,
) -> None:
    file = await files_repo.get_file_owned(session, owner_id=user_id, file_id=file_id)
    if file is None:
        raise FileNotFoundInStoreError()
    storage_path = file.storage_path

    # Links go first so no share can point at a missing file row.
    removed_shares = await shares_repo.delete_shares_for_file(
        session, owner_id=user_id, file_id=file_id
    )
    await session.commit()

    await storage.delete(storage_path)

    await files_repo.delete_file_owned(session, owner_id=user_id, file_id=file_id)
    await session.commit()
    logger.info("file deleted file_id=%s removed_shares=%s", file_id, removed_shares)


async def list_files(*, session: AsyncSession, user_id: int) -> list[StoredFile]:
    return await files_repo.list_files_owned(session, owner_id=user_id)
