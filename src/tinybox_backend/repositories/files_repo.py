from __future__ import annotations

from datetime import datetime
from typing import cast

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession as SAAsyncSession
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from tinybox_backend.models import StoredFile


async def get_file_owned(session: AsyncSession, *, owner_id: int, file_id: str) -> StoredFile | None:
    stmt = (
        select(StoredFile)
        .where(StoredFile.owner_id == owner_id)
        .where(StoredFile.id == file_id)
    )
    return (await session.exec(stmt)).first()


async def get_file_by_storage_path(session: AsyncSession, *, storage_path: str) -> StoredFile | None:
    stmt = select(StoredFile).where(StoredFile.storage_path == storage_path)
    return (await session.exec(stmt)).first()


async def get_public_file_by_storage_path(
    session: AsyncSession, *, storage_path: str
) -> StoredFile | None:
    stmt = (
        select(StoredFile)
        .where(StoredFile.storage_path == storage_path)
        .where(StoredFile.is_public == True)  # noqa: E712
    )
    return (await session.exec(stmt)).first()


async def list_files_owned(session: AsyncSession, *, owner_id: int) -> list[StoredFile]:
    stmt = (
        select(StoredFile)
        .where(StoredFile.owner_id == owner_id)
        .order_by(cast(ColumnElement[object], cast(object, StoredFile.created_at)).desc())
    )
    return list((await session.exec(stmt)).all())


async def update_visibility_owned(
    session: AsyncSession,
    *,
    owner_id: int,
    file_id: str,
    is_public: bool,
    public_url: str | None,
    updated_at: datetime,
) -> int:
    stmt = (
        update(StoredFile)
        .where(cast(ColumnElement[bool], StoredFile.id == file_id))
        .where(cast(ColumnElement[bool], StoredFile.owner_id == owner_id))
        .values(is_public=is_public, public_url=public_url, updated_at=updated_at)
    )
    result = await cast(SAAsyncSession, session).execute(stmt)
    return int(result.rowcount or 0)  # type: ignore[attr-defined]


async def delete_file_owned(session: AsyncSession, *, owner_id: int, file_id: str) -> int:
    stmt = (
        delete(StoredFile)
        .where(cast(ColumnElement[bool], StoredFile.id == file_id))
        .where(cast(ColumnElement[bool], StoredFile.owner_id == owner_id))
    )
    result = await cast(SAAsyncSession, session).execute(stmt)
    return int(result.rowcount or 0)  # type: ignore[attr-defined]
