from __future__ import annotations

from datetime import datetime
from typing import cast

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession as SAAsyncSession
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from tinybox_backend.models import FileShare


async def get_share_owned(session: AsyncSession, *, owner_id: int, share_id: str) -> FileShare | None:
    stmt = (
        select(FileShare)
        .where(FileShare.owner_id == owner_id)
        .where(FileShare.id == share_id)
    )
    return (await session.exec(stmt)).first()


async def get_share_by_token(session: AsyncSession, *, token: str) -> FileShare | None:
    # Anonymous lookup: not owner-scoped.
    stmt = select(FileShare).where(FileShare.token == token)
    return (await session.exec(stmt)).first()


async def list_shares_for_file(
    session: AsyncSession, *, owner_id: int, file_id: str
) -> list[FileShare]:
    stmt = (
        select(FileShare)
        .where(FileShare.owner_id == owner_id)
        .where(FileShare.file_id == file_id)
        .order_by(cast(ColumnElement[object], cast(object, FileShare.created_at)).desc())
    )
    return list((await session.exec(stmt)).all())


async def touch_share_created_at(
    session: AsyncSession, *, owner_id: int, share_id: str, created_at: datetime
) -> int:
    # Single conditional write: ownership check and mutation in one statement.
    stmt = (
        update(FileShare)
        .where(cast(ColumnElement[bool], FileShare.id == share_id))
        .where(cast(ColumnElement[bool], FileShare.owner_id == owner_id))
        .values(created_at=created_at, updated_at=created_at)
    )
    result = await cast(SAAsyncSession, session).execute(stmt)
    return int(result.rowcount or 0)  # type: ignore[attr-defined]


async def delete_share_owned(session: AsyncSession, *, owner_id: int, share_id: str) -> int:
    stmt = (
        delete(FileShare)
        .where(cast(ColumnElement[bool], FileShare.id == share_id))
        .where(cast(ColumnElement[bool], FileShare.owner_id == owner_id))
    )
    result = await cast(SAAsyncSession, session).execute(stmt)
    return int(result.rowcount or 0)  # type: ignore[attr-defined]


async def delete_shares_for_file(session: AsyncSession, *, owner_id: int, file_id: str) -> int:
    stmt = (
        delete(FileShare)
        .where(cast(ColumnElement[bool], FileShare.file_id == file_id))
        .where(cast(ColumnElement[bool], FileShare.owner_id == owner_id))
    )
    result = await cast(SAAsyncSession, session).execute(stmt)
    return int(result.rowcount or 0)  # type: ignore[attr-defined]
