from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlmodel.ext.asyncio.session import AsyncSession

from tinybox_backend.config import settings
from tinybox_backend.domain.share_expiry import (
    assume_utc,
    is_share_expired,
    share_expiry_instant,
)
from tinybox_backend.domain.share_tokens import (
    is_permanent_share_token,
    new_share_token,
    token_log_prefix,
)
from tinybox_backend.errors import FileNotFoundInStoreError, ShareNotFoundError
from tinybox_backend.identity import resolve_display_name
from tinybox_backend.models import FileShare, User, utc_now
from tinybox_backend.repositories import files_repo, shares_repo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShareLinkView:
    share: FileShare
    url: str
    permanent: bool
    expires_at: datetime | None
    is_expired: bool


def build_share_url(*, token: str) -> str:
    base = settings.public_base_url.rstrip("/")
    return f"{base}/share/{token}"


def to_share_view(share: FileShare, *, now: datetime | None = None) -> ShareLinkView:
    permanent = is_permanent_share_token(share.token)
    return ShareLinkView(
        share=share,
        url=build_share_url(token=share.token),
        permanent=permanent,
        expires_at=share_expiry_instant(share.created_at, permanent=permanent),
        is_expired=is_share_expired(share.created_at, permanent=permanent, now=now),
    )


def _require_user_id(user: User) -> int:
    if user.id is None:
        raise RuntimeError("user missing id")
    return int(user.id)


async def create_share_link(
    *,
    session: AsyncSession,
    user: User,
    file_id: str,
    share_email: str | None = None,
    permanent: bool = False,
    now: datetime | None = None,
) -> ShareLinkView:
    user_id = _require_user_id(user)
    created_at = assume_utc(now) if now is not None else utc_now()

    share = FileShare(
        id=str(uuid.uuid4()),
        file_id=file_id,
        owner_id=user_id,
        token=new_share_token(permanent=permanent),
        share_email=(share_email or "").strip() or None,
        owner_email=user.email or None,
        owner_name=resolve_display_name(user.profile_json),
        created_at=created_at,
        updated_at=created_at,
    )

    try:
        file = await files_repo.get_file_owned(session, owner_id=user_id, file_id=file_id)
        if file is None:
            raise FileNotFoundInStoreError()
        session.add(share)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(
        "share created share_id=%s file_id=%s permanent=%s token=%s",
        share.id,
        file_id,
        permanent,
        token_log_prefix(share.token),
    )
    return to_share_view(share, now=created_at)


async def renew_share_link(
    *,
    session: AsyncSession,
    user_id: int,
    share_id: str,
    now: datetime | None = None,
) -> ShareLinkView:
    """Reset the expiry base of an existing link; its token (and URL) stay the same."""

    renewed_at = assume_utc(now) if now is not None else utc_now()
    updated = await shares_repo.touch_share_created_at(
        session, owner_id=user_id, share_id=share_id, created_at=renewed_at
    )
    if updated == 0:
        await session.rollback()
        raise ShareNotFoundError()
    await session.commit()

    share = await shares_repo.get_share_owned(session, owner_id=user_id, share_id=share_id)
    if share is None:
        # Revoked between the update and the read.
        raise ShareNotFoundError()
    await session.refresh(share)

    logger.info("share renewed share_id=%s token=%s", share.id, token_log_prefix(share.token))
    return to_share_view(share, now=renewed_at)


async def revoke_share_link(*, session: AsyncSession, user_id: int, share_id: str) -> None:
    deleted = await shares_repo.delete_share_owned(session, owner_id=user_id, share_id=share_id)
    await session.commit()
    # Deleting an already-gone link is not an error for the owner.
    logger.info("share revoked share_id=%s deleted=%s", share_id, deleted)


async def list_share_links(
    *,
    session: AsyncSession,
    user_id: int,
    file_id: str,
    now: datetime | None = None,
) -> list[ShareLinkView]:
    file = await files_repo.get_file_owned(session, owner_id=user_id, file_id=file_id)
    if file is None:
        raise FileNotFoundInStoreError()
    shares = await shares_repo.list_shares_for_file(session, owner_id=user_id, file_id=file_id)
    return [to_share_view(s, now=now) for s in shares]
