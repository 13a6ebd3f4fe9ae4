"""Anonymous share-token resolution.

Each call is an independent evaluation:

1. look the link up by token (global, not owner-scoped)
2. load the file scoped to the link's owner
3. decode permanence from the token
4. check liveness against ``created_at``
5. hand out the stored public URL, or mint a fresh signed URL
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from tinybox_backend.domain.share_expiry import (
    SHARE_LINK_TTL_SECONDS,
    assume_utc,
    is_share_expired,
    share_expiry_instant,
)
from tinybox_backend.domain.share_tokens import is_permanent_share_token, token_log_prefix
from tinybox_backend.errors import (
    ShareExpiredError,
    ShareNotFoundError,
    StorageUnavailableError,
)
from tinybox_backend.integrations.storage.object_storage import ObjectStorage
from tinybox_backend.models import FileShare, StoredFile
from tinybox_backend.repositories import files_repo, shares_repo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShareResolution:
    share: FileShare
    file: StoredFile
    permanent: bool
    download_url: str
    # None for public files (the public URL does not expire).
    download_expires_at: datetime | None
    # None for permanent links.
    share_expires_at: datetime | None


async def resolve_share_link(
    *,
    session: AsyncSession,
    storage: ObjectStorage,
    token: str,
    now: datetime | None = None,
) -> ShareResolution:
    t = (token or "").strip()
    if not t:
        raise ShareNotFoundError()

    # Lookup failures read as "not found" to anonymous callers.
    try:
        share = await shares_repo.get_share_by_token(session, token=t)
    except SQLAlchemyError as e:
        logger.warning("share resolve lookup failed token=%s", token_log_prefix(t), exc_info=True)
        raise ShareNotFoundError() from e
    if share is None:
        logger.info("share resolve not_found token=%s", token_log_prefix(t))
        raise ShareNotFoundError()

    try:
        file = await files_repo.get_file_owned(
            session, owner_id=share.owner_id, file_id=share.file_id
        )
    except SQLAlchemyError as e:
        logger.warning("share resolve file lookup failed share_id=%s", share.id, exc_info=True)
        raise ShareNotFoundError() from e
    if file is None:
        # Dangling link: file deleted or no longer owned by the link owner.
        logger.info("share resolve dangling share_id=%s", share.id)
        raise ShareNotFoundError()

    permanent = is_permanent_share_token(share.token)
    current = assume_utc(now) if now is not None else datetime.now(timezone.utc)
    share_expires_at = share_expiry_instant(share.created_at, permanent=permanent)
    if share_expires_at is not None and is_share_expired(
        share.created_at, permanent=permanent, now=current
    ):
        logger.info("share resolve expired share_id=%s", share.id)
        raise ShareExpiredError(share=share, file=file, expired_at=share_expires_at)

    if file.is_public and file.public_url:
        logger.info("share resolve public share_id=%s", share.id)
        return ShareResolution(
            share=share,
            file=file,
            permanent=permanent,
            download_url=file.public_url,
            download_expires_at=None,
            share_expires_at=share_expires_at,
        )

    try:
        signed = await storage.create_signed_url(file.storage_path, SHARE_LINK_TTL_SECONDS)
    except StorageUnavailableError:
        logger.warning("share resolve signing failed share_id=%s", share.id, exc_info=True)
        raise
    except Exception as e:
        logger.warning("share resolve signing failed share_id=%s", share.id, exc_info=True)
        raise StorageUnavailableError("unable to create download link") from e

    logger.info("share resolve signed share_id=%s", share.id)
    return ShareResolution(
        share=share,
        file=file,
        permanent=permanent,
        download_url=signed.url,
        download_expires_at=datetime.fromtimestamp(signed.expires_at_epoch, tz=timezone.utc),
        share_expires_at=share_expires_at,
    )
