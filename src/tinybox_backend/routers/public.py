"""Anonymous share resolution (JSON)."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from tinybox_backend.db import get_session
from tinybox_backend.integrations.storage.object_storage import ObjectStorage, get_object_storage
from tinybox_backend.schemas import SharedFileOut, ShareResolvedOut
from tinybox_backend.services import share_resolution_service

router = APIRouter(tags=["public"])


@router.get("/public/shares/{token}", response_model=ShareResolvedOut)
async def resolve_share(
    token: str,
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
) -> ShareResolvedOut:
    resolved = await share_resolution_service.resolve_share_link(
        session=session, storage=storage, token=token
    )
    return ShareResolvedOut(
        file=SharedFileOut(
            name=resolved.file.name,
            size_bytes=resolved.file.size_bytes,
            mime_type=resolved.file.mime_type,
            is_public=resolved.file.is_public,
        ),
        permanent=resolved.permanent,
        download_url=resolved.download_url,
        download_expires_at=resolved.download_expires_at,
        share_expires_at=resolved.share_expires_at,
        owner_name=resolved.share.owner_name,
        owner_email=resolved.share.owner_email,
        shared_with=resolved.share.share_email,
    )
