"""Share link management (authenticated owner)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from tinybox_backend.db import get_session
from tinybox_backend.deps import get_current_user
from tinybox_backend.integrations.email.resend_client import EmailSender, get_email_sender
from tinybox_backend.models import User
from tinybox_backend.schemas import ShareCreateRequest, ShareLinkListResponse, ShareLinkOut
from tinybox_backend.schemas_common import OkResponse
from tinybox_backend.services import share_email_service, shares_service
from tinybox_backend.services.shares_service import ShareLinkView

router = APIRouter(tags=["shares"])


def _to_out(view: ShareLinkView) -> ShareLinkOut:
    return ShareLinkOut(
        share_id=view.share.id,
        file_id=view.share.file_id,
        url=view.url,
        token=view.share.token,
        permanent=view.permanent,
        share_email=view.share.share_email,
        created_at=view.share.created_at,
        expires_at=view.expires_at,
        is_expired=view.is_expired,
    )


@router.get("/files/{file_id}/shares", response_model=ShareLinkListResponse)
async def list_shares(
    file_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ShareLinkListResponse:
    views = await shares_service.list_share_links(
        session=session, user_id=int(user.id or 0), file_id=file_id
    )
    return ShareLinkListResponse(shares=[_to_out(v) for v in views])


@router.post(
    "/files/{file_id}/shares",
    response_model=ShareLinkOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_share(
    file_id: str,
    payload: ShareCreateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ShareLinkOut:
    view = await shares_service.create_share_link(
        session=session,
        user=user,
        file_id=file_id,
        share_email=payload.share_email,
        permanent=payload.never_expires,
    )
    return _to_out(view)


@router.post("/shares/{share_id}/renew", response_model=ShareLinkOut)
async def renew_share(
    share_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ShareLinkOut:
    view = await shares_service.renew_share_link(
        session=session, user_id=int(user.id or 0), share_id=share_id
    )
    return _to_out(view)


@router.delete("/shares/{share_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_share(
    share_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> None:
    await shares_service.revoke_share_link(
        session=session, user_id=int(user.id or 0), share_id=share_id
    )
    return None


@router.post("/shares/{share_id}/email", response_model=OkResponse)
async def send_share_email(
    share_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    email_sender: EmailSender | None = Depends(get_email_sender),
) -> OkResponse:
    await share_email_service.send_share_link_email(
        session=session, user=user, share_id=share_id, email_sender=email_sender
    )
    return OkResponse()
