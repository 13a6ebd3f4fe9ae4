from __future__ import annotations

import logging

from sqlmodel.ext.asyncio.session import AsyncSession

from tinybox_backend.errors import (
    EmailDeliveryError,
    EmailNotConfiguredError,
    FileNotFoundInStoreError,
    InvalidStateError,
    ShareNotFoundError,
)
from tinybox_backend.identity import resolve_display_name
from tinybox_backend.integrations.email.resend_client import EmailSender
from tinybox_backend.models import User
from tinybox_backend.repositories import files_repo, shares_repo
from tinybox_backend.services.shares_service import build_share_url
from tinybox_backend.templating import render_template

logger = logging.getLogger(__name__)


def build_share_email_subject(*, owner_name: str, file_name: str) -> str:
    return f'{owner_name} shared "{file_name}" with you'


def render_share_email(*, owner_name: str, owner_email: str, file_name: str, share_url: str) -> str:
    return render_template(
        "emails/share_link.html",
        owner_name=owner_name,
        owner_email=owner_email,
        file_name=file_name,
        share_url=share_url,
    )


async def send_share_link_email(
    *,
    session: AsyncSession,
    user: User,
    share_id: str,
    email_sender: EmailSender | None,
) -> None:
    if user.id is None:
        raise RuntimeError("user missing id")
    user_id = int(user.id)

    share = await shares_repo.get_share_owned(session, owner_id=user_id, share_id=share_id)
    if share is None:
        raise ShareNotFoundError()

    if not share.share_email:
        raise InvalidStateError("add a recipient email before sending this link")

    file = await files_repo.get_file_owned(session, owner_id=user_id, file_id=share.file_id)
    if file is None:
        raise FileNotFoundInStoreError("file not found for this share link")

    if email_sender is None:
        raise EmailNotConfiguredError()

    owner_email = share.owner_email or user.email or ""
    if not owner_email:
        raise InvalidStateError("your account needs an email address before you can send messages")

    owner_name = (
        (share.owner_name or "").strip()
        or resolve_display_name(user.profile_json)
        or owner_email
    )

    share_url = build_share_url(token=share.token)
    subject = build_share_email_subject(owner_name=owner_name, file_name=file.name)
    html = render_share_email(
        owner_name=owner_name,
        owner_email=owner_email,
        file_name=file.name,
        share_url=share_url,
    )

    try:
        message_id = await email_sender.send(to=[share.share_email], subject=subject, html=html)
    except EmailDeliveryError:
        logger.warning("share email failed share_id=%s", share.id, exc_info=True)
        raise
    except Exception as e:
        logger.warning("share email failed share_id=%s", share.id, exc_info=True)
        raise EmailDeliveryError("email delivery failed") from e

    logger.info("share email sent share_id=%s message_id=%s", share.id, message_id)
