"""Server-rendered share page: GET /share/{token}."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse
from sqlmodel.ext.asyncio.session import AsyncSession

from tinybox_backend.db import get_session
from tinybox_backend.errors import NotFoundError, ShareExpiredError, UnavailableError
from tinybox_backend.integrations.storage.object_storage import ObjectStorage, get_object_storage
from tinybox_backend.models import FileShare
from tinybox_backend.services import share_resolution_service
from tinybox_backend.templating import templates

router = APIRouter(tags=["pages"])

_FALLBACK_OWNER_NAME = "Tiny Box user"


def _owner_context(share: FileShare) -> dict[str, str]:
    return {
        "owner_name": (share.owner_name or "").strip() or share.owner_email or _FALLBACK_OWNER_NAME,
        "owner_email": share.owner_email or "Email not provided",
    }


@router.get("/share/{token}", response_class=HTMLResponse)
async def share_page(
    token: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
):
    try:
        resolved = await share_resolution_service.resolve_share_link(
            session=session, storage=storage, token=token
        )
    except NotFoundError:
        return templates.TemplateResponse(
            request=request,
            name="share_not_found.html",
            context={},
            status_code=status.HTTP_404_NOT_FOUND,
        )
    except ShareExpiredError as e:
        return templates.TemplateResponse(
            request=request,
            name="share_expired.html",
            context={
                "file": e.file,
                "share": e.share,
                "expired_at": e.expired_at,
                **_owner_context(e.share),
            },
            status_code=status.HTTP_410_GONE,
        )
    except UnavailableError as e:
        return templates.TemplateResponse(
            request=request,
            name="share_unavailable.html",
            context={"message": e.message},
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return templates.TemplateResponse(
        request=request,
        name="share.html",
        context={
            "file": resolved.file,
            "share": resolved.share,
            "permanent": resolved.permanent,
            "download_url": resolved.download_url,
            "download_expires_at": resolved.download_expires_at,
            "share_expires_at": resolved.share_expires_at,
            **_owner_context(resolved.share),
        },
    )
