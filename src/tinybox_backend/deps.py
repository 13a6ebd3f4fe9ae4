from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from tinybox_backend.db import get_session
from tinybox_backend.models import User

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    # Dedicated session for auth so services own tx boundaries on the request session.
    session: AsyncSession = Depends(get_session, use_cache=False),
) -> User:
    raw_token = creds.credentials if creds is not None else None
    token = raw_token.strip() if raw_token else ""
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing token")

    user = (await session.exec(select(User).where(User.access_token == token))).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="user disabled")
    if user.id is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="user missing id"
        )

    request.state.auth_user_id = int(user.id)
    return user
