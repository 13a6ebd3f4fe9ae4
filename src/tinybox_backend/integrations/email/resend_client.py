"""Resend e-mail API client.

Only the single "send" call is used. The client can be handed an existing
``httpx.AsyncClient`` (tests use ``httpx.MockTransport``).
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from tinybox_backend.config import settings
from tinybox_backend.errors import EmailDeliveryError


class EmailSender(Protocol):
    @property
    def from_email(self) -> str: ...

    async def send(self, *, to: list[str], subject: str, html: str) -> str | None: ...


class ResendEmailClient:
    def __init__(
        self,
        *,
        api_key: str,
        from_email: str,
        base_url: str = "https://api.resend.com",
        timeout_seconds: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key.strip()
        self._from_email = from_email.strip()
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._client = client

    @property
    def from_email(self) -> str:
        return self._from_email

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise EmailDeliveryError("RESEND_API_KEY is empty")
        return {"Authorization": f"Bearer {self._api_key}"}

    async def _post_json(self, url: str, payload: dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, headers=self._headers(), json=payload)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(url, headers=self._headers(), json=payload)

    async def send(self, *, to: list[str], subject: str, html: str) -> str | None:
        """Send one message; returns the provider message id when present."""
        payload: dict[str, Any] = {
            "from": self._from_email,
            "to": to,
            "subject": subject,
            "html": html,
        }
        url = f"{self._base_url}/emails"
        try:
            resp = await self._post_json(url, payload)
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"email request failed: {e}") from e

        if 200 <= resp.status_code < 300:
            try:
                data = resp.json()
            except ValueError:
                return None
            message_id = data.get("id") if isinstance(data, dict) else None
            return message_id if isinstance(message_id, str) else None
        raise EmailDeliveryError(f"email send failed. {resp.status_code} {resp.text}")


def get_email_sender() -> EmailSender | None:
    # None when RESEND_API_KEY / RESEND_FROM_EMAIL are not configured.
    if not settings.email_configured():
        return None
    return ResendEmailClient(
        api_key=settings.resend_api_key,
        from_email=settings.resend_from_email,
        base_url=settings.resend_base_url,
        timeout_seconds=settings.email_request_timeout_seconds,
    )
