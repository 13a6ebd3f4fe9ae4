from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
from alembic import command
from alembic.config import Config

from tinybox_backend.config import settings
from tinybox_backend.db import reset_engine_cache, session_scope
from tinybox_backend.errors import EmailDeliveryError
from tinybox_backend.integrations.email.resend_client import ResendEmailClient, get_email_sender
from tinybox_backend.main import app  # pyright: ignore[reportMissingTypeStubs]
from tinybox_backend.models import User
from tinybox_backend.services.share_email_service import (
    build_share_email_subject,
    render_share_email,
)


def _make_async_client() -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


def _alembic_upgrade_head() -> None:
    cfg = Config("alembic.ini")
    command.upgrade(cfg, "head")


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def api_env(tmp_path: Path):
    old_db = settings.database_url
    old_dir = settings.storage_local_dir
    old_public = settings.public_base_url
    try:
        settings.database_url = f"sqlite:///{tmp_path / 'test-email.db'}"
        settings.storage_local_dir = str(tmp_path / "objects")
        settings.public_base_url = "http://test"
        reset_engine_cache()
        _alembic_upgrade_head()
        yield
    finally:
        app.dependency_overrides.clear()
        settings.database_url = old_db
        settings.storage_local_dir = old_dir
        settings.public_base_url = old_public
        reset_engine_cache()


async def _seed_owner(*, email: str | None = "owner@example.com", **profile: object) -> None:
    async with session_scope() as session:
        session.add(User(email=email, access_token="tok-owner", profile_json=dict(profile)))
        await session.commit()


async def _create_share(client: httpx.AsyncClient, *, share_email: str | None) -> dict[str, object]:
    r_up = await client.post(
        "/api/v1/files",
        headers=_auth("tok-owner"),
        files={"file": ("Q3 <plan>.pdf", b"%PDF-1.7", "application/pdf")},
    )
    assert r_up.status_code == 201, r_up.text
    r_share = await client.post(
        f"/api/v1/files/{r_up.json()['id']}/shares",
        headers=_auth("tok-owner"),
        json={"share_email": share_email},
    )
    assert r_share.status_code == 201, r_share.text
    return r_share.json()


def test_subject_and_body_escape_user_content():
    assert build_share_email_subject(owner_name="Ada", file_name="notes.txt") == (
        'Ada shared "notes.txt" with you'
    )
    html = render_share_email(
        owner_name="<b>Ada</b>",
        owner_email="ada@example.com",
        file_name="x<script>.txt",
        share_url="http://test/share/abc",
    )
    assert "<script>" not in html
    assert "&lt;b&gt;Ada&lt;/b&gt;" in html
    assert "http://test/share/abc" in html


def test_get_email_sender_requires_key_and_sender(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "resend_api_key", "")
    monkeypatch.setattr(settings, "resend_from_email", "noreply@example.com")
    assert get_email_sender() is None

    monkeypatch.setattr(settings, "resend_api_key", "re_test")
    sender = get_email_sender()
    assert isinstance(sender, ResendEmailClient)
    assert sender.from_email == "noreply@example.com"


@pytest.mark.anyio
async def test_resend_client_posts_message_and_returns_id():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "msg_123"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = ResendEmailClient(
            api_key="re_test",
            from_email="Tiny Box <noreply@example.com>",
            base_url="https://resend.test/",
            client=http_client,
        )
        message_id = await client.send(to=["a@example.com"], subject="hi", html="<p>hi</p>")

    assert message_id == "msg_123"
    assert str(seen[0].url) == "https://resend.test/emails"
    assert seen[0].headers["authorization"] == "Bearer re_test"
    body = json.loads(seen[0].content)
    assert body == {
        "from": "Tiny Box <noreply@example.com>",
        "to": ["a@example.com"],
        "subject": "hi",
        "html": "<p>hi</p>",
    }


@pytest.mark.anyio
async def test_resend_client_wraps_provider_and_transport_failures():
    def rejecting(request: httpx.Request) -> httpx.Response:
        _ = request
        return httpx.Response(422, json={"message": "invalid from"})

    def broken(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    for handler in (rejecting, broken):
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            client = ResendEmailClient(
                api_key="re_test", from_email="noreply@example.com", client=http_client
            )
            with pytest.raises(EmailDeliveryError):
                await client.send(to=["a@example.com"], subject="s", html="h")


@pytest.mark.anyio
async def test_send_share_email_over_http(api_env: None):
    await _seed_owner(full_name="Owner One")
    sent: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        return httpx.Response(200, json={"id": "msg_1"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        app.dependency_overrides[get_email_sender] = lambda: ResendEmailClient(
            api_key="re_test", from_email="noreply@example.com", client=http_client
        )
        async with _make_async_client() as client:
            share = await _create_share(client, share_email="friend@example.com")
            r = await client.post(
                f"/api/v1/shares/{share['share_id']}/email", headers=_auth("tok-owner")
            )

    assert r.status_code == 200, r.text
    assert r.json() == {"ok": True}
    assert len(sent) == 1
    assert sent[0]["to"] == ["friend@example.com"]
    assert sent[0]["subject"] == 'Owner One shared "Q3 <plan>.pdf" with you'
    html = str(sent[0]["html"])
    assert str(share["url"]) in html
    assert "Q3 &lt;plan&gt;.pdf" in html
    assert "owner@example.com" in html


@pytest.mark.anyio
async def test_send_share_email_requires_recipient(api_env: None):
    await _seed_owner()
    app.dependency_overrides[get_email_sender] = lambda: None

    async with _make_async_client() as client:
        share = await _create_share(client, share_email=None)
        r = await client.post(
            f"/api/v1/shares/{share['share_id']}/email", headers=_auth("tok-owner")
        )

    assert r.status_code == 409
    assert r.json()["message"] == "add a recipient email before sending this link"


@pytest.mark.anyio
async def test_send_share_email_unconfigured_is_unavailable(api_env: None):
    await _seed_owner()
    app.dependency_overrides[get_email_sender] = lambda: None

    async with _make_async_client() as client:
        share = await _create_share(client, share_email="friend@example.com")
        r = await client.post(
            f"/api/v1/shares/{share['share_id']}/email", headers=_auth("tok-owner")
        )
        r_unknown = await client.post(
            "/api/v1/shares/missing/email", headers=_auth("tok-owner")
        )

    assert r.status_code == 503
    assert r.json()["error"] == "unavailable"
    assert r_unknown.status_code == 404


@pytest.mark.anyio
async def test_send_share_email_requires_owner_address(api_env: None):
    await _seed_owner(email=None, name="No Mail")
    app.dependency_overrides[get_email_sender] = lambda: ResendEmailClient(
        api_key="re_test", from_email="noreply@example.com"
    )

    async with _make_async_client() as client:
        share = await _create_share(client, share_email="friend@example.com")
        r = await client.post(
            f"/api/v1/shares/{share['share_id']}/email", headers=_auth("tok-owner")
        )

    assert r.status_code == 409


@pytest.mark.anyio
async def test_send_share_email_provider_failure_is_unavailable(api_env: None):
    await _seed_owner()

    def handler(request: httpx.Request) -> httpx.Response:
        _ = request
        return httpx.Response(500, text="upstream down")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        app.dependency_overrides[get_email_sender] = lambda: ResendEmailClient(
            api_key="re_test", from_email="noreply@example.com", client=http_client
        )
        async with _make_async_client() as client:
            share = await _create_share(client, share_email="friend@example.com")
            r = await client.post(
                f"/api/v1/shares/{share['share_id']}/email", headers=_auth("tok-owner")
            )

    assert r.status_code == 503
