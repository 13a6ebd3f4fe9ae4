from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import httpx
import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from tinybox_backend.config import settings
from tinybox_backend.db import reset_engine_cache, session_scope
from tinybox_backend.integrations.storage.local_storage import LocalObjectStorage
from tinybox_backend.integrations.storage.object_storage import SignedUrl, get_object_storage
from tinybox_backend.main import app  # pyright: ignore[reportMissingTypeStubs]
from tinybox_backend.models import FileShare, User, utc_now
from tinybox_backend.repositories import shares_repo


def _make_async_client() -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


def _alembic_upgrade_head() -> None:
    cfg = Config("alembic.ini")
    command.upgrade(cfg, "head")


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def _seed_users() -> None:
    async with session_scope() as session:
        session.add(
            User(
                email="owner@example.com",
                access_token="tok-owner",
                profile_json={"full_name": "Owner One"},
            )
        )
        session.add(User(email="other@example.com", access_token="tok-other"))
        session.add(User(email="gone@example.com", access_token="tok-disabled", is_active=False))
        await session.commit()


async def _age_share(share_id: str, *, seconds: int) -> None:
    async with session_scope() as session:
        share = (await session.exec(select(FileShare).where(FileShare.id == share_id))).one()
        share.created_at = utc_now() - timedelta(seconds=seconds)
        session.add(share)
        await session.commit()


@pytest.fixture
def api_env(tmp_path: Path):
    old_db = settings.database_url
    old_dir = settings.storage_local_dir
    old_secret = settings.storage_signing_secret
    old_public = settings.public_base_url
    try:
        settings.database_url = f"sqlite:///{tmp_path / 'test-api.db'}"
        settings.storage_local_dir = str(tmp_path / "objects")
        settings.storage_signing_secret = "test-signing-secret"
        settings.public_base_url = "http://test"
        reset_engine_cache()
        _alembic_upgrade_head()
        yield
    finally:
        app.dependency_overrides.clear()
        settings.database_url = old_db
        settings.storage_local_dir = old_dir
        settings.storage_signing_secret = old_secret
        settings.public_base_url = old_public
        reset_engine_cache()


@pytest.mark.anyio
async def test_share_link_lifecycle_over_http(api_env: None):
    await _seed_users()

    async with _make_async_client() as client:
        r_up = await client.post(
            "/api/v1/files",
            headers=_auth("tok-owner"),
            files={"file": ("Hello World.txt", b"hello world", "text/plain")},
            data={"make_public": "false"},
        )
        assert r_up.status_code == 201, r_up.text
        uploaded = r_up.json()
        file_id = uploaded["id"]
        assert uploaded["name"] == "Hello World.txt"
        assert uploaded["is_public"] is False
        assert uploaded["public_url"] is None
        assert uploaded["size_bytes"] == 11

        r_share = await client.post(
            f"/api/v1/files/{file_id}/shares",
            headers=_auth("tok-owner"),
            json={"share_email": "friend@example.com"},
        )
        assert r_share.status_code == 201, r_share.text
        share = r_share.json()
        token = share["token"]
        assert share["permanent"] is False
        assert share["url"] == f"http://test/share/{token}"
        assert share["expires_at"] is not None
        assert share["is_expired"] is False

        r_pub = await client.get(f"/api/v1/public/shares/{token}")
        assert r_pub.status_code == 200, r_pub.text
        resolved = r_pub.json()
        assert resolved["file"]["name"] == "Hello World.txt"
        assert resolved["owner_name"] == "Owner One"
        assert resolved["owner_email"] == "owner@example.com"
        assert resolved["shared_with"] == "friend@example.com"
        assert resolved["download_url"].startswith("http://test/storage/objects/")

        r_dl = await client.get(resolved["download_url"])
        assert r_dl.status_code == 200
        assert r_dl.content == b"hello world"
        assert "Hello World.txt" in r_dl.headers.get("content-disposition", "")

        r_again = await client.get(f"/api/v1/public/shares/{token}")
        assert r_again.json()["download_url"] != resolved["download_url"]

        r_page = await client.get(f"/share/{token}")
        assert r_page.status_code == 200
        assert "text/html" in r_page.headers["content-type"]
        assert "Hello World.txt" in r_page.text
        assert "temporary access" in r_page.text

        await _age_share(share["share_id"], seconds=601)

        r_expired = await client.get(f"/api/v1/public/shares/{token}")
        assert r_expired.status_code == 410
        assert r_expired.json()["error"] == "gone"

        r_expired_page = await client.get(f"/share/{token}")
        assert r_expired_page.status_code == 410
        assert "This share link expired" in r_expired_page.text
        assert "Ask the sender to create a new link" in r_expired_page.text

        r_renew = await client.post(
            f"/api/v1/shares/{share['share_id']}/renew", headers=_auth("tok-owner")
        )
        assert r_renew.status_code == 200, r_renew.text
        assert r_renew.json()["token"] == token
        assert r_renew.json()["url"] == share["url"]
        assert r_renew.json()["is_expired"] is False

        r_live = await client.get(f"/api/v1/public/shares/{token}")
        assert r_live.status_code == 200

        r_list = await client.get(f"/api/v1/files/{file_id}/shares", headers=_auth("tok-owner"))
        assert r_list.status_code == 200
        assert [s["share_id"] for s in r_list.json()["shares"]] == [share["share_id"]]

        r_del = await client.delete(
            f"/api/v1/shares/{share['share_id']}", headers=_auth("tok-owner")
        )
        assert r_del.status_code == 204

        r_gone = await client.get(f"/api/v1/public/shares/{token}")
        assert r_gone.status_code == 404
        assert r_gone.json()["error"] == "not_found"

        r_gone_page = await client.get(f"/share/{token}")
        assert r_gone_page.status_code == 404
        assert "Share link not found" in r_gone_page.text

        r_del_again = await client.delete(
            f"/api/v1/shares/{share['share_id']}", headers=_auth("tok-owner")
        )
        assert r_del_again.status_code == 204


@pytest.mark.anyio
async def test_permanent_link_and_public_toggle_over_http(api_env: None):
    await _seed_users()

    async with _make_async_client() as client:
        r_up = await client.post(
            "/api/v1/files",
            headers=_auth("tok-owner"),
            files={"file": ("photo.png", b"\x89PNG-data", "image/png")},
        )
        assert r_up.status_code == 201, r_up.text
        file_id = r_up.json()["id"]

        r_share = await client.post(
            f"/api/v1/files/{file_id}/shares",
            headers=_auth("tok-owner"),
            json={"never_expires": True},
        )
        assert r_share.status_code == 201
        share = r_share.json()
        token = share["token"]
        assert token.startswith("perma_")
        assert share["permanent"] is True
        assert share["expires_at"] is None

        await _age_share(share["share_id"], seconds=10**6)

        r_page = await client.get(f"/share/{token}")
        assert r_page.status_code == 200
        assert "stays active until the sender removes it" in r_page.text

        r_vis = await client.patch(
            f"/api/v1/files/{file_id}/visibility",
            headers=_auth("tok-owner"),
            json={"is_public": True},
        )
        assert r_vis.status_code == 200, r_vis.text
        public_url = r_vis.json()["public_url"]
        assert public_url.startswith("http://test/storage/public/")

        r_pub = await client.get(f"/api/v1/public/shares/{token}")
        assert r_pub.status_code == 200
        assert r_pub.json()["download_url"] == public_url
        assert r_pub.json()["download_expires_at"] is None

        r_public_dl = await client.get(public_url)
        assert r_public_dl.status_code == 200
        assert r_public_dl.content == b"\x89PNG-data"

        r_page_public = await client.get(f"/share/{token}")
        assert "This file is public" in r_page_public.text

        r_private = await client.patch(
            f"/api/v1/files/{file_id}/visibility",
            headers=_auth("tok-owner"),
            json={"is_public": False},
        )
        assert r_private.status_code == 200
        assert r_private.json()["public_url"] is None

        r_public_dl_after = await client.get(public_url)
        assert r_public_dl_after.status_code == 404

        r_delete_file = await client.delete(f"/api/v1/files/{file_id}", headers=_auth("tok-owner"))
        assert r_delete_file.status_code == 204

        r_dangling = await client.get(f"/api/v1/public/shares/{token}")
        assert r_dangling.status_code == 404


@pytest.mark.anyio
async def test_owner_scoping_and_auth_errors(api_env: None):
    await _seed_users()

    async with _make_async_client() as client:
        r_up = await client.post(
            "/api/v1/files",
            headers=_auth("tok-owner"),
            files={"file": ("a.txt", b"a", "text/plain")},
        )
        file_id = r_up.json()["id"]
        r_share = await client.post(
            f"/api/v1/files/{file_id}/shares", headers=_auth("tok-owner"), json={}
        )
        share_id = r_share.json()["share_id"]

        r_missing = await client.post(f"/api/v1/files/{file_id}/shares", json={})
        assert r_missing.status_code == 401
        assert r_missing.json()["error"] == "unauthorized"

        r_bad = await client.get("/api/v1/files", headers=_auth("nope"))
        assert r_bad.status_code == 401

        r_disabled = await client.get("/api/v1/files", headers=_auth("tok-disabled"))
        assert r_disabled.status_code == 403

        r_foreign_create = await client.post(
            f"/api/v1/files/{file_id}/shares", headers=_auth("tok-other"), json={}
        )
        assert r_foreign_create.status_code == 404
        assert r_foreign_create.json()["error"] == "not_found"

        r_foreign_renew = await client.post(
            f"/api/v1/shares/{share_id}/renew", headers=_auth("tok-other")
        )
        assert r_foreign_renew.status_code == 404

        r_foreign_list = await client.get(
            f"/api/v1/files/{file_id}/shares", headers=_auth("tok-other")
        )
        assert r_foreign_list.status_code == 404

        # Revoking someone else's link is a silent no-op.
        r_foreign_revoke = await client.delete(
            f"/api/v1/shares/{share_id}", headers=_auth("tok-other")
        )
        assert r_foreign_revoke.status_code == 204
        r_list = await client.get(f"/api/v1/files/{file_id}/shares", headers=_auth("tok-owner"))
        assert len(r_list.json()["shares"]) == 1

        r_other_files = await client.get("/api/v1/files", headers=_auth("tok-other"))
        assert r_other_files.status_code == 200
        assert r_other_files.json() == []


@pytest.mark.anyio
async def test_signed_download_rejects_tampered_links(api_env: None):
    await _seed_users()

    async with _make_async_client() as client:
        r_up = await client.post(
            "/api/v1/files",
            headers=_auth("tok-owner"),
            files={"file": ("a.txt", b"secret", "text/plain")},
        )
        file_id = r_up.json()["id"]
        r_share = await client.post(
            f"/api/v1/files/{file_id}/shares", headers=_auth("tok-owner"), json={}
        )
        token = r_share.json()["token"]
        url = (await client.get(f"/api/v1/public/shares/{token}")).json()["download_url"]

        r_ok = await client.get(url)
        assert r_ok.status_code == 200

        r_tampered = await client.get(url.replace("signature=", "signature=x"))
        assert r_tampered.status_code == 403

        r_unsigned = await client.get(url.split("?", 1)[0])
        assert r_unsigned.status_code == 422


@pytest.mark.anyio
async def test_upload_rejects_empty_and_oversized_files(api_env: None):
    await _seed_users()
    old_limit = settings.upload_max_size_bytes
    try:
        settings.upload_max_size_bytes = 8
        async with _make_async_client() as client:
            r_empty = await client.post(
                "/api/v1/files",
                headers=_auth("tok-owner"),
                files={"file": ("empty.txt", b"", "text/plain")},
            )
            assert r_empty.status_code == 409
            assert r_empty.json()["error"] == "conflict"

            r_big = await client.post(
                "/api/v1/files",
                headers=_auth("tok-owner"),
                files={"file": ("big.bin", b"0123456789", "application/octet-stream")},
            )
            assert r_big.status_code == 413
    finally:
        settings.upload_max_size_bytes = old_limit


@pytest.mark.anyio
async def test_request_id_is_echoed_on_errors(api_env: None):
    async with _make_async_client() as client:
        r = await client.get(
            "/api/v1/public/shares/unknown-token", headers={"X-Request-Id": "req-123"}
        )
    assert r.status_code == 404
    assert r.headers["x-request-id"] == "req-123"
    assert r.json()["request_id"] == "req-123"


@pytest.mark.anyio
async def test_health():
    async with _make_async_client() as client:
        r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


class _UnsignableStorage(LocalObjectStorage):
    async def create_signed_url(self, key: str, ttl_seconds: int) -> SignedUrl:
        _ = key, ttl_seconds
        raise ConnectionError("bucket unreachable")


@pytest.mark.anyio
async def test_share_page_reports_signing_outage(api_env: None):
    await _seed_users()

    async with _make_async_client() as client:
        r_up = await client.post(
            "/api/v1/files",
            headers=_auth("tok-owner"),
            files={"file": ("a.txt", b"abc", "text/plain")},
        )
        assert r_up.status_code == 201, r_up.text
        r_share = await client.post(
            f"/api/v1/files/{r_up.json()['id']}/shares", headers=_auth("tok-owner"), json={}
        )
        assert r_share.status_code == 201, r_share.text
        token = r_share.json()["token"]

        app.dependency_overrides[get_object_storage] = lambda: _UnsignableStorage(
            root_dir=settings.storage_local_dir,
            public_base_url=settings.public_base_url,
            signing_secret=settings.storage_signing_secret,
        )
        r_page = await client.get(f"/share/{token}")
        r_pub = await client.get(f"/api/v1/public/shares/{token}")

    assert r_page.status_code == 503
    assert r_page.headers["content-type"].startswith("text/html")
    assert "Download temporarily unavailable" in r_page.text
    assert r_pub.status_code == 503
    assert r_pub.json()["error"] == "unavailable"


@pytest.mark.anyio
async def test_share_page_lookup_failure_is_not_found(
    api_env: None, monkeypatch: pytest.MonkeyPatch
):
    async def _db_down(*args: object, **kwargs: object) -> None:
        _ = args, kwargs
        raise OperationalError("SELECT", {}, Exception("db down"))

    monkeypatch.setattr(shares_repo, "get_share_by_token", _db_down)

    async with _make_async_client() as client:
        r_page = await client.get("/share/sometoken")
        r_pub = await client.get("/api/v1/public/shares/sometoken")

    assert r_page.status_code == 404
    assert "Share link not found" in r_page.text
    assert r_pub.status_code == 404
    assert r_pub.json()["error"] == "not_found"
