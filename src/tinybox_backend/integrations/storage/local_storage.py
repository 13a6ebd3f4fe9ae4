from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import time
from pathlib import Path, PurePosixPath
from urllib.parse import quote, urlencode

from starlette.concurrency import run_in_threadpool

from tinybox_backend.errors import StorageUnavailableError
from tinybox_backend.integrations.storage.object_storage import SignedUrl


LOCAL_SIGNED_PATH = "/storage/objects"
LOCAL_PUBLIC_PATH = "/storage/public"


def _safe_join(root: Path, key: str) -> Path:
    parts = [p for p in PurePosixPath(key).parts if p not in {"/", ""}]
    if not parts or any(p in {"..", "."} for p in parts):
        raise ValueError("invalid storage key")
    return root.joinpath(*parts)


def _sign(secret: str, message: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


class LocalObjectStorage:
    """Filesystem-backed storage that mimics bucket public/signed URLs.

    Signed URLs point at the local storage router and carry
    ``expires`` (epoch seconds), ``nonce`` and an HMAC-SHA256 ``signature``.
    """

    def __init__(self, *, root_dir: str, public_base_url: str, signing_secret: str) -> None:
        self._root = Path(root_dir)
        self._public_base_url = public_base_url.rstrip("/")
        self._secret = signing_secret

    def resolve_path(self, key: str) -> Path:
        return _safe_join(self._root, key)

    async def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        _ = content_type
        path = self.resolve_path(key)
        tmp_path = path.with_name(path.name + ".tmp")

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            _ = tmp_path.write_bytes(data)
            _ = tmp_path.replace(path)

        try:
            await run_in_threadpool(_write)
        except OSError as e:
            raise StorageUnavailableError(f"object upload failed: {e}") from e

    async def get_bytes(self, key: str) -> bytes:
        path = self.resolve_path(key)
        return await run_in_threadpool(path.read_bytes)

    async def delete(self, key: str) -> None:
        path = self.resolve_path(key)
        if not path.exists():
            return
        try:
            await run_in_threadpool(path.unlink)
        except OSError as e:
            raise StorageUnavailableError(f"object delete failed: {e}") from e

    def get_public_url(self, key: str) -> str:
        return f"{self._public_base_url}{LOCAL_PUBLIC_PATH}/{quote(key, safe='/')}"

    async def create_signed_url(self, key: str, ttl_seconds: int) -> SignedUrl:
        try:
            _ = self.resolve_path(key)
        except ValueError as e:
            raise StorageUnavailableError("unable to create download link") from e
        if not self._secret.strip():
            raise StorageUnavailableError("STORAGE_SIGNING_SECRET is not configured")

        expires = int(time.time()) + int(ttl_seconds)
        nonce = secrets.token_urlsafe(8)
        signature = _sign(self._secret, f"{key}:{expires}:{nonce}")
        query = urlencode({"expires": expires, "nonce": nonce, "signature": signature})
        url = f"{self._public_base_url}{LOCAL_SIGNED_PATH}/{quote(key, safe='/')}?{query}"
        return SignedUrl(url=url, expires_at_epoch=expires)

    def verify_signature(
        self,
        key: str,
        *,
        expires: int,
        nonce: str,
        signature: str,
        now_ts: int | None = None,
    ) -> bool:
        if not self._secret.strip() or not nonce or not signature:
            return False
        now = int(now_ts if now_ts is not None else time.time())
        if expires <= now:
            return False
        expected = _sign(self._secret, f"{key}:{expires}:{nonce}")
        return secrets.compare_digest(signature, expected)
