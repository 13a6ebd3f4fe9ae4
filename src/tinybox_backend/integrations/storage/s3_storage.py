from __future__ import annotations

import time
from dataclasses import dataclass
from urllib.parse import quote

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from tinybox_backend.errors import StorageUnavailableError
from tinybox_backend.integrations.storage.object_storage import SignedUrl


@dataclass(frozen=True)
class S3Config:
    endpoint_url: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str
    force_path_style: bool
    public_base_url: str


class S3ObjectStorage:
    def __init__(
        self,
        *,
        endpoint_url: str,
        region: str,
        bucket: str,
        access_key_id: str,
        secret_access_key: str,
        force_path_style: bool,
        public_base_url: str = "",
    ) -> None:
        self._cfg = S3Config(
            endpoint_url=endpoint_url,
            region=region,
            bucket=bucket,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            force_path_style=force_path_style,
            public_base_url=public_base_url,
        )

        import boto3

        addressing_style = "path" if force_path_style else "virtual"
        self._client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region or None,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(s3={"addressing_style": addressing_style}),
        )

    async def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        def _put() -> None:
            kwargs: dict[str, object] = {
                "Bucket": self._cfg.bucket,
                "Key": key,
                "Body": data,
            }
            if content_type:
                kwargs["ContentType"] = content_type
            self._client.put_object(**kwargs)

        try:
            await run_in_threadpool(_put)
        except (BotoCoreError, ClientError) as e:
            raise StorageUnavailableError(f"object upload failed: {e}") from e

    async def get_bytes(self, key: str) -> bytes:
        def _get() -> bytes:
            resp = self._client.get_object(Bucket=self._cfg.bucket, Key=key)
            body = resp.get("Body")
            # StreamingBody.read() is blocking; run in threadpool.
            return body.read() if body is not None else b""

        return await run_in_threadpool(_get)

    async def delete(self, key: str) -> None:
        def _delete() -> None:
            self._client.delete_object(Bucket=self._cfg.bucket, Key=key)

        try:
            await run_in_threadpool(_delete)
        except (BotoCoreError, ClientError) as e:
            raise StorageUnavailableError(f"object delete failed: {e}") from e

    def get_public_url(self, key: str) -> str:
        quoted = quote(key, safe="/")
        if self._cfg.public_base_url.strip():
            return f"{self._cfg.public_base_url.rstrip('/')}/{quoted}"
        # Path-style URL against the endpoint; the bucket/prefix must allow anonymous reads.
        return f"{self._cfg.endpoint_url.rstrip('/')}/{self._cfg.bucket}/{quoted}"

    async def create_signed_url(self, key: str, ttl_seconds: int) -> SignedUrl:
        def _sign() -> str:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self._cfg.bucket, "Key": key},
                ExpiresIn=int(ttl_seconds),
            )

        issued_at = int(time.time())
        try:
            url = await run_in_threadpool(_sign)
        except (BotoCoreError, ClientError) as e:
            raise StorageUnavailableError(f"unable to create download link: {e}") from e
        if not url:
            raise StorageUnavailableError("unable to create download link")
        return SignedUrl(url=url, expires_at_epoch=issued_at + int(ttl_seconds))
