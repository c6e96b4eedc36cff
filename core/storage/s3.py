from __future__ import annotations

import asyncio
from typing import Any, Optional
from urllib.parse import unquote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from core.exceptions import BackendUnavailableError, StorageWriteError
from core.storage import BackendKind, encode_object_key, join_prefix, normalize_object_name

_ACCESS_DENIED_CODES = {"AccessDenied", "403", "Forbidden", "AllAccessDisabled"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class S3Storage:
    kind = BackendKind.S3

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        region: Optional[str] = None,
        *,
        endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        public_base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Any = None,
    ) -> None:
        self.bucket_name = bucket
        self.prefix = prefix.strip("/")
        self.region = region
        self.endpoint_url = endpoint_url.rstrip("/") if endpoint_url else None
        self.public_base_url = (public_base_url or self._default_base_url()).rstrip("/")
        if client is None:
            session = boto3.session.Session(
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                region_name=region,
            )
            config = Config(connect_timeout=timeout, read_timeout=timeout) if timeout else None
            client = session.client("s3", endpoint_url=self.endpoint_url, config=config)
        self.client = client

    def _default_base_url(self) -> str:
        if self.endpoint_url:
            return self.endpoint_url
        if self.region:
            return f"https://s3.{self.region}.amazonaws.com"
        return "https://s3.amazonaws.com"

    def _key(self, name: str) -> str:
        return "/".join(join_prefix(self.prefix, normalize_object_name(name)))

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{self.bucket_name}/{encode_object_key(key.split('/'))}"

    def _locate_bucket(self) -> None:
        # Listing needs s3:ListAllMyBuckets; keys scoped to one bucket fall back to HeadBucket.
        try:
            response = self.client.list_buckets()
        except ClientError as exc:
            if _error_code(exc) not in _ACCESS_DENIED_CODES:
                raise
            logger.info("S3 list_buckets not permitted, probing bucket {bucket} directly", bucket=self.bucket_name)
            self.client.head_bucket(Bucket=self.bucket_name)
            return
        names = {bucket.get("Name") for bucket in response.get("Buckets", [])}
        if self.bucket_name not in names:
            raise BackendUnavailableError(
                f"Bucket {self.bucket_name} not found",
                {"backend": self.kind.value, "bucket": self.bucket_name},
            )

    async def connect(self) -> "S3Storage":
        try:
            await asyncio.to_thread(self._locate_bucket)
        except (ClientError, BotoCoreError) as exc:
            raise BackendUnavailableError(
                f"S3 bucket {self.bucket_name} is not reachable: {exc}",
                {"backend": self.kind.value, "bucket": self.bucket_name},
            ) from exc
        return self

    def locator_for(self, name: str) -> str:
        return self.public_url(self._key(name))

    async def store(self, name: str, data: bytes, mime_type: str) -> str:
        s3_key = self._key(name)
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket_name,
                Key=s3_key,
                Body=data,
                ContentType=mime_type,
            )
        except (ClientError, BotoCoreError) as exc:
            raise StorageWriteError(
                f"S3 upload failed: {exc}",
                {"backend": self.kind.value, "bucket": self.bucket_name, "key": s3_key},
            ) from exc
        return self.public_url(s3_key)

    async def fetchable(self, locator: str) -> bool:
        base = f"{self.public_base_url}/{self.bucket_name}/"
        if not locator.startswith(base):
            return False
        key = unquote(locator[len(base):])
        try:
            await asyncio.to_thread(self.client.head_object, Bucket=self.bucket_name, Key=key)
        except ClientError:
            return False
        return True


__all__ = ["S3Storage"]
