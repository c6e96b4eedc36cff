"""Native cloud API backend (B2-style account authorization and upload URLs).

The native API hands out short-lived upload URLs: every ``store`` asks for a
fresh one before sending the bytes, so no upload token outlives a request.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any
from urllib.parse import unquote

import httpx
from loguru import logger

from core.exceptions import BackendUnavailableError, StorageWriteError
from core.storage import BackendKind, encode_object_key, join_prefix, normalize_object_name

API_PREFIX = "/b2api/v2"


@dataclass(frozen=True)
class AccountAuthorization:
    account_id: str
    token: str
    api_url: str
    download_url: str
    allowed_bucket_id: str | None = None
    allowed_bucket_name: str | None = None


class NativeCloudStorage:
    kind = BackendKind.NATIVE

    def __init__(
        self,
        *,
        key_id: str,
        application_key: str,
        bucket_name: str,
        api_url: str = "https://api.backblazeb2.com",
        public_base_url: str | None = None,
        prefix: str = "",
        timeout: float | None = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.key_id = key_id
        self.application_key = application_key
        self.bucket_name = bucket_name
        self.api_url = api_url.rstrip("/")
        self.prefix = prefix.strip("/")
        self._public_base_override = public_base_url.rstrip("/") if public_base_url else None
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.authorization: AccountAuthorization | None = None
        self.bucket_id: str | None = None

    @property
    def public_base_url(self) -> str | None:
        if self._public_base_override:
            return self._public_base_override
        return self.authorization.download_url if self.authorization else None

    def _unavailable(self, message: str) -> BackendUnavailableError:
        return BackendUnavailableError(message, {"backend": self.kind.value, "bucket": self.bucket_name})

    async def _api_call(self, auth: AccountAuthorization, operation: str, payload: dict[str, Any]) -> httpx.Response:
        return await self.client.post(
            f"{auth.api_url}{API_PREFIX}/{operation}",
            json=payload,
            headers={"Authorization": auth.token},
        )

    async def _authorize(self) -> AccountAuthorization:
        response = await self.client.get(
            f"{self.api_url}{API_PREFIX}/b2_authorize_account",
            auth=(self.key_id, self.application_key),
        )
        if response.status_code != 200:
            raise self._unavailable(f"Account authorization failed with HTTP {response.status_code}")
        body = response.json()
        allowed = body.get("allowed") or {}
        return AccountAuthorization(
            account_id=body["accountId"],
            token=body["authorizationToken"],
            api_url=body["apiUrl"].rstrip("/"),
            download_url=body["downloadUrl"].rstrip("/"),
            allowed_bucket_id=allowed.get("bucketId"),
            allowed_bucket_name=allowed.get("bucketName"),
        )

    @staticmethod
    def _match_bucket(payload: dict[str, Any], name: str) -> str | None:
        for bucket in payload.get("buckets", []):
            if bucket.get("bucketName") == name:
                return bucket.get("bucketId")
        return None

    async def _locate_bucket(self, auth: AccountAuthorization) -> str:
        response = await self._api_call(auth, "b2_list_buckets", {"accountId": auth.account_id})
        if response.status_code == 200:
            bucket_id = self._match_bucket(response.json(), self.bucket_name)
            if bucket_id:
                return bucket_id
            raise self._unavailable(f"Bucket {self.bucket_name} not found")
        if response.status_code not in {401, 403}:
            raise self._unavailable(f"Listing buckets failed with HTTP {response.status_code}")

        # Keys restricted to a single bucket may not list the account; ask for the bucket by name.
        logger.info("Bucket listing not permitted, looking up bucket {bucket} directly", bucket=self.bucket_name)
        response = await self._api_call(
            auth,
            "b2_list_buckets",
            {"accountId": auth.account_id, "bucketName": self.bucket_name},
        )
        if response.status_code == 200:
            bucket_id = self._match_bucket(response.json(), self.bucket_name)
            if bucket_id:
                return bucket_id
        if auth.allowed_bucket_id and auth.allowed_bucket_name == self.bucket_name:
            return auth.allowed_bucket_id
        raise self._unavailable(f"Bucket {self.bucket_name} not found or not accessible")

    async def connect(self) -> "NativeCloudStorage":
        try:
            auth = await self._authorize()
            self.authorization = auth
            self.bucket_id = await self._locate_bucket(auth)
        except httpx.HTTPError as exc:
            raise self._unavailable(f"Native storage API is not reachable: {exc}") from exc
        except (KeyError, ValueError) as exc:
            raise self._unavailable(f"Unexpected native storage API response: {exc}") from exc
        return self

    def _key(self, name: str) -> str:
        return "/".join(join_prefix(self.prefix, normalize_object_name(name)))

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/file/{self.bucket_name}/{encode_object_key(key.split('/'))}"

    def locator_for(self, name: str) -> str:
        return self.public_url(self._key(name))

    async def store(self, name: str, data: bytes, mime_type: str) -> str:
        auth = self.authorization
        if auth is None or self.bucket_id is None:
            raise StorageWriteError("Native storage is not connected", {"backend": self.kind.value})
        key = self._key(name)
        details = {"backend": self.kind.value, "bucket": self.bucket_name, "key": key}
        try:
            response = await self._api_call(auth, "b2_get_upload_url", {"bucketId": self.bucket_id})
            if response.status_code != 200:
                raise StorageWriteError(f"Requesting an upload URL failed with HTTP {response.status_code}", details)
            target = response.json()
            response = await self.client.post(
                target["uploadUrl"],
                content=data,
                headers={
                    "Authorization": target["authorizationToken"],
                    "X-Bz-File-Name": encode_object_key(key.split("/")),
                    "Content-Type": mime_type,
                    "X-Bz-Content-Sha1": hashlib.sha1(data).hexdigest(),
                },
            )
        except httpx.HTTPError as exc:
            raise StorageWriteError(f"Native storage upload failed: {exc}", details) from exc
        except (KeyError, ValueError) as exc:
            raise StorageWriteError(f"Unexpected upload URL response: {exc}", details) from exc
        if response.status_code != 200:
            raise StorageWriteError(f"Native storage upload failed with HTTP {response.status_code}", details)
        return self.public_url(key)

    async def fetchable(self, locator: str) -> bool:
        base = f"{self.public_base_url}/file/{self.bucket_name}/"
        if not locator.startswith(base) or not unquote(locator[len(base):]):
            return False
        try:
            response = await self.client.head(locator)
        except httpx.HTTPError:
            return False
        return response.status_code == 200

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


__all__ = ["AccountAuthorization", "NativeCloudStorage"]
