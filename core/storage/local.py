from __future__ import annotations

import asyncio
from pathlib import Path, PurePosixPath

from core.exceptions import ClientInputError, NotFoundError, StorageWriteError
from core.storage import BackendKind, encode_object_key, normalize_object_name


class LocalStorage:
    kind = BackendKind.LOCAL
    bucket_name: str | None = None
    public_base_url: str | None = None

    def __init__(self, root: Path, *, mount: str = "/uploads") -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        self.mount = "/" + mount.strip("/")

    def _contained(self, segments: list[str]) -> Path:
        root = self.root.resolve()
        candidate = root.joinpath(*segments).resolve()
        if root not in candidate.parents:
            raise ClientInputError("Invalid target name", {"targetName": "/".join(segments)})
        return candidate

    def path_for(self, locator: str) -> Path:
        """Map a local locator back to its file under the root."""
        try:
            return self._contained(normalize_object_name(locator))
        except ClientInputError as exc:
            raise NotFoundError("Stored file not found", {"locator": locator}) from exc

    def url_for(self, locator: str, base_url: str) -> str:
        segments = list(PurePosixPath(locator).parts)
        return f"{base_url.rstrip('/')}{self.mount}/{encode_object_key(segments)}"

    def locator_for(self, name: str) -> str:
        return "/".join(normalize_object_name(name))

    async def store(self, name: str, data: bytes, mime_type: str) -> str:
        segments = normalize_object_name(name)
        path = self._contained(segments)

        def _write_sync() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await asyncio.to_thread(_write_sync)
        except OSError as exc:
            raise StorageWriteError(
                f"Could not write file to local storage: {exc}",
                {"backend": self.kind.value, "name": name},
            ) from exc
        return self.locator_for(name)

    async def fetchable(self, locator: str) -> bool:
        try:
            path = self.path_for(locator)
        except NotFoundError:
            return False
        return await asyncio.to_thread(path.is_file)


__all__ = ["LocalStorage"]
