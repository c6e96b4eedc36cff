from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load .env file from project root
_env_path = Path(__file__).parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)

DEFAULT_CONFIG_PATH = Path("config/default.yaml")


class SeedRecordConfig(BaseModel):
    display_name: str
    locator: str | None = None
    mime_type: str | None = None


def _default_seed() -> dict[str, SeedRecordConfig]:
    return {"123abc": SeedRecordConfig(display_name="report1.pdf")}


class ServerSettings(BaseModel):
    upload_root: Path = Path("data/uploads")
    public_root: Path = Path("public")
    uploads_mount: str = "/uploads"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    resolve_on_startup: bool = True
    seed_records: dict[str, SeedRecordConfig] = Field(default_factory=_default_seed)

    @field_validator("uploads_mount")
    @classmethod
    def _normalize_mount(cls, value: str) -> str:
        cleaned = "/" + (value or "").strip().strip("/")
        if cleaned == "/":
            raise ValueError("uploads_mount must not be the site root")
        return cleaned

    @field_validator("seed_records", mode="before")
    @classmethod
    def _default_seed_records(cls, value: Any) -> Any:  # noqa: D401
        if value is None:
            return {}
        return value


class StorageSettings(BaseModel):
    provider: Literal["auto", "native", "s3", "local"] = "auto"
    key_id_env: str = "STORAGE_KEY_ID"
    secret_key_env: str = "STORAGE_SECRET_KEY"
    bucket_env: str = "STORAGE_BUCKET"
    public_base_url_env: str = "STORAGE_PUBLIC_BASE_URL"
    endpoint_env: str = "STORAGE_ENDPOINT"
    region_env: str = "STORAGE_REGION"
    native_api_url: str = "https://api.backblazeb2.com"
    prefix: str = ""
    timeout_seconds: float | None = 30.0

    @staticmethod
    def _env(name: str) -> str | None:
        value = (os.getenv(name) or "").strip()
        return value or None

    @property
    def key_id(self) -> str | None:
        return self._env(self.key_id_env)

    @property
    def secret_key(self) -> str | None:
        return self._env(self.secret_key_env)

    @property
    def bucket(self) -> str | None:
        return self._env(self.bucket_env)

    @property
    def public_base_url(self) -> str | None:
        value = self._env(self.public_base_url_env)
        return value.rstrip("/") if value else None

    @property
    def endpoint(self) -> str | None:
        return self._env(self.endpoint_env)

    @property
    def region(self) -> str | None:
        return self._env(self.region_env)

    @property
    def configured(self) -> bool:
        """True when the credentials and bucket needed by a cloud backend are all present."""
        return bool(self.key_id and self.secret_key and self.bucket)


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        """Load settings from YAML configuration file.

        Args:
            path: Optional path to configuration file. If not provided, uses
                DOCPROOF_CONFIG environment variable or defaults to config/default.yaml.

        Returns:
            Settings instance with loaded configuration. When no path was
            requested and the default file is absent, built-in defaults are used.

        Raises:
            FileNotFoundError: If an explicitly requested configuration file does not exist.
            ValueError: If configuration is invalid.
        """
        requested = path or (Path(os.environ["DOCPROOF_CONFIG"]) if os.getenv("DOCPROOF_CONFIG") else None)
        config_path = requested or DEFAULT_CONFIG_PATH
        if not config_path.exists():
            if requested is not None:
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return cls()
        with config_path.open("r", encoding="utf-8") as fp:
            payload = yaml.safe_load(fp) or {}
        try:
            return cls(**payload)
        except Exception as exc:
            raise ValueError(f"Invalid configuration: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings(path: str | None = None) -> Settings:
    return Settings.load(Path(path) if path else None)


__all__ = [
    "Settings",
    "ServerSettings",
    "StorageSettings",
    "SeedRecordConfig",
    "get_settings",
]
