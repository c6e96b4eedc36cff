from __future__ import annotations

import asyncio

import pytest

from core.exceptions import BackendUnavailableError
from core.settings import StorageSettings
from core.storage import BackendKind
from core.storage.local import LocalStorage
from core.storage.resolver import BackendResolver, default_connectors
from tests.utils_storage import FakeNativeApi, FakeStorage


@pytest.fixture
def local(tmp_path):
    return LocalStorage(tmp_path / "uploads")


@pytest.mark.asyncio()
async def test_without_connectors_local_disk_is_active(local):
    resolver = BackendResolver(local)
    assert not resolver.ready

    config = await resolver.resolve()

    assert resolver.ready
    assert not config.enabled
    assert config.kind is BackendKind.LOCAL
    assert config.error is None
    assert await resolver.backend() is local


@pytest.mark.asyncio()
async def test_concurrent_first_callers_share_one_resolution(local):
    release = asyncio.Event()
    calls = 0
    storage = FakeStorage()

    async def _slow_connector():
        nonlocal calls
        calls += 1
        await release.wait()
        return storage

    resolver = BackendResolver(local, [_slow_connector])
    pending = [asyncio.ensure_future(resolver.resolve()) for _ in range(5)]
    await asyncio.sleep(0)
    release.set()
    configs = await asyncio.gather(*pending)

    assert calls == 1
    assert resolver.attempts == 1
    assert all(config is configs[0] for config in configs)
    assert configs[0].enabled
    assert await resolver.backend() is storage


@pytest.mark.asyncio()
async def test_cancelled_caller_does_not_cancel_resolution(local):
    release = asyncio.Event()

    async def _slow_connector():
        await release.wait()
        return FakeStorage()

    resolver = BackendResolver(local, [_slow_connector])
    first = asyncio.ensure_future(resolver.resolve())
    await asyncio.sleep(0)
    first.cancel()
    release.set()

    config = await resolver.resolve()
    assert config.enabled
    assert resolver.attempts == 1


@pytest.mark.asyncio()
async def test_fallback_chain_uses_first_working_backend(local):
    async def _broken():
        raise BackendUnavailableError("native auth failed")

    s3 = FakeStorage(BackendKind.S3, bucket_name="docs", public_base_url="https://s3.example.test")

    async def _s3():
        return s3

    resolver = BackendResolver(local, [_broken, _s3])
    config = await resolver.resolve()

    assert config.enabled
    assert config.kind is BackendKind.S3
    assert config.bucket_name == "docs"
    assert config.public_base_url == "https://s3.example.test"


@pytest.mark.asyncio()
async def test_all_failures_fall_back_softly(local):
    async def _unavailable():
        raise BackendUnavailableError("bucket missing")

    async def _exploding():
        raise RuntimeError("boom")

    resolver = BackendResolver(local, [_unavailable, _exploding])
    config = await resolver.resolve()

    assert not config.enabled
    assert config.kind is BackendKind.LOCAL
    assert "bucket missing" in config.error
    assert "RuntimeError: boom" in config.error
    assert await resolver.backend() is local


@pytest.mark.asyncio()
async def test_native_auth_failure_resolves_to_local(local):
    api = FakeNativeApi(auth_ok=False)
    resolver = BackendResolver(local, [api.connector()])

    config = await resolver.resolve()

    assert not config.enabled
    assert await resolver.resolve() is config
    assert api.calls == ["b2_authorize_account"]


@pytest.mark.asyncio()
async def test_aclose_closes_active_backend(local):
    storage = FakeStorage()

    async def _connect():
        return storage

    resolver = BackendResolver(local, [_connect])
    await resolver.resolve()
    await resolver.aclose()
    assert storage.closed


def _configure(monkeypatch, **values):
    for name in ("STORAGE_KEY_ID", "STORAGE_SECRET_KEY", "STORAGE_BUCKET"):
        monkeypatch.delenv(name, raising=False)
    for name, value in values.items():
        monkeypatch.setenv(name, value)


def test_default_connectors_disabled_without_credentials(monkeypatch):
    _configure(monkeypatch, STORAGE_KEY_ID="key", STORAGE_BUCKET="docs")
    assert default_connectors(StorageSettings()) == []


def test_default_connectors_follow_provider(monkeypatch):
    _configure(monkeypatch, STORAGE_KEY_ID="key", STORAGE_SECRET_KEY="secret", STORAGE_BUCKET="docs")

    assert len(default_connectors(StorageSettings())) == 2
    assert len(default_connectors(StorageSettings(provider="native"))) == 1
    assert len(default_connectors(StorageSettings(provider="s3"))) == 1
    assert default_connectors(StorageSettings(provider="local")) == []
