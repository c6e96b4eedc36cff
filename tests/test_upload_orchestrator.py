from __future__ import annotations

import pytest

from core.exceptions import ClientInputError, StorageWriteError
from core.hashing import digest
from core.records import RecordStore
from core.storage.local import LocalStorage
from core.storage.resolver import BackendResolver
from services.api.uploads import UploadOrchestrator
from tests.utils_storage import FakeStorage, write_failure


def _orchestrator(tmp_path, connectors=()):
    local = LocalStorage(tmp_path / "uploads")
    records = RecordStore()
    return UploadOrchestrator(records, BackendResolver(local, connectors), local), records


@pytest.mark.asyncio()
async def test_hash_is_derived_from_content(tmp_path):
    orchestrator, records = _orchestrator(tmp_path)
    result = await orchestrator.handle_upload(b"document", filename="a.pdf", base_url="http://test/")

    assert result.hash == digest(b"document")
    assert result.display_name == "a.pdf"
    assert result.file_url == "http://test/uploads/a.pdf"
    assert result.mime_type == "application/octet-stream"
    assert result.size == 8
    assert records.get(result.hash).locator == "a.pdf"


@pytest.mark.asyncio()
async def test_client_hash_wins_regardless_of_content(tmp_path):
    orchestrator, records = _orchestrator(tmp_path)
    result = await orchestrator.handle_upload(b"document", filename="a.pdf", hash_value=" abc123 ")

    assert result.hash == "abc123"
    assert "abc123" in records
    assert digest(b"document") not in records


@pytest.mark.asyncio()
async def test_target_name_overrides_filename(tmp_path):
    orchestrator, records = _orchestrator(tmp_path)
    result = await orchestrator.handle_upload(
        b"document",
        filename="scan.pdf",
        target_name="reports/2024/final.pdf",
        declared_mime="application/pdf",
    )
    assert result.display_name == "reports/2024/final.pdf"
    assert (tmp_path / "uploads" / "reports" / "2024" / "final.pdf").exists()
    assert records.get(result.hash).mime_type == "application/pdf"


@pytest.mark.asyncio()
async def test_name_falls_back_to_hash(tmp_path):
    orchestrator, _ = _orchestrator(tmp_path)
    result = await orchestrator.handle_upload(b"document")
    assert result.display_name == result.hash


@pytest.mark.asyncio()
async def test_same_hash_twice_keeps_one_record(tmp_path):
    orchestrator, records = _orchestrator(tmp_path)
    await orchestrator.handle_upload(b"one", filename="first.pdf", hash_value="h")
    await orchestrator.handle_upload(b"one", filename="second.pdf", hash_value="h")

    assert len(records) == 1
    assert records.get("h").display_name == "second.pdf"
    assert records.get("h").locator == "second.pdf"


@pytest.mark.asyncio()
@pytest.mark.parametrize("data", [None, b""])
async def test_empty_upload_is_rejected(tmp_path, data):
    orchestrator, records = _orchestrator(tmp_path)
    with pytest.raises(ClientInputError):
        await orchestrator.handle_upload(data, filename="a.pdf")
    assert len(records) == 0


@pytest.mark.asyncio()
async def test_cloud_backend_receives_upload(tmp_path):
    storage = FakeStorage()

    async def _connect():
        return storage

    orchestrator, records = _orchestrator(tmp_path, [_connect])
    result = await orchestrator.handle_upload(b"doc", filename="a.pdf", hash_value="h")

    assert storage.stored == {"a.pdf": b"doc"}
    assert result.file_url == "https://cdn.example.test/docs/a.pdf"
    assert records.get("h").is_remote


@pytest.mark.asyncio()
async def test_failed_store_commits_nothing(tmp_path):
    async def _connect():
        return FakeStorage(fail_with=write_failure())

    orchestrator, records = _orchestrator(tmp_path, [_connect])
    with pytest.raises(StorageWriteError):
        await orchestrator.handle_upload(b"doc", filename="a.pdf", hash_value="h")
    assert "h" not in records


@pytest.mark.asyncio()
async def test_name_held_by_another_hash_is_rejected(tmp_path):
    orchestrator, records = _orchestrator(tmp_path)
    first = await orchestrator.handle_upload(b"AAAA", filename="r.pdf")

    with pytest.raises(ClientInputError) as excinfo:
        await orchestrator.handle_upload(b"BBBB", filename="r.pdf")

    assert excinfo.value.details["hash"] == first.hash
    assert (tmp_path / "uploads" / "r.pdf").read_bytes() == b"AAAA"
    assert len(records) == 1


@pytest.mark.asyncio()
async def test_cloud_name_held_by_another_hash_is_rejected(tmp_path):
    storage = FakeStorage()

    async def _connect():
        return storage

    orchestrator, records = _orchestrator(tmp_path, [_connect])
    await orchestrator.handle_upload(b"one", filename="a.pdf", hash_value="h1")
    with pytest.raises(ClientInputError):
        await orchestrator.handle_upload(b"two", filename="a.pdf", hash_value="h2")

    assert storage.stored == {"a.pdf": b"one"}
    assert "h2" not in records
