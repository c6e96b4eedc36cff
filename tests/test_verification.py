from __future__ import annotations

import pytest

from core.exceptions import ClientInputError, NotFoundError
from core.records import Record, RecordStore
from core.storage.local import LocalStorage
from services.api.rendering import render_verification
from services.api.verification import VerificationService, VerificationStatus


@pytest.fixture
def service(tmp_path):
    records = RecordStore([Record(hash="123abc", display_name="report1.pdf")])
    return VerificationService(records, LocalStorage(tmp_path / "uploads"))


@pytest.mark.parametrize("value", [None, "", "   "])
def test_missing_hash_is_its_own_case(service, value):
    result = service.verify(value)
    assert result.status is VerificationStatus.MISSING_HASH
    assert not result.original


def test_unknown_hash_is_not_original(service):
    result = service.verify("deadbeef")
    assert result.status is VerificationStatus.NOT_ORIGINAL
    assert result.record is None
    assert "not original" in render_verification(result)


def test_seeded_record_is_original_without_link(service):
    result = service.verify("123abc")
    html = render_verification(result)

    assert result.original
    assert result.record.display_name == "report1.pdf"
    assert "report1.pdf" in html
    assert "/file?" not in html


def test_rendering_escapes_display_name_and_links_remote(service):
    service.records.put(
        Record(hash="h1", display_name="<script>x</script>.pdf", locator="https://cdn.example.test/docs/a.pdf")
    )
    html = render_verification(service.verify("h1"))

    assert "<script>" not in html
    assert "&lt;script&gt;" in html
    assert 'href="/file?hash=h1"' in html
    assert 'href="https://cdn.example.test/docs/a.pdf"' in html


@pytest.mark.asyncio()
async def test_fetch_artifact_errors(service):
    with pytest.raises(ClientInputError):
        await service.fetch_artifact(None)
    with pytest.raises(NotFoundError):
        await service.fetch_artifact("unknown")
    with pytest.raises(NotFoundError):
        await service.fetch_artifact("123abc")


@pytest.mark.asyncio()
async def test_fetch_artifact_remote_redirects(service):
    service.records.put(Record(hash="h1", display_name="a.pdf", locator="https://cdn.example.test/docs/a.pdf"))
    artifact = await service.fetch_artifact("h1")
    assert artifact.redirect_url == "https://cdn.example.test/docs/a.pdf"
    assert artifact.path is None


@pytest.mark.asyncio()
async def test_fetch_artifact_local_file(service):
    locator = await service.local.store("reports/a.pdf", b"%PDF", "application/pdf")
    service.records.put(Record(hash="h2", display_name="reports/a.pdf", locator=locator, mime_type="application/pdf"))

    artifact = await service.fetch_artifact("h2")

    assert artifact.redirect_url is None
    assert artifact.path.read_bytes() == b"%PDF"
    assert artifact.mime_type == "application/pdf"


@pytest.mark.asyncio()
async def test_fetch_artifact_local_file_removed(service):
    locator = await service.local.store("gone.pdf", b"x", "application/pdf")
    service.records.put(Record(hash="h3", display_name="gone.pdf", locator=locator))
    service.local.path_for(locator).unlink()

    with pytest.raises(NotFoundError):
        await service.fetch_artifact("h3")
