"""
Tests for ContentPackService upload and re-validation.
"""
import hashlib
import json

import pytest

from contentpacks.core.errors import BadRequestError, NotFoundError
from contentpacks.db.models.content_pack import ContentPackStatus
from contentpacks.repositories.sql_repository import SqlContentPackRepository
from contentpacks.services.content_pack_service import ContentPackService
from contentpacks.services.idempotency_store import InMemoryIdempotencyStore
from contentpacks.services.pack_activation import ContentPackActivation
from conftest import make_pack_document


@pytest.fixture
def repository(session_factory):
    return SqlContentPackRepository(session_factory)


@pytest.fixture
def service(repository):
    return ContentPackService(repository)


def encode(document) -> bytes:
    return json.dumps(document).encode("utf-8")


def test_upload_valid_pack(service, repository):
    raw = encode(make_pack_document())

    outcome = service.upload(raw, filename="pack.json", uploaded_by="5")

    assert outcome.result.is_valid is True
    assert outcome.pack.status == ContentPackStatus.VALID
    assert outcome.pack.uploaded_by == "5"
    assert outcome.pack.file_size == len(raw)
    assert outcome.pack.checksum == hashlib.sha256(raw).hexdigest()
    assert outcome.pack.metadata["language"] == "en"
    assert outcome.result.content_pack_id == outcome.pack.id
    assert repository.find_by_id(outcome.pack.id) is not None


def test_upload_invalid_json(service):
    with pytest.raises(BadRequestError) as exc_info:
        service.upload(b"{not json", filename="pack.json")

    assert exc_info.value.message == "Invalid JSON file"


def test_upload_failing_pack_is_not_stored_by_default(service, repository):
    document = make_pack_document()
    document["content"]["questions"] = []

    outcome = service.upload(encode(document), filename="pack.json")

    assert outcome.pack is None
    assert outcome.result.is_valid is False
    assert repository.count() == 0


def test_upload_failing_pack_can_be_kept_as_invalid(service):
    document = make_pack_document()
    document["content"]["questions"][0]["text"] = "<script>alert(1)</script>"

    outcome = service.upload(encode(document), filename="pack.json", persist_invalid=True)

    assert outcome.pack.status == ContentPackStatus.INVALID
    assert outcome.result.errors[0].code == "SECURITY_VIOLATION"


def test_upload_overrides_name_and_description(service):
    outcome = service.upload(encode(make_pack_document()), name="Renamed", description="Fresh description")

    assert outcome.pack.name == "Renamed"
    assert outcome.pack.description == "Fresh description"


def test_revalidate_marks_pack_valid(service, repository):
    outcome = service.upload(encode(make_pack_document()), persist_invalid=True)
    repository.update(outcome.pack.id, status=ContentPackStatus.DRAFT)

    result = service.revalidate(outcome.pack.id)

    assert result.is_valid is True
    assert repository.find_by_id(outcome.pack.id).status == ContentPackStatus.VALID


def test_revalidate_keeps_healthy_active_pack_active(service, repository):
    pack = service.upload(encode(make_pack_document())).pack
    ContentPackActivation(repository, InMemoryIdempotencyStore()).activate(pack.id)

    result = service.revalidate(pack.id)

    stored = repository.find_by_id(pack.id)
    assert result.is_valid is True
    assert stored.is_active is True
    assert stored.status == ContentPackStatus.ACTIVE


def test_revalidate_demotes_broken_active_pack(service, repository):
    pack = service.upload(encode(make_pack_document())).pack
    ContentPackActivation(repository, InMemoryIdempotencyStore()).activate(pack.id)
    broken = dict(pack.content, questions=[])
    repository.update(pack.id, content=broken)

    result = service.revalidate(pack.id)

    stored = repository.find_by_id(pack.id)
    assert result.is_valid is False
    assert stored.is_active is False
    assert stored.status == ContentPackStatus.INVALID


def test_get_unknown_pack(service):
    with pytest.raises(NotFoundError):
        service.get("does-not-exist")
