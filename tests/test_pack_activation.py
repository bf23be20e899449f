"""
Tests for ContentPackActivation.
"""
from concurrent.futures import ThreadPoolExecutor
from unittest import mock

import pytest

from contentpacks.core.errors import InvalidPackError, NotFoundError, RepositoryUnavailable
from contentpacks.db.models.content_pack import ContentPackBackup, ContentPackStatus
from contentpacks.repositories.filesystem_repository import FilesystemContentPackRepository
from contentpacks.repositories.sql_repository import SqlContentPackRepository
from contentpacks.services.idempotency_store import InMemoryIdempotencyStore
from contentpacks.services.default_pack import DEFAULT_PACK_ID, load_default_pack
from contentpacks.services.pack_activation import ContentPackActivation
from conftest import make_record


@pytest.fixture
def repository(session_factory):
    return SqlContentPackRepository(session_factory)


@pytest.fixture
def store():
    return InMemoryIdempotencyStore()


@pytest.fixture
def activation(repository, store):
    return ContentPackActivation(repository, store)


def backup_ids(session_factory):
    db = session_factory()
    try:
        return [row.id for row in db.query(ContentPackBackup).order_by(ContentPackBackup.created_at).all()]
    finally:
        db.close()


def test_activate_valid_pack(activation, repository):
    pack = repository.create(make_record())

    activated = activation.activate(pack.id, activated_by="42")

    assert activated.id == pack.id
    assert activated.status == ContentPackStatus.ACTIVE
    assert activation.active_pack_id == pack.id
    assert activation.get_active().activated_by == "42"


@pytest.mark.parametrize("status", [ContentPackStatus.INVALID, ContentPackStatus.DRAFT])
def test_activate_rejects_non_valid_pack(activation, repository, status):
    pack = repository.create(make_record(status=status))

    with pytest.raises(InvalidPackError) as exc_info:
        activation.activate(pack.id)

    assert exc_info.value.status == status.value
    assert activation.get_active() is None


def test_activate_unknown_pack(activation):
    with pytest.raises(NotFoundError):
        activation.activate("does-not-exist")


def test_activation_keeps_single_active_pack(activation, repository):
    packs = [repository.create(make_record()) for _ in range(4)]

    for pack in packs + [packs[1], packs[3]]:
        activation.activate(pack.id)
        assert sum(1 for p in repository.list() if p.is_active) == 1

    assert activation.active_pack_id == packs[3].id


def test_superseded_pack_is_backed_up(activation, repository, session_factory):
    first = repository.create(make_record())
    second = repository.create(make_record())

    activation.activate(first.id)
    assert backup_ids(session_factory) == []

    activation.activate(second.id)
    backups = backup_ids(session_factory)

    assert len(backups) == 1
    assert backups[0].startswith(f"backup_{first.id}_")
    assert repository.find_by_id(first.id).status == ContentPackStatus.VALID


def test_activating_active_pack_is_a_no_op(activation, repository, session_factory):
    pack = repository.create(make_record())
    activation.activate(pack.id)

    with mock.patch.object(repository, "set_active", wraps=repository.set_active) as set_active:
        again = activation.activate(pack.id)

    assert again.id == pack.id
    assert again.is_active is True
    set_active.assert_not_called()
    assert backup_ids(session_factory) == []


def test_duplicate_idempotency_key_does_not_rerun(activation, repository, store):
    first = repository.create(make_record())
    second = repository.create(make_record())

    activation.activate(first.id, idempotency_key="req-1")
    with mock.patch.object(repository, "set_active", wraps=repository.set_active) as set_active:
        result = activation.activate(second.id, idempotency_key="req-1")

    set_active.assert_not_called()
    assert result.id == first.id
    assert activation.active_pack_id == first.id
    assert store.exists("activate:req-1")


def test_failed_activation_releases_idempotency_key(activation, repository, store):
    invalid = repository.create(make_record(status=ContentPackStatus.INVALID))
    valid = repository.create(make_record())

    with pytest.raises(InvalidPackError):
        activation.activate(invalid.id, idempotency_key="req-2")

    assert not store.exists("activate:req-2")
    assert activation.activate(valid.id, idempotency_key="req-2").id == valid.id


def test_activation_hook_receives_active_pack(repository, store):
    hook = mock.Mock()
    activation = ContentPackActivation(repository, store, on_activate=hook)
    pack = repository.create(make_record())

    activation.activate(pack.id)

    hook.assert_called_once()
    assert hook.call_args[0][0].id == pack.id


def test_activation_hook_failure_is_swallowed(repository, store):
    activation = ContentPackActivation(repository, store, on_activate=mock.Mock(side_effect=RuntimeError("boom")))
    pack = repository.create(make_record())

    activated = activation.activate(pack.id)

    assert activated.is_active is True
    assert activation.active_pack_id == pack.id


def test_restore_unknown_backup(activation):
    with pytest.raises(NotFoundError) as exc_info:
        activation.restore("backup_missing_1")

    assert exc_info.value.message == "Backup not found"


def test_rollback_reactivates_backup(activation, repository, session_factory):
    first = repository.create(make_record())
    second = repository.create(make_record())
    activation.activate(first.id)
    activation.activate(second.id)
    backup_id = backup_ids(session_factory)[0]

    restored = activation.rollback(backup_id, activated_by="9")

    assert restored.id == first.id
    assert restored.is_active is True
    assert activation.active_pack_id == first.id
    assert repository.find_by_id(second.id).status == ContentPackStatus.VALID


def test_rollback_restores_snapshot_content(activation, repository, session_factory):
    first = repository.create(make_record())
    second = repository.create(make_record())
    activation.activate(first.id)
    activation.activate(second.id)
    backup_id = backup_ids(session_factory)[0]
    repository.update(first.id, name="Edited later", status=ContentPackStatus.INVALID)

    restored = activation.rollback(backup_id)

    assert restored.name == "Behavioral Interview Basics"
    assert restored.status == ContentPackStatus.ACTIVE


def test_rollback_of_active_pack_backs_up_current_content(activation, repository, session_factory):
    pack = repository.create(make_record())
    activation.activate(pack.id)
    backup_id = repository.save_backup(activation.get_active())
    repository.update(pack.id, name="Edited live")

    restored = activation.rollback(backup_id)

    assert restored.name == "Behavioral Interview Basics"
    assert restored.is_active is True
    undo_ids = [backup for backup in backup_ids(session_factory) if backup != backup_id]
    assert len(undo_ids) == 1
    assert repository.find_backup(undo_ids[0]).name == "Edited live"


def test_rollback_rejects_snapshot_that_no_longer_validates(activation, repository):
    broken = make_record(content={"questions": []})
    backup_id = repository.save_backup(broken)

    with pytest.raises(InvalidPackError):
        activation.rollback(backup_id)

    assert repository.find_by_id(broken.id).status == ContentPackStatus.INVALID
    assert activation.get_active() is None


def test_rollback_unknown_backup(activation):
    with pytest.raises(NotFoundError):
        activation.rollback("backup_missing_2")


def test_concurrent_activations_leave_one_active(tmp_path):
    repository = FilesystemContentPackRepository(tmp_path)
    activation = ContentPackActivation(repository, InMemoryIdempotencyStore())
    packs = [repository.create(make_record()) for _ in range(8)]

    with ThreadPoolExecutor(max_workers=8) as executor:
        list(executor.map(lambda pack: activation.activate(pack.id), packs))

    active = [pack for pack in repository.list() if pack.is_active]
    assert len(active) == 1
    assert activation.active_pack_id == active[0].id


@pytest.fixture
def default_pack():
    return load_default_pack()


def test_current_pack_falls_back_to_default(repository, store, default_pack):
    activation = ContentPackActivation(repository, store, default_pack=default_pack)

    current = activation.get_current()

    assert current.is_fallback is True
    assert current.pack.id == DEFAULT_PACK_ID
    assert activation.get_active() is None


def test_current_pack_prefers_active_pack(repository, store, default_pack):
    activation = ContentPackActivation(repository, store, default_pack=default_pack)
    pack = repository.create(make_record())
    activation.activate(pack.id)

    current = activation.get_current()

    assert current.is_fallback is False
    assert current.pack.id == pack.id


def test_current_pack_serves_default_when_storage_unavailable(repository, store, default_pack):
    activation = ContentPackActivation(repository, store, default_pack=default_pack)

    with mock.patch.object(repository, "find_active", side_effect=RepositoryUnavailable()):
        current = activation.get_current()

    assert current.is_fallback is True
    assert current.pack.id == DEFAULT_PACK_ID


def test_current_pack_without_default(activation, repository):
    assert activation.get_current().pack is None

    with mock.patch.object(repository, "find_active", side_effect=RepositoryUnavailable()):
        with pytest.raises(RepositoryUnavailable):
            activation.get_current()
