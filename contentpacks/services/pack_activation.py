"""
Content pack activation.

Switches which pack is in use, snapshots the pack being replaced so it can
be restored later, and de-duplicates retried requests through the
idempotency store. The active pack is always read back from the repository.
"""
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from contentpacks.core import config
from contentpacks.core.errors import (
    ActivationConflictError,
    ContentPackError,
    InvalidPackError,
    NotFoundError,
    RepositoryUnavailable,
)
from contentpacks.db.models.content_pack import ContentPackStatus
from contentpacks.repositories.base import ContentPackRepository
from contentpacks.schemas.content_pack import ContentPackRecord
from contentpacks.services.idempotency_store import IdempotencyStore
from contentpacks.services.pack_validator import ContentPackValidator

logger = logging.getLogger(__name__)

ActivationHook = Callable[[ContentPackRecord], None]


@dataclass
class CurrentPack:
    """The pack in use; ``is_fallback`` marks the built-in default pack."""
    pack: Optional[ContentPackRecord]
    is_fallback: bool = False


def track_content_pack_activated(pack: ContentPackRecord):
    """Default activation hook: record the switch in the application log."""
    logger.info(
        f"content_pack_activated: pack_id={pack.id}, name={pack.name}, version={pack.version}, "
        f"activated_by={pack.activated_by}"
    )


class ContentPackActivation:
    """
    Args:
        repository: Where packs live
        idempotency_store: De-duplicates activation requests that carry a key
        on_activate: Called with the newly active pack; failures are logged only
        validator: Used to re-check a pack restored from backup
        idempotency_ttl: Seconds an idempotency key stays claimed
        default_pack: Served by get_current when no pack is active
    """

    def __init__(
        self,
        repository: ContentPackRepository,
        idempotency_store: IdempotencyStore,
        on_activate: Optional[ActivationHook] = track_content_pack_activated,
        validator: Optional[ContentPackValidator] = None,
        idempotency_ttl: Optional[float] = None,
        default_pack: Optional[ContentPackRecord] = None,
    ):
        self.repository = repository
        self.idempotency_store = idempotency_store
        self.on_activate = on_activate
        self.validator = validator or ContentPackValidator()
        self.idempotency_ttl = idempotency_ttl or config.IDEMPOTENCY_TTL_SECONDS
        self.default_pack = default_pack

    @property
    def active_pack_id(self) -> Optional[str]:
        active = self.repository.find_active()
        return active.id if active else None

    def get_active(self) -> Optional[ContentPackRecord]:
        return self.repository.find_active()

    def get_current(self) -> CurrentPack:
        """
        Return the active pack, or the default pack when none is active.

        Unreadable storage also falls back to the default pack; without a
        default pack the storage error propagates.
        """
        try:
            active = self.repository.find_active()
        except RepositoryUnavailable as e:
            if self.default_pack is None:
                raise
            logger.warning(f"Content pack storage unavailable, serving default pack: error={e.message}")
            return CurrentPack(pack=self.default_pack, is_fallback=True)

        if active is not None:
            return CurrentPack(pack=active)
        if self.default_pack is not None:
            logger.info(f"No active content pack, serving default pack: pack_id={self.default_pack.id}")
            return CurrentPack(pack=self.default_pack, is_fallback=True)
        return CurrentPack(pack=None)

    def list(self) -> List[ContentPackRecord]:
        return self.repository.list()

    def activate(
        self,
        pack_id: str,
        activated_by: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> ContentPackRecord:
        """
        Make ``pack_id`` the active content pack.

        Args:
            pack_id: Pack to activate
            activated_by: User id recorded on the pack
            idempotency_key: Repeats of this key within the TTL do not re-run

        Returns:
            The active pack after the call

        Raises:
            NotFoundError: Unknown pack id
            InvalidPackError: Pack status is not ``valid``
        """
        if idempotency_key:
            store_key = f"activate:{idempotency_key}"
            if not self.idempotency_store.try_create(store_key, self.idempotency_ttl):
                logger.info(f"Duplicate activation request: idempotency_key={idempotency_key}, pack_id={pack_id}")
                active = self.repository.find_active()
                if active is None:
                    raise ActivationConflictError("An activation with this idempotency key is already in progress")
                return active
            try:
                return self._activate(pack_id, activated_by)
            except ContentPackError:
                # Failed attempts must stay retryable under the same key
                self.idempotency_store.release(store_key)
                raise

        return self._activate(pack_id, activated_by)

    def _activate(self, pack_id: str, activated_by: Optional[str]) -> ContentPackRecord:
        pack = self.repository.find_by_id(pack_id)
        if pack is None:
            raise NotFoundError("Content pack not found")
        if pack.is_active:
            logger.info(f"Content pack already active: pack_id={pack_id}")
            return pack
        if pack.status != ContentPackStatus.VALID:
            raise InvalidPackError(
                f"Content pack must be valid to activate (status: {pack.status.value})",
                status=pack.status.value,
            )

        previous = self.repository.find_active()
        if previous is not None:
            backup_id = self.repository.save_backup(previous)
            logger.info(f"Superseded content pack backed up: pack_id={previous.id}, backup_id={backup_id}")

        activated = self.repository.set_active(pack_id, activated_by=activated_by)
        self._run_hook(activated)
        return activated

    def _run_hook(self, pack: ContentPackRecord):
        if self.on_activate is None:
            return
        try:
            self.on_activate(pack)
        except Exception as e:
            logger.error(f"Activation hook failed: pack_id={pack.id}, error={e}", exc_info=True)

    def restore(self, backup_id: str) -> ContentPackRecord:
        """Return the pack snapshot stored under ``backup_id``."""
        snapshot = self.repository.find_backup(backup_id)
        if snapshot is None:
            raise NotFoundError("Backup not found")
        return snapshot

    def rollback(self, backup_id: str, activated_by: Optional[str] = None) -> ContentPackRecord:
        """
        Restore a backup and make it the active pack again.

        The snapshot's content is written back over the stored pack and
        re-validated before activation.

        Raises:
            NotFoundError: Unknown backup id
            InvalidPackError: The restored content no longer validates
        """
        snapshot = self.restore(backup_id)
        result = self.validator.validate(
            snapshot.to_document(),
            schema_version=snapshot.schema_version,
            content_pack_id=snapshot.id,
        )

        restored_fields = {
            "name": snapshot.name,
            "version": snapshot.version,
            "description": snapshot.description,
            "content": snapshot.content,
            "metadata": snapshot.metadata,
        }

        current = self.repository.find_by_id(snapshot.id)
        if current is None:
            current = self.repository.create(snapshot.model_copy(update={
                "is_active": False,
                "status": ContentPackStatus.VALIDATING,
                "activated_at": None,
                "activated_by": None,
            }))

        if not result.is_valid:
            if not current.is_active:
                self.repository.update(snapshot.id, status=ContentPackStatus.INVALID)
            raise InvalidPackError(
                f"Backup {backup_id} failed validation",
                status=ContentPackStatus.INVALID.value,
            )

        if current.is_active:
            undo_backup_id = self.repository.save_backup(current)
            logger.info(f"Active content pack backed up before rollback: pack_id={current.id}, backup_id={undo_backup_id}")
            restored = self.repository.update(snapshot.id, **restored_fields)
            logger.info(f"Rolled back active content pack in place: backup_id={backup_id}, pack_id={snapshot.id}")
            return restored

        self.repository.update(snapshot.id, status=ContentPackStatus.VALID, **restored_fields)
        logger.info(f"Rolling back to content pack: backup_id={backup_id}, pack_id={snapshot.id}")
        return self._activate(snapshot.id, activated_by)
