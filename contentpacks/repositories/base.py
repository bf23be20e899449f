"""
Content pack repository interface.
"""
import time
import uuid
from abc import ABC, abstractmethod
from typing import List, Optional

from contentpacks.db.models.content_pack import ContentPackStatus
from contentpacks.schemas.content_pack import ContentPackRecord

# Fields callers may change through update(); everything else is owned by the repository
UPDATABLE_FIELDS = {
    "name", "version", "description", "schema_version", "content", "metadata",
    "status", "is_active", "activated_by", "activated_at", "file_size", "checksum",
}


def make_backup_id(pack_id: str) -> str:
    return f"backup_{pack_id}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


class ContentPackRepository(ABC):
    """Abstract storage for content packs and their backups."""

    @abstractmethod
    def find_by_id(self, pack_id: str) -> Optional[ContentPackRecord]:
        """Return the pack, or None if no pack has this id."""
        pass

    @abstractmethod
    def list(
        self,
        status: Optional[ContentPackStatus] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[ContentPackRecord]:
        """Return packs newest first, optionally filtered by status."""
        pass

    @abstractmethod
    def count(self, status: Optional[ContentPackStatus] = None) -> int:
        pass

    @abstractmethod
    def create(self, pack: ContentPackRecord) -> ContentPackRecord:
        pass

    @abstractmethod
    def update(self, pack_id: str, **fields) -> ContentPackRecord:
        """
        Apply ``fields`` to a stored pack.

        Raises:
            NotFoundError: If the pack does not exist
        """
        pass

    @abstractmethod
    def find_active(self) -> Optional[ContentPackRecord]:
        """
        Return the single active pack, or None.

        Raises:
            ActivePackConflictError: If storage holds more than one active pack
        """
        pass

    @abstractmethod
    def set_active(self, pack_id: str, activated_by: Optional[str] = None) -> ContentPackRecord:
        """
        Make ``pack_id`` the only active pack.

        Any currently active pack goes back to ``valid``. The target must be
        ``valid`` at write time.

        Raises:
            NotFoundError: If the pack does not exist
            InvalidPackError: If the pack's status is not ``valid``
        """
        pass

    @abstractmethod
    def save_backup(self, pack: ContentPackRecord) -> str:
        """Store a snapshot of ``pack`` and return its backup id."""
        pass

    @abstractmethod
    def find_backup(self, backup_id: str) -> Optional[ContentPackRecord]:
        pass
