"""
Primary/secondary repository wrapper.

Only RepositoryUnavailable from the primary sends a call to the secondary;
domain errors (not found, invalid pack, conflicts) propagate unchanged.
Writes that land on the secondary are not copied back to the primary.
"""
import logging
from typing import List, Optional

from contentpacks.core.errors import RepositoryUnavailable
from contentpacks.db.models.content_pack import ContentPackStatus
from contentpacks.repositories.base import ContentPackRepository
from contentpacks.schemas.content_pack import ContentPackRecord

logger = logging.getLogger(__name__)


class FallbackContentPackRepository(ContentPackRepository):

    def __init__(self, primary: ContentPackRepository, secondary: ContentPackRepository):
        self.primary = primary
        self.secondary = secondary

    def _call(self, operation: str, *args, **kwargs):
        try:
            return getattr(self.primary, operation)(*args, **kwargs)
        except RepositoryUnavailable as primary_error:
            logger.warning(
                f"Primary content pack storage unavailable, using fallback: "
                f"operation={operation}, error={primary_error.message}"
            )
            try:
                return getattr(self.secondary, operation)(*args, **kwargs)
            except RepositoryUnavailable as secondary_error:
                logger.error(
                    f"Fallback content pack storage unavailable: operation={operation}, "
                    f"error={secondary_error.message}"
                )
                raise RepositoryUnavailable() from secondary_error

    def find_by_id(self, pack_id: str) -> Optional[ContentPackRecord]:
        return self._call("find_by_id", pack_id)

    def list(
        self,
        status: Optional[ContentPackStatus] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[ContentPackRecord]:
        return self._call("list", status=status, limit=limit, offset=offset)

    def count(self, status: Optional[ContentPackStatus] = None) -> int:
        return self._call("count", status=status)

    def create(self, pack: ContentPackRecord) -> ContentPackRecord:
        return self._call("create", pack)

    def update(self, pack_id: str, **fields) -> ContentPackRecord:
        return self._call("update", pack_id, **fields)

    def find_active(self) -> Optional[ContentPackRecord]:
        return self._call("find_active")

    def set_active(self, pack_id: str, activated_by: Optional[str] = None) -> ContentPackRecord:
        return self._call("set_active", pack_id, activated_by=activated_by)

    def save_backup(self, pack: ContentPackRecord) -> str:
        return self._call("save_backup", pack)

    def find_backup(self, backup_id: str) -> Optional[ContentPackRecord]:
        return self._call("find_backup", backup_id)
