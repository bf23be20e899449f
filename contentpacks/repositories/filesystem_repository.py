"""
Filesystem-backed content pack repository.

One JSON document per pack under the storage root, keyed by pack id, and one
per backup under ``<root>/backups/``. Each file is replaced atomically; a
process-wide lock serializes writers inside this process only.
"""
import json
import logging
import os
import re
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Union

from pydantic import ValidationError

from contentpacks.core.errors import (
    ActivePackConflictError,
    InvalidPackError,
    NotFoundError,
    RepositoryUnavailable,
)
from contentpacks.db.models.content_pack import ContentPackStatus
from contentpacks.repositories.base import UPDATABLE_FIELDS, ContentPackRepository, make_backup_id
from contentpacks.schemas.content_pack import ContentPackRecord

logger = logging.getLogger(__name__)

SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class FilesystemContentPackRepository(ContentPackRepository):
    """
    Content packs stored as JSON files.

    Activation promotes the target before demoting the previous pack, so an
    interrupted write leaves two active packs, which find_active reports,
    rather than none.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.backup_dir = self.root / "backups"
        self._lock = threading.RLock()

    def _ensure_dirs(self):
        self.backup_dir.mkdir(parents=True, exist_ok=True)

    def _pack_path(self, pack_id: str) -> Optional[Path]:
        if not SAFE_ID.match(pack_id or ""):
            return None
        return self.root / f"{pack_id}.json"

    def _backup_path(self, backup_id: str) -> Optional[Path]:
        if not SAFE_ID.match(backup_id or ""):
            return None
        return self.backup_dir / f"{backup_id}.json"

    def _write(self, path: Path, pack: ContentPackRecord):
        try:
            self._ensure_dirs()
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(pack.model_dump_json(indent=2))
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            logger.error(f"Content pack file write failed: path={path}, error={e}")
            raise RepositoryUnavailable() from e

    def _read(self, path: Path) -> Optional[ContentPackRecord]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return ContentPackRecord.model_validate(json.load(f))
        except FileNotFoundError:
            return None
        except (ValueError, ValidationError) as e:
            logger.error(f"Corrupted content pack file: path={path}, error={e}")
            raise RepositoryUnavailable("Content pack storage is corrupted") from e
        except OSError as e:
            logger.error(f"Content pack file read failed: path={path}, error={e}")
            raise RepositoryUnavailable() from e

    def _iter_packs(self) -> Iterator[ContentPackRecord]:
        try:
            paths = sorted(self.root.glob("*.json")) if self.root.exists() else []
        except OSError as e:
            raise RepositoryUnavailable() from e
        for path in paths:
            if path.name.startswith("."):
                continue
            pack = self._read(path)
            if pack is not None:
                yield pack

    def find_by_id(self, pack_id: str) -> Optional[ContentPackRecord]:
        path = self._pack_path(pack_id)
        return self._read(path) if path else None

    def list(
        self,
        status: Optional[ContentPackStatus] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[ContentPackRecord]:
        packs = [
            pack for pack in self._iter_packs()
            if status is None or pack.status == ContentPackStatus(status)
        ]
        packs.sort(key=lambda pack: (pack.created_at, pack.id), reverse=True)
        end = offset + limit if limit is not None else None
        return packs[offset:end]

    def count(self, status: Optional[ContentPackStatus] = None) -> int:
        return len(self.list(status=status))

    def create(self, pack: ContentPackRecord) -> ContentPackRecord:
        path = self._pack_path(pack.id)
        if path is None:
            raise ValueError(f"Invalid content pack id: {pack.id}")
        with self._lock:
            self._write(path, pack)
        logger.info(f"Content pack stored on filesystem: pack_id={pack.id}, status={pack.status.value}")
        return pack

    def update(self, pack_id: str, **fields) -> ContentPackRecord:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update content pack fields: {', '.join(sorted(unknown))}")

        with self._lock:
            pack = self.find_by_id(pack_id)
            if pack is None:
                raise NotFoundError("Content pack not found")
            updated = ContentPackRecord.model_validate(
                {**pack.model_dump(), **fields, "updated_at": datetime.now(timezone.utc)}
            )
            self._write(self._pack_path(pack_id), updated)
            return updated

    def find_active(self) -> Optional[ContentPackRecord]:
        with self._lock:
            active = [pack for pack in self._iter_packs() if pack.is_active]
        if len(active) > 1:
            raise ActivePackConflictError([pack.id for pack in active])
        return active[0] if active else None

    def set_active(self, pack_id: str, activated_by: Optional[str] = None) -> ContentPackRecord:
        with self._lock:
            target = self.find_by_id(pack_id)
            if target is None:
                raise NotFoundError("Content pack not found")
            if target.status != ContentPackStatus.VALID:
                raise InvalidPackError(
                    f"Content pack must be valid to activate (status: {target.status.value})",
                    status=target.status.value,
                )

            now = datetime.now(timezone.utc)
            promoted = target.model_copy(update={
                "is_active": True,
                "status": ContentPackStatus.ACTIVE,
                "activated_at": now,
                "activated_by": activated_by,
                "updated_at": now,
            })
            self._write(self._pack_path(pack_id), promoted)

            for pack in self._iter_packs():
                if pack.is_active and pack.id != pack_id:
                    demoted = pack.model_copy(update={
                        "is_active": False,
                        "status": ContentPackStatus.VALID,
                        "updated_at": now,
                    })
                    self._write(self._pack_path(pack.id), demoted)

            logger.info(f"Content pack activated on filesystem: pack_id={pack_id}")
            return promoted

    def save_backup(self, pack: ContentPackRecord) -> str:
        backup_id = make_backup_id(pack.id)
        with self._lock:
            self._write(self._backup_path(backup_id), pack)
        logger.info(f"Content pack backup saved on filesystem: backup_id={backup_id}")
        return backup_id

    def find_backup(self, backup_id: str) -> Optional[ContentPackRecord]:
        path = self._backup_path(backup_id)
        return self._read(path) if path else None
