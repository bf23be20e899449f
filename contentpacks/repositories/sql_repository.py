"""
SQLAlchemy-backed content pack repository.

Activation is one transaction: demote the current active row, then promote
the target with a conditional UPDATE that only matches a ``valid`` row. The
partial unique index on ``is_active`` rejects a second concurrent winner.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from contentpacks.core.errors import (
    ActivationConflictError,
    ActivePackConflictError,
    ContentPackError,
    InternalError,
    InvalidPackError,
    NotFoundError,
    RepositoryUnavailable,
)
from contentpacks.db.models.content_pack import ContentPack, ContentPackBackup, ContentPackStatus
from contentpacks.repositories.base import UPDATABLE_FIELDS, ContentPackRepository, make_backup_id
from contentpacks.schemas.content_pack import ContentPackRecord

logger = logging.getLogger(__name__)


def _to_record(row: ContentPack) -> ContentPackRecord:
    return ContentPackRecord(
        id=row.id,
        name=row.name,
        version=row.version,
        description=row.description,
        schema_version=row.schema_version,
        content=row.content,
        metadata=row.metadata_json,
        status=ContentPackStatus(row.status),
        is_active=bool(row.is_active),
        uploaded_by=row.uploaded_by,
        activated_by=row.activated_by,
        file_size=row.file_size or 0,
        checksum=row.checksum,
        created_at=row.created_at,
        updated_at=row.updated_at,
        activated_at=row.activated_at,
    )


def _activation_conflict() -> ActivationConflictError:
    return ActivationConflictError("Another content pack activation is in progress")


def _column_values(fields: dict) -> dict:
    values = {}
    for key, value in fields.items():
        if key == "metadata":
            values["metadata_json"] = value
        elif key == "status":
            values["status"] = ContentPackStatus(value).value
        else:
            values[key] = value
    return values


class SqlContentPackRepository(ContentPackRepository):
    """
    Content packs stored in the ``content_packs`` table.

    Args:
        session_factory: Callable returning a new Session (usually SessionLocal)
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    @contextmanager
    def _session(self, conflict: Optional[ContentPackError] = None):
        """
        Session scope for one repository call.

        Args:
            conflict: Raised when a constraint rejects the write (default: InternalError)
        """
        db = self.session_factory()
        try:
            yield db
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Content pack write rejected by constraint: {e.orig}")
            raise (conflict or InternalError("Content pack storage rejected a conflicting write")) from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Content pack database error: {e}", exc_info=True)
            raise RepositoryUnavailable() from e
        finally:
            db.close()

    def find_by_id(self, pack_id: str) -> Optional[ContentPackRecord]:
        with self._session() as db:
            row = db.query(ContentPack).filter(ContentPack.id == pack_id).first()
            return _to_record(row) if row else None

    def list(
        self,
        status: Optional[ContentPackStatus] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[ContentPackRecord]:
        with self._session() as db:
            query = db.query(ContentPack)
            if status is not None:
                query = query.filter(ContentPack.status == ContentPackStatus(status).value)
            query = query.order_by(ContentPack.created_at.desc(), ContentPack.id).offset(offset)
            if limit is not None:
                query = query.limit(limit)
            return [_to_record(row) for row in query.all()]

    def count(self, status: Optional[ContentPackStatus] = None) -> int:
        with self._session() as db:
            query = db.query(ContentPack)
            if status is not None:
                query = query.filter(ContentPack.status == ContentPackStatus(status).value)
            return query.count()

    def create(self, pack: ContentPackRecord) -> ContentPackRecord:
        with self._session(_activation_conflict() if pack.is_active else None) as db:
            row = ContentPack(
                id=pack.id,
                name=pack.name,
                version=pack.version,
                description=pack.description,
                schema_version=pack.schema_version,
                content=pack.content,
                metadata_json=pack.metadata,
                status=pack.status.value,
                is_active=pack.is_active,
                uploaded_by=pack.uploaded_by,
                activated_by=pack.activated_by,
                file_size=pack.file_size,
                checksum=pack.checksum,
                created_at=pack.created_at,
                updated_at=pack.updated_at,
                activated_at=pack.activated_at,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            logger.info(f"Content pack stored: pack_id={row.id}, status={row.status}")
            return _to_record(row)

    def update(self, pack_id: str, **fields) -> ContentPackRecord:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update content pack fields: {', '.join(sorted(unknown))}")

        with self._session(_activation_conflict() if fields.get("is_active") else None) as db:
            row = db.query(ContentPack).filter(ContentPack.id == pack_id).first()
            if not row:
                raise NotFoundError("Content pack not found")
            for key, value in _column_values(fields).items():
                setattr(row, key, value)
            row.updated_at = datetime.now(timezone.utc)
            db.commit()
            db.refresh(row)
            return _to_record(row)

    def find_active(self) -> Optional[ContentPackRecord]:
        with self._session() as db:
            rows = db.query(ContentPack).filter(ContentPack.is_active.is_(True)).all()
            if len(rows) > 1:
                raise ActivePackConflictError([row.id for row in rows])
            return _to_record(rows[0]) if rows else None

    def set_active(self, pack_id: str, activated_by: Optional[str] = None) -> ContentPackRecord:
        with self._session(_activation_conflict()) as db:
            now = datetime.now(timezone.utc)

            demoted = db.query(ContentPack).filter(
                ContentPack.is_active.is_(True),
                ContentPack.id != pack_id,
            ).update(
                {"is_active": False, "status": ContentPackStatus.VALID.value, "updated_at": now},
                synchronize_session=False,
            )

            promoted = db.query(ContentPack).filter(
                ContentPack.id == pack_id,
                ContentPack.status == ContentPackStatus.VALID.value,
            ).update(
                {
                    "is_active": True,
                    "status": ContentPackStatus.ACTIVE.value,
                    "activated_at": now,
                    "activated_by": activated_by,
                    "updated_at": now,
                },
                synchronize_session=False,
            )

            if promoted != 1:
                db.rollback()
                row = db.query(ContentPack).filter(ContentPack.id == pack_id).first()
                if not row:
                    raise NotFoundError("Content pack not found")
                raise InvalidPackError(
                    f"Content pack must be valid to activate (status: {row.status})",
                    status=row.status,
                )

            db.commit()
            row = db.query(ContentPack).filter(ContentPack.id == pack_id).one()
            logger.info(f"Content pack activated: pack_id={pack_id}, demoted={demoted}")
            return _to_record(row)

    def save_backup(self, pack: ContentPackRecord) -> str:
        backup_id = make_backup_id(pack.id)
        with self._session() as db:
            db.add(ContentPackBackup(
                id=backup_id,
                pack_id=pack.id,
                snapshot=pack.model_dump(mode="json"),
            ))
            db.commit()
        logger.info(f"Content pack backup saved: backup_id={backup_id}")
        return backup_id

    def find_backup(self, backup_id: str) -> Optional[ContentPackRecord]:
        with self._session() as db:
            row = db.query(ContentPackBackup).filter(ContentPackBackup.id == backup_id).first()
            return ContentPackRecord.model_validate(row.snapshot) if row else None
