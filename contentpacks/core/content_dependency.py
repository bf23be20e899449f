"""
FastAPI dependencies wiring the content pack services.

The SQL repository is primary; the filesystem store under
CONTENT_PACK_STORAGE_PATH takes over when the database is unreachable.
"""
from functools import lru_cache
from fastapi import Depends

from contentpacks.core.config import CONTENT_PACK_STORAGE_PATH
from contentpacks.db.session import SessionLocal
from contentpacks.repositories.base import ContentPackRepository
from contentpacks.repositories.fallback_repository import FallbackContentPackRepository
from contentpacks.repositories.filesystem_repository import FilesystemContentPackRepository
from contentpacks.repositories.sql_repository import SqlContentPackRepository
from contentpacks.schemas.content_pack import ContentPackRecord
from contentpacks.services.content_pack_service import ContentPackService
from contentpacks.services.default_pack import get_default_pack
from contentpacks.services.idempotency_store import IdempotencyStore, get_idempotency_store
from contentpacks.services.pack_activation import ContentPackActivation
from contentpacks.services.pack_validator import ContentPackValidator


@lru_cache()
def get_content_pack_repository() -> ContentPackRepository:
    return FallbackContentPackRepository(
        primary=SqlContentPackRepository(SessionLocal),
        secondary=FilesystemContentPackRepository(CONTENT_PACK_STORAGE_PATH),
    )


@lru_cache()
def get_validator() -> ContentPackValidator:
    return ContentPackValidator()


def get_content_pack_service(
    repository: ContentPackRepository = Depends(get_content_pack_repository),
    validator: ContentPackValidator = Depends(get_validator),
) -> ContentPackService:
    return ContentPackService(repository, validator)


def get_content_pack_activation(
    repository: ContentPackRepository = Depends(get_content_pack_repository),
    store: IdempotencyStore = Depends(get_idempotency_store),
    validator: ContentPackValidator = Depends(get_validator),
    default_pack: ContentPackRecord = Depends(get_default_pack),
) -> ContentPackActivation:
    return ContentPackActivation(repository, store, validator=validator, default_pack=default_pack)
