"""
Health check endpoint for deployment monitoring.
"""
import logging
from datetime import datetime, timezone
from pathlib import Path
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from contentpacks.core.config import CONTENT_PACK_STORAGE_PATH, REDIS_URL
from contentpacks.core.content_dependency import get_content_pack_activation
from contentpacks.core.errors import ContentPackError
from contentpacks.db.session import SessionLocal
from contentpacks.services.idempotency_store import RedisIdempotencyStore, get_idempotency_store
from contentpacks.services.pack_activation import ContentPackActivation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


def _redis_status() -> str:
    if not REDIS_URL:
        return "not_configured"
    store = get_idempotency_store()
    if not isinstance(store, RedisIdempotencyStore):
        return "not_configured"
    try:
        store.redis_client.ping()
        return "connected"
    except Exception as e:
        logger.warning(f"Redis health check failed: {e}")
        return f"error: {str(e)}"


def _fallback_status(activation: ContentPackActivation) -> dict:
    try:
        current = activation.get_current()
    except ContentPackError as e:
        logger.warning(f"Content pack health check failed: {e.message}")
        return {"is_active": False, "pack_id": None, "error": e.message}
    return {
        "is_active": current.is_fallback,
        "pack_id": current.pack.id if current.pack else None,
    }


@router.get("")
def health_check(activation: ContentPackActivation = Depends(get_content_pack_activation)):
    """
    Health check endpoint for deployment monitoring.

    Returns 200 with "degraded" status when a dependency is down; the
    filesystem store keeps content packs available without the database.
    ``fallback.is_active`` is true while the built-in default pack is served.
    """
    status = "healthy"

    # Check database connectivity
    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        db_status = "connected"
    except SQLAlchemyError as e:
        db_status = f"error: {str(e)}"
        status = "degraded"

    redis_status = _redis_status()
    if redis_status.startswith("error"):
        status = "degraded"

    storage_path = Path(CONTENT_PACK_STORAGE_PATH)
    storage_status = "available" if storage_path.is_dir() else "not_initialized"
    fallback = _fallback_status(activation)

    return {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": db_status,
        "redis": redis_status,
        "filesystem_store": storage_status,
        "fallback": fallback,
        "version": "1.0.0",
    }
