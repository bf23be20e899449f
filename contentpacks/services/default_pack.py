"""
Built-in default content pack.

Served in place of an active pack when none has been activated, or when pack
storage cannot be read. It is loaded and validated once, at startup.
"""
import hashlib
import json
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from contentpacks.core import config
from contentpacks.core.errors import InternalError
from contentpacks.db.models.content_pack import ContentPackStatus
from contentpacks.schemas.content_pack import ContentPackRecord
from contentpacks.services.pack_validator import ContentPackValidator

logger = logging.getLogger(__name__)

DEFAULT_PACK_ID = "fallback-content-pack"
SYSTEM_USER = "system"


def load_default_pack(path: Optional[str] = None, validator: Optional[ContentPackValidator] = None) -> ContentPackRecord:
    """
    Read and validate the bundled default pack.

    Raises:
        InternalError: The file is missing, not JSON, or fails validation
    """
    path = path or config.DEFAULT_CONTENT_PACK_PATH
    try:
        with open(path, "rb") as f:
            raw = f.read()
        document = json.loads(raw)
    except (OSError, ValueError) as e:
        logger.error(f"Default content pack unreadable: path={path}, error={e}")
        raise InternalError("Default content pack is unavailable") from e

    result = (validator or ContentPackValidator()).validate(document, content_pack_id=DEFAULT_PACK_ID)
    if not result.is_valid:
        messages = ", ".join(f"{error.path}: {error.message}" for error in result.errors)
        logger.error(f"Default content pack failed validation: path={path}, errors={messages}")
        raise InternalError("Default content pack failed validation")

    now = datetime.now(timezone.utc)
    pack = ContentPackRecord(
        id=DEFAULT_PACK_ID,
        name=document["name"],
        version=document["version"],
        description=document.get("description"),
        schema_version=result.schema_version,
        content=document["content"],
        metadata=document["content"]["metadata"],
        status=ContentPackStatus.ACTIVE,
        is_active=True,
        uploaded_by=SYSTEM_USER,
        activated_by=SYSTEM_USER,
        file_size=len(raw),
        checksum=hashlib.sha256(raw).hexdigest(),
        created_at=now,
        updated_at=now,
        activated_at=now,
    )
    logger.info(f"Default content pack loaded: name={pack.name}, version={pack.version}")
    return pack


@lru_cache()
def get_default_pack() -> ContentPackRecord:
    return load_default_pack()
