"""
Content pack upload and lifecycle service.

Handles file checks, JSON decoding, validation, persistence and
re-validation of stored packs. Activation lives in pack_activation.
"""
import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from contentpacks.core.errors import BadRequestError, NotFoundError
from contentpacks.db.models.content_pack import ContentPackStatus, generate_pack_id
from contentpacks.repositories.base import ContentPackRepository
from contentpacks.schemas.content_pack import ContentPackRecord
from contentpacks.schemas.validation import ValidationResult
from contentpacks.services.pack_validator import ContentPackValidator

logger = logging.getLogger(__name__)


@dataclass
class UploadOutcome:
    """Result of an upload: the stored pack (if any) and its validation."""
    result: ValidationResult
    pack: Optional[ContentPackRecord] = None
    file_notes: List[str] = field(default_factory=list)


class ContentPackService:

    def __init__(self, repository: ContentPackRepository, validator: Optional[ContentPackValidator] = None):
        self.repository = repository
        self.validator = validator or ContentPackValidator()

    def get(self, pack_id: str) -> ContentPackRecord:
        pack = self.repository.find_by_id(pack_id)
        if pack is None:
            raise NotFoundError("Content pack not found")
        return pack

    def list(
        self,
        status: Optional[ContentPackStatus] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[ContentPackRecord]:
        return self.repository.list(status=status, limit=limit, offset=offset)

    def count(self, status: Optional[ContentPackStatus] = None) -> int:
        return self.repository.count(status=status)

    def upload(
        self,
        raw_bytes: bytes,
        filename: Optional[str] = None,
        content_type: Optional[str] = "application/json",
        uploaded_by: Optional[str] = None,
        persist_invalid: bool = False,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> UploadOutcome:
        """
        Validate an uploaded pack file and store it.

        Args:
            raw_bytes: File contents
            filename: Original file name
            content_type: MIME type reported by the client
            uploaded_by: User id of the uploader
            persist_invalid: Store failing packs with status ``invalid`` instead of dropping them
            name: Overrides the document's name
            description: Overrides the document's description

        Returns:
            UploadOutcome; ``pack`` is None when validation failed and
            ``persist_invalid`` is False

        Raises:
            BadRequestError: Wrong file type, file too large or not JSON
        """
        notes = self.validator.validate_file(filename, content_type, len(raw_bytes))

        try:
            document = json.loads(raw_bytes)
        except (ValueError, UnicodeDecodeError) as e:
            logger.info(f"Rejected content pack upload: filename={filename}, reason=invalid_json, error={e}")
            raise BadRequestError("Invalid JSON file") from e

        if isinstance(document, dict):
            if name:
                document["name"] = name
            if description:
                document["description"] = description

        pack_id = generate_pack_id()
        result = self.validator.validate(document, content_pack_id=pack_id)

        if not result.is_valid and not persist_invalid:
            logger.info(
                f"Content pack upload failed validation: filename={filename}, errors={len(result.errors)}"
            )
            return UploadOutcome(result=result, file_notes=notes)

        body = document if isinstance(document, dict) else {}
        content = body.get("content") if isinstance(body.get("content"), dict) else {}
        now = datetime.now(timezone.utc)

        pack = self.repository.create(ContentPackRecord(
            id=pack_id,
            name=str(body.get("name") or filename or "Untitled content pack")[:255],
            version=str(body.get("version") or "0.0.0")[:50],
            description=body.get("description") if isinstance(body.get("description"), str) else None,
            schema_version=result.schema_version,
            content=content,
            metadata=content.get("metadata") if isinstance(content.get("metadata"), dict) else None,
            status=ContentPackStatus.VALID if result.is_valid else ContentPackStatus.INVALID,
            uploaded_by=uploaded_by,
            file_size=len(raw_bytes),
            checksum=hashlib.sha256(raw_bytes).hexdigest(),
            created_at=now,
            updated_at=now,
        ))

        logger.info(
            f"Content pack uploaded: pack_id={pack.id}, name={pack.name}, version={pack.version}, "
            f"status={pack.status.value}, uploaded_by={uploaded_by}"
        )
        return UploadOutcome(result=result, pack=pack, file_notes=notes)

    def revalidate(self, pack_id: str) -> ValidationResult:
        """
        Re-run validation on a stored pack and update its status.

        An active pack that still validates stays active; one that fails is
        demoted to ``invalid``.
        """
        pack = self.get(pack_id)

        if not pack.is_active:
            self.repository.update(pack_id, status=ContentPackStatus.VALIDATING)

        result = self.validator.validate(
            pack.to_document(),
            schema_version=pack.schema_version,
            content_pack_id=pack.id,
        )

        if pack.is_active:
            if not result.is_valid:
                self.repository.update(pack_id, status=ContentPackStatus.INVALID, is_active=False)
                logger.warning(f"Active content pack failed re-validation and was deactivated: pack_id={pack_id}")
        else:
            self.repository.update(
                pack_id,
                status=ContentPackStatus.VALID if result.is_valid else ContentPackStatus.INVALID,
            )

        return result
