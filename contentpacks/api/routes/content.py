"""
Content loader endpoints: upload, activate, rollback and list.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Header, UploadFile

from contentpacks.core.content_dependency import get_content_pack_activation, get_content_pack_service
from contentpacks.core.errors import BadRequestError
from contentpacks.core.gating import require_content_admin
from contentpacks.db.models.user import User
from contentpacks.schemas.content_pack import (
    ActivateRequest,
    ActiveIdResponse,
    ContentListResponse,
    ContentPackSummary,
    RollbackRequest,
)
from contentpacks.schemas.validation import UploadResponse
from contentpacks.services.content_pack_service import ContentPackService
from contentpacks.services.pack_activation import ContentPackActivation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/content", tags=["Content"])


@router.post("/upload", response_model=UploadResponse)
def upload_content(
    file: UploadFile = File(...),
    user: User = Depends(require_content_admin),
    service: ContentPackService = Depends(get_content_pack_service),
):
    """Upload a content pack file; only packs that pass validation are stored."""
    raw = file.file.read()
    outcome = service.upload(
        raw,
        filename=file.filename,
        content_type=file.content_type,
        uploaded_by=str(user.id),
    )

    if not outcome.result.is_valid:
        messages = [f"{error.path}: {error.message}" for error in outcome.result.errors]
        raise BadRequestError(f"Validation failed: {', '.join(messages)}")

    return UploadResponse(
        valid=True,
        id=outcome.pack.id,
        version=outcome.pack.version,
        name=outcome.pack.name,
        timestamp=datetime.now(timezone.utc),
        warnings=outcome.result.warnings,
        performance=outcome.result.performance,
    )


@router.post("/activate", response_model=ActiveIdResponse)
def activate_content(
    request: ActivateRequest,
    idempotency_key: Optional[str] = Header(None),
    user: User = Depends(require_content_admin),
    activation: ContentPackActivation = Depends(get_content_pack_activation),
):
    pack = activation.activate(request.pack_id, activated_by=str(user.id), idempotency_key=idempotency_key)
    return ActiveIdResponse(active_id=pack.id)


@router.post("/rollback", response_model=ActiveIdResponse)
def rollback_content(
    request: RollbackRequest,
    user: User = Depends(require_content_admin),
    activation: ContentPackActivation = Depends(get_content_pack_activation),
):
    pack = activation.rollback(request.backup_id, activated_by=str(user.id))
    logger.info(f"Content rollback: backup_id={request.backup_id}, active_id={pack.id}, user_id={user.id}")
    return ActiveIdResponse(active_id=pack.id)


@router.get("/list", response_model=ContentListResponse)
def list_content(
    user: User = Depends(require_content_admin),
    activation: ContentPackActivation = Depends(get_content_pack_activation),
):
    packs = activation.list()
    return ContentListResponse(
        active_id=activation.active_pack_id,
        packs=[ContentPackSummary.from_record(pack) for pack in packs],
    )
