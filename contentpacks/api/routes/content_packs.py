"""
Content pack management endpoints.

All routes require the PRO entitlement level or an admin role.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Header, Query, UploadFile, status

from contentpacks.core.content_dependency import get_content_pack_activation, get_content_pack_service
from contentpacks.core.gating import require_content_admin
from contentpacks.db.models.content_pack import ContentPackStatus
from contentpacks.db.models.user import User
from contentpacks.schemas.content_pack import (
    ActiveContentPackResponse,
    ContentPackListResponse,
    ContentPackResponse,
    ContentPackSummary,
    Pagination,
)
from contentpacks.schemas.validation import ValidationResponse
from contentpacks.services.content_pack_service import ContentPackService
from contentpacks.services.pack_activation import ContentPackActivation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/content-packs", tags=["Content Packs"])


@router.get("", response_model=ContentPackListResponse)
def list_content_packs(
    status_filter: Optional[ContentPackStatus] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(require_content_admin),
    service: ContentPackService = Depends(get_content_pack_service),
):
    packs = service.list(status=status_filter, limit=limit, offset=offset)
    total = service.count(status=status_filter)
    return ContentPackListResponse(
        data=[ContentPackSummary.from_record(pack) for pack in packs],
        pagination=Pagination(limit=limit, offset=offset, total=total, has_more=offset + len(packs) < total),
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_content_pack(
    file: UploadFile = File(...),
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    user: User = Depends(require_content_admin),
    service: ContentPackService = Depends(get_content_pack_service),
):
    """
    Upload a content pack.

    Packs that fail validation are kept with status ``invalid`` so they can
    be fixed and re-validated; the validation result is returned either way.
    """
    outcome = service.upload(
        file.file.read(),
        filename=file.filename,
        content_type=file.content_type,
        uploaded_by=str(user.id),
        persist_invalid=True,
        name=name,
        description=description,
    )
    return {
        "data": outcome.pack,
        "validation": outcome.result,
        "file_notes": outcome.file_notes,
    }


@router.get("/active", response_model=ActiveContentPackResponse)
def get_active_content_pack(
    user: User = Depends(require_content_admin),
    activation: ContentPackActivation = Depends(get_content_pack_activation),
):
    """The active pack, or the built-in default pack flagged with ``is_fallback``."""
    current = activation.get_current()
    return ActiveContentPackResponse(data=current.pack, is_fallback=current.is_fallback)


@router.get("/{pack_id}", response_model=ContentPackResponse)
def get_content_pack(
    pack_id: str,
    user: User = Depends(require_content_admin),
    service: ContentPackService = Depends(get_content_pack_service),
):
    return ContentPackResponse(data=service.get(pack_id))


@router.post("/{pack_id}/validate", response_model=ValidationResponse)
def validate_content_pack(
    pack_id: str,
    user: User = Depends(require_content_admin),
    service: ContentPackService = Depends(get_content_pack_service),
):
    """Re-validate a stored pack and update its status."""
    result = service.revalidate(pack_id)
    logger.info(f"Content pack re-validated: pack_id={pack_id}, valid={result.is_valid}, user_id={user.id}")
    return ValidationResponse(data=result)


@router.post("/{pack_id}/activate", response_model=ContentPackResponse)
def activate_content_pack(
    pack_id: str,
    idempotency_key: Optional[str] = Header(None),
    user: User = Depends(require_content_admin),
    activation: ContentPackActivation = Depends(get_content_pack_activation),
):
    pack = activation.activate(pack_id, activated_by=str(user.id), idempotency_key=idempotency_key)
    return ContentPackResponse(data=pack)
