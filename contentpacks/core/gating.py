"""
Entitlement gating for content administration.

Content pack management requires the PRO entitlement level or an
administrative role.
"""
import logging
from fastapi import Depends, HTTPException, status
from contentpacks.core.auth_dependency import get_current_user_obj
from contentpacks.db.models.user import User

logger = logging.getLogger(__name__)

ADMIN_ROLES = ["admin", "content_admin"]


def get_entitlement_level(user: User) -> str:
    """Return "PRO" or "FREE"; unknown or missing values count as FREE."""
    level = (user.entitlement_level or "FREE").upper()
    return level if level in ["FREE", "PRO"] else "FREE"


def can_manage_content(user: User) -> bool:
    return get_entitlement_level(user) == "PRO" or user.role in ADMIN_ROLES


def require_content_admin(user: User = Depends(get_current_user_obj)) -> User:
    """FastAPI dependency: the caller may manage content packs."""
    if not can_manage_content(user):
        logger.warning(
            f"Content administration denied: user_id={user.id}, "
            f"entitlement={get_entitlement_level(user)}, role={user.role}"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="PRO entitlement required to manage content packs"
        )
    return user
