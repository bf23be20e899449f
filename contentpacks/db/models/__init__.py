"""
Database models module.

Importing this package registers every table on Base.metadata, which both
init_db() and the alembic environment rely on.
"""
from contentpacks.db.models.user import User
from contentpacks.db.models.content_pack import ContentPack, ContentPackBackup, ContentPackStatus

__all__ = [
    "User",
    "ContentPack",
    "ContentPackBackup",
    "ContentPackStatus",
]
