"""
ContentPack model for storing uploaded interview content packs.
"""
import enum
import uuid
from sqlalchemy import Column, String, Text, DateTime, Integer, Boolean, JSON, Index, text
from sqlalchemy.sql import func
from contentpacks.db.base import Base


class ContentPackStatus(str, enum.Enum):
    """Lifecycle states of a content pack."""
    DRAFT = "draft"
    VALIDATING = "validating"
    VALID = "valid"
    INVALID = "invalid"
    ACTIVE = "active"


def generate_pack_id() -> str:
    return str(uuid.uuid4())


class ContentPack(Base):
    """
    ContentPack model.

    ``content`` holds the validated document body (categories, questions,
    evaluation criteria, metadata). ``is_active`` is the authoritative
    "currently in use" flag; a partial unique index allows at most one
    row with ``is_active = true``.
    """
    __tablename__ = "content_packs"

    id = Column(String(36), primary_key=True, default=generate_pack_id)
    name = Column(String(255), nullable=False, index=True)
    version = Column(String(50), nullable=False, index=True)
    description = Column(Text, nullable=True)
    schema_version = Column(String(50), nullable=False, default="1.0.0")

    content = Column(JSON, nullable=False)
    metadata_json = Column("metadata", JSON, nullable=True)

    status = Column(String(20), nullable=False, default=ContentPackStatus.DRAFT.value, index=True)
    is_active = Column(Boolean, nullable=False, default=False)

    uploaded_by = Column(String(255), nullable=True, index=True)
    activated_by = Column(String(255), nullable=True)
    file_size = Column(Integer, nullable=False, default=0)
    checksum = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    activated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_content_packs_single_active",
            "is_active",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
        Index("idx_content_packs_status_created", "status", "created_at"),
    )

    def __repr__(self):
        return f"<ContentPack(id={self.id}, name='{self.name}', version='{self.version}', status='{self.status}')>"


class ContentPackBackup(Base):
    """Snapshot of a pack taken when a newer activation superseded it."""
    __tablename__ = "content_pack_backups"

    id = Column(String(100), primary_key=True)
    pack_id = Column(String(36), nullable=False, index=True)
    snapshot = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<ContentPackBackup(id={self.id}, pack_id={self.pack_id})>"
