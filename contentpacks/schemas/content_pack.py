"""
Pydantic schemas for content packs.

``ContentPackDocument`` is the structural contract for an uploaded pack and
``parse`` is the pure entry point that turns an unstructured JSON value into
one, reporting every violated path at once. ``ContentPackRecord`` is the
storage-independent view both repository backends return.
"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field, ValidationError

from contentpacks.core.errors import SchemaError, SchemaIssue
from contentpacks.db.models.content_pack import ContentPackStatus

NonEmptyStr = Annotated[str, Field(min_length=1)]
Weight = Annotated[float, Field(ge=0, le=1)]


class ContentCategory(BaseModel):
    id: NonEmptyStr
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1, max_length=1000)
    weight: Weight
    criteria: List[NonEmptyStr] = Field(..., min_length=1)


class ContentQuestion(BaseModel):
    id: NonEmptyStr
    category_id: NonEmptyStr
    text: str = Field(..., min_length=1, max_length=2000)
    type: Literal["behavioral", "technical", "situational"]
    difficulty: Literal["easy", "medium", "hard"]
    time_limit: int = Field(..., ge=30, le=1800, description="Seconds allowed for the answer")
    tips: List[NonEmptyStr] = Field(..., min_length=1)


class EvaluationDimension(BaseModel):
    description: NonEmptyStr
    weight: Weight
    factors: List[NonEmptyStr] = Field(..., min_length=1)


class EvaluationCriteria(BaseModel):
    """The four fixed grading dimensions."""
    clarity: EvaluationDimension
    content: EvaluationDimension
    delivery: EvaluationDimension
    structure: EvaluationDimension


class ContentPackMetadata(BaseModel):
    author: str = Field(..., min_length=1, max_length=255)
    tags: List[NonEmptyStr] = Field(..., min_length=1)
    target_audience: List[NonEmptyStr] = Field(..., min_length=1)
    language: str = Field(..., min_length=2, max_length=10)
    created_at: datetime
    updated_at: datetime


class ContentPackData(BaseModel):
    description: str = Field(..., min_length=1, max_length=1000)
    categories: List[ContentCategory] = Field(..., min_length=1)
    questions: List[ContentQuestion] = Field(..., min_length=1)
    evaluation_criteria: EvaluationCriteria
    metadata: ContentPackMetadata


class ContentPackDocument(BaseModel):
    """Top-level shape of an uploaded content pack file."""
    name: str = Field(..., min_length=1, max_length=255)
    version: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=1000)
    schema_version: Optional[str] = Field(None, max_length=50)
    content: ContentPackData


def format_path(loc: Sequence[Union[str, int]]) -> str:
    """Render a location tuple as ``content.questions[2].tips[0]``."""
    path = ""
    for segment in loc:
        if isinstance(segment, int):
            path += f"[{segment}]"
        else:
            path = f"{path}.{segment}" if path else str(segment)
    return path or "root"


def _reference_issues(content: ContentPackData) -> List[SchemaIssue]:
    issues: List[SchemaIssue] = []

    category_ids = set()
    for index, category in enumerate(content.categories):
        if category.id in category_ids:
            issues.append(SchemaIssue(
                path=f"content.categories[{index}].id",
                message=f"Duplicate category id '{category.id}'",
            ))
        category_ids.add(category.id)

    question_ids = set()
    for index, question in enumerate(content.questions):
        if question.id in question_ids:
            issues.append(SchemaIssue(
                path=f"content.questions[{index}].id",
                message=f"Duplicate question id '{question.id}'",
            ))
        question_ids.add(question.id)

        if question.category_id not in category_ids:
            issues.append(SchemaIssue(
                path=f"content.questions[{index}].category_id",
                message=f"Unknown category '{question.category_id}'",
            ))

    return issues


def parse(raw: Any) -> ContentPackDocument:
    """
    Validate ``raw`` against the content pack contract.

    Raises:
        SchemaError: listing every violated field path and constraint.
    """
    try:
        document = ContentPackDocument.model_validate(raw)
    except ValidationError as e:
        raise SchemaError([
            SchemaIssue(path=format_path(error["loc"]), message=error["msg"])
            for error in e.errors()
        ]) from e

    issues = _reference_issues(document.content)
    if issues:
        raise SchemaError(issues)
    return document


class ContentPackRecord(BaseModel):
    """A persisted content pack, independent of the storage backend."""
    id: str
    name: str
    version: str
    description: Optional[str] = None
    schema_version: str = "1.0.0"
    content: Dict[str, Any]
    metadata: Optional[Dict[str, Any]] = None
    status: ContentPackStatus = ContentPackStatus.DRAFT
    is_active: bool = False
    uploaded_by: Optional[str] = None
    activated_by: Optional[str] = None
    file_size: int = 0
    checksum: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    activated_at: Optional[datetime] = None

    def to_document(self) -> Dict[str, Any]:
        """Rebuild the uploaded document shape so it can be re-validated."""
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "schema_version": self.schema_version,
            "content": self.content,
        }


class ContentPackSummary(BaseModel):
    """List view without the (potentially large) content body."""
    id: str
    name: str
    version: str
    description: Optional[str] = None
    status: ContentPackStatus
    is_active: bool
    question_count: int
    category_count: int
    created_at: datetime
    updated_at: datetime
    activated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, pack: ContentPackRecord) -> "ContentPackSummary":
        return cls(
            id=pack.id,
            name=pack.name,
            version=pack.version,
            description=pack.description,
            status=pack.status,
            is_active=pack.is_active,
            question_count=len(pack.content.get("questions", [])),
            category_count=len(pack.content.get("categories", [])),
            created_at=pack.created_at,
            updated_at=pack.updated_at,
            activated_at=pack.activated_at,
        )


class Pagination(BaseModel):
    limit: int
    offset: int
    total: int
    has_more: bool


class ContentPackListResponse(BaseModel):
    """Response schema for GET /content-packs."""
    data: List[ContentPackSummary]
    pagination: Pagination


class ContentPackResponse(BaseModel):
    data: Optional[ContentPackRecord] = None


class ActiveContentPackResponse(BaseModel):
    """Response schema for GET /content-packs/active."""
    data: Optional[ContentPackRecord] = None
    is_fallback: bool = False


class ActivateRequest(BaseModel):
    """Body of POST /content/activate."""
    pack_id: str = Field(..., alias="packId", min_length=1, strict=True)


class RollbackRequest(BaseModel):
    """Body of POST /content/rollback."""
    backup_id: str = Field(..., alias="backupId", min_length=1, strict=True)


class ActiveIdResponse(BaseModel):
    active_id: Optional[str] = Field(None, serialization_alias="activeId")


class ContentListResponse(BaseModel):
    """Response schema for GET /content/list."""
    active_id: Optional[str] = Field(None, serialization_alias="activeId")
    packs: List[ContentPackSummary]
