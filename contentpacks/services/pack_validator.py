"""
Content pack validation service.

Runs the schema parse, the security scan and the quality/scale heuristics
over an uploaded document and reports everything as a ValidationResult.
Rule violations are returned as data; only unexpected failures raise.
"""
import logging
import re
import time
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, List, Optional, Tuple

from contentpacks.core import config
from contentpacks.core.errors import BadRequestError, SchemaError, SecurityViolation
from contentpacks.schemas.content_pack import ContentPackDocument, parse
from contentpacks.schemas.validation import (
    PerformanceMetrics,
    ValidationIssue,
    ValidationResult,
    ValidationWarning,
)

logger = logging.getLogger(__name__)

SCRIPT_PATTERN = re.compile(r"<\s*script|javascript\s*:", re.IGNORECASE)
EVENT_HANDLER_PATTERN = re.compile(r"<[^>]*\son[a-z]+\s*=", re.IGNORECASE)

ALLOWED_FILE_TYPES = ["application/json"]

WEIGHT_DRIFT_TOLERANCE = 0.1
CRITERIA_WEIGHT_TOLERANCE = 0.01
MIN_QUESTION_LENGTH = 10
MAX_EASY_RATIO = 0.7
MAX_HARD_RATIO = 0.5


def iter_strings(value: Any, path: str = "") -> Iterator[Tuple[str, str]]:
    """Yield ``(path, text)`` for every string nested anywhere in ``value``."""
    if isinstance(value, str):
        yield path or "root", value
    elif isinstance(value, dict):
        for key, item in value.items():
            yield from iter_strings(item, f"{path}.{key}" if path else str(key))
    elif isinstance(value, list):
        for index, item in enumerate(value):
            yield from iter_strings(item, f"{path}[{index}]")


def is_unsafe_text(text: str) -> bool:
    return bool(SCRIPT_PATTERN.search(text) or EVENT_HANDLER_PATTERN.search(text))


class ContentPackValidator:
    """
    Validates content pack documents.

    Args:
        supported_versions: Schema versions this deployment understands
        target_ms: Validation time budget reported in the performance block
        max_questions: Question count above which EXCESSIVE_SIZE is warned
        max_categories: Category count above which EXCESSIVE_SIZE is warned
        clock: Monotonic clock returning seconds (injectable for tests)
    """

    def __init__(
        self,
        supported_versions: Optional[List[str]] = None,
        target_ms: Optional[float] = None,
        max_questions: Optional[int] = None,
        max_categories: Optional[int] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.supported_versions = supported_versions or list(config.SUPPORTED_SCHEMA_VERSIONS)
        self.target_ms = target_ms if target_ms is not None else config.VALIDATION_TARGET_MS
        self.max_questions = max_questions if max_questions is not None else config.MAX_QUESTIONS_WARNING
        self.max_categories = max_categories if max_categories is not None else config.MAX_CATEGORIES_WARNING
        self.clock = clock

    def validate(
        self,
        content: Any,
        schema_version: Optional[str] = None,
        content_pack_id: Optional[str] = None,
    ) -> ValidationResult:
        """
        Validate a raw (already JSON-decoded) content pack document.

        Args:
            content: Decoded document
            schema_version: Overrides the document's own ``schema_version``
            content_pack_id: Stored pack id, echoed in the result

        Returns:
            ValidationResult; ``is_valid`` is True exactly when there are no errors
        """
        started = self.clock()

        if schema_version is None and isinstance(content, dict):
            schema_version = content.get("schema_version")
        schema_version = schema_version or config.DEFAULT_SCHEMA_VERSION

        errors: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []

        if schema_version not in self.supported_versions:
            errors.append(ValidationIssue(
                path="schema_version",
                message=(
                    f"Unsupported schema version: {schema_version}. "
                    f"Supported versions: {', '.join(self.supported_versions)}"
                ),
                code="UNSUPPORTED_SCHEMA_VERSION",
            ))
        else:
            document = None
            try:
                document = parse(content)
            except SchemaError as e:
                errors.extend(
                    ValidationIssue(path=issue.path, message=issue.message, code=issue.code)
                    for issue in e.issues
                )

            # Scan the raw value so unsafe text is caught even when the schema fails
            errors.extend(self._security_issues(content))
            warnings.extend(self._size_warnings(content))
            if document is not None:
                warnings.extend(self._quality_warnings(document))

        duration = round((self.clock() - started) * 1000, 2)
        result = ValidationResult(
            content_pack_id=content_pack_id,
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            schema_version=schema_version,
            validated_at=datetime.now(timezone.utc),
            performance=PerformanceMetrics(
                duration=duration,
                target=self.target_ms,
                target_met=duration <= self.target_ms,
            ),
        )

        logger.info(
            f"Content pack validated: pack_id={content_pack_id}, valid={result.is_valid}, "
            f"errors={len(errors)}, warnings={len(warnings)}, duration_ms={duration}"
        )
        if not result.performance.target_met:
            logger.warning(
                f"Content pack validation exceeded target: duration_ms={duration}, target_ms={self.target_ms}"
            )
        return result

    def validate_file(self, filename: Optional[str], content_type: Optional[str], size: int) -> List[str]:
        """
        Check an upload's type and size before it is parsed.

        Returns:
            Non-fatal notes about the file (e.g. missing .json extension)

        Raises:
            BadRequestError: If the MIME type is not allowed or the file is too large
        """
        problems = []
        media_type = (content_type or "").split(";")[0].strip().lower()
        if media_type not in ALLOWED_FILE_TYPES:
            problems.append(
                f"Invalid file type: {content_type}. Allowed types: {', '.join(ALLOWED_FILE_TYPES)}"
            )
        if size > config.MAX_UPLOAD_BYTES:
            problems.append(f"File too large: {size} bytes. Maximum allowed: {config.MAX_UPLOAD_BYTES} bytes")
        if problems:
            raise BadRequestError(", ".join(problems))

        notes = []
        if not (filename or "").lower().endswith(".json"):
            notes.append("File does not have .json extension")
        return notes

    def _security_issues(self, content: Any) -> List[ValidationIssue]:
        return [
            ValidationIssue(
                path=path,
                message="Potentially unsafe content detected (script, javascript: URL or inline event handler)",
                code=SecurityViolation.code,
            )
            for path, text in iter_strings(content)
            if is_unsafe_text(text)
        ]

    def _size_warnings(self, content: Any) -> List[ValidationWarning]:
        body = content.get("content") if isinstance(content, dict) else None
        if not isinstance(body, dict):
            return []

        warnings = []
        questions = body.get("questions")
        if isinstance(questions, list) and len(questions) > self.max_questions:
            warnings.append(ValidationWarning(
                path="content.questions",
                message=f"Too many questions: {len(questions)} (recommended maximum {self.max_questions})",
                code="EXCESSIVE_SIZE",
                suggestion="Consider splitting this pack into several smaller packs",
            ))
        categories = body.get("categories")
        if isinstance(categories, list) and len(categories) > self.max_categories:
            warnings.append(ValidationWarning(
                path="content.categories",
                message=f"Too many categories: {len(categories)} (recommended maximum {self.max_categories})",
                code="EXCESSIVE_SIZE",
                suggestion="Consider merging related categories",
            ))
        return warnings

    def _quality_warnings(self, document: ContentPackDocument) -> List[ValidationWarning]:
        content = document.content
        warnings = []

        category_weight = sum(category.weight for category in content.categories)
        if abs(category_weight - 1.0) > WEIGHT_DRIFT_TOLERANCE:
            warnings.append(ValidationWarning(
                path="content.categories",
                message=f"Category weights sum to {category_weight:.2f}",
                code="WEIGHT_DRIFT",
                suggestion="Category weights should add up to 1.0",
            ))

        criteria = content.evaluation_criteria
        criteria_weight = sum(
            dimension.weight
            for dimension in (criteria.clarity, criteria.content, criteria.delivery, criteria.structure)
        )
        if abs(criteria_weight - 1.0) > CRITERIA_WEIGHT_TOLERANCE:
            warnings.append(ValidationWarning(
                path="content.evaluation_criteria",
                message=f"Evaluation criteria weights sum to {criteria_weight:.2f}",
                code="CRITERIA_WEIGHT_SUM",
                suggestion="Evaluation criteria weights should add up to 1.0",
            ))

        for index, question in enumerate(content.questions):
            if len(question.text.strip()) < MIN_QUESTION_LENGTH:
                warnings.append(ValidationWarning(
                    path=f"content.questions[{index}].text",
                    message=f"Question {question.id} is very short",
                    code="SHORT_QUESTION",
                    suggestion="Questions should be descriptive enough to answer without context",
                ))

        total = len(content.questions)
        difficulties = Counter(question.difficulty for question in content.questions)
        if difficulties["easy"] / total > MAX_EASY_RATIO:
            warnings.append(ValidationWarning(
                path="content.questions",
                message=f"{difficulties['easy']} of {total} questions are easy",
                code="DIFFICULTY_IMBALANCE",
                suggestion="Add more medium and hard questions",
            ))
        if difficulties["hard"] / total > MAX_HARD_RATIO:
            warnings.append(ValidationWarning(
                path="content.questions",
                message=f"{difficulties['hard']} of {total} questions are hard",
                code="DIFFICULTY_IMBALANCE",
                suggestion="Add more easy and medium questions",
            ))

        used = {question.category_id for question in content.questions}
        for index, category in enumerate(content.categories):
            if category.id not in used:
                warnings.append(ValidationWarning(
                    path=f"content.categories[{index}]",
                    message=f"Category {category.id} has no questions",
                    code="EMPTY_CATEGORY",
                ))

        return warnings
