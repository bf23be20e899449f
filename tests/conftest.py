"""
Shared fixtures: sample content pack documents and an in-memory database.
"""
import copy
import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from contentpacks.db.base import Base
import contentpacks.db.models  # noqa: F401
from contentpacks.db.models.content_pack import ContentPackStatus
from contentpacks.schemas.content_pack import ContentPackRecord

DIFFICULTIES = ["easy", "medium", "hard", "medium"]


def make_question(index: int, category_id: str = "communication", difficulty: str = "medium") -> dict:
    return {
        "id": f"q{index}",
        "category_id": category_id,
        "text": f"Tell me about a time you handled situation number {index}.",
        "type": "behavioral",
        "difficulty": difficulty,
        "time_limit": 120,
        "tips": ["Use the STAR method", "Quantify the outcome"],
    }


def make_pack_document(question_count: int = 4, **overrides) -> dict:
    """Build a well-formed pack that produces no errors and no warnings."""
    categories = [
        {
            "id": "communication",
            "name": "Communication",
            "description": "How clearly the candidate explains their thinking",
            "weight": 0.5,
            "criteria": ["Clarity", "Conciseness"],
        },
        {
            "id": "leadership",
            "name": "Leadership",
            "description": "Ownership and influence without authority",
            "weight": 0.5,
            "criteria": ["Ownership"],
        },
    ]
    questions = [
        make_question(
            i,
            category_id=categories[i % 2]["id"],
            difficulty=DIFFICULTIES[i % len(DIFFICULTIES)],
        )
        for i in range(question_count)
    ]
    dimension = {"description": "Scored from 1 to 5", "weight": 0.25, "factors": ["Evidence"]}
    document = {
        "name": "Behavioral Interview Basics",
        "version": "1.0.0",
        "description": "Core behavioral questions",
        "schema_version": "1.0.0",
        "content": {
            "description": "A starter pack of behavioral interview questions",
            "categories": categories,
            "questions": questions,
            "evaluation_criteria": {
                "clarity": dict(dimension),
                "content": dict(dimension),
                "delivery": dict(dimension),
                "structure": dict(dimension),
            },
            "metadata": {
                "author": "Content Team",
                "tags": ["behavioral"],
                "target_audience": ["new grads"],
                "language": "en",
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-02T00:00:00Z",
            },
        },
    }
    document.update(overrides)
    return copy.deepcopy(document)


def make_record(status: ContentPackStatus = ContentPackStatus.VALID, **overrides) -> ContentPackRecord:
    document = make_pack_document()
    now = datetime.now(timezone.utc)
    fields = {
        "id": str(uuid.uuid4()),
        "name": document["name"],
        "version": document["version"],
        "description": document["description"],
        "schema_version": "1.0.0",
        "content": document["content"],
        "metadata": document["content"]["metadata"],
        "status": status,
        "created_at": now,
        "updated_at": now,
    }
    fields.update(overrides)
    return ContentPackRecord(**fields)


@pytest.fixture
def pack_document():
    return make_pack_document()


@pytest.fixture
def session_factory():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
