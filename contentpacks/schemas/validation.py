"""
Pydantic schemas for content pack validation results.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    """A fatal rule violation."""
    path: str = Field(..., description="Dotted JSON path of the offending field")
    message: str
    code: str = Field(..., description="SCHEMA_ERROR, SECURITY_VIOLATION, ...")

    class Config:
        frozen = True


class ValidationWarning(BaseModel):
    """A non-fatal finding; never affects is_valid."""
    path: str
    message: str
    code: str
    suggestion: Optional[str] = None

    class Config:
        frozen = True


class PerformanceMetrics(BaseModel):
    duration: float = Field(..., description="Wall-clock validation time in milliseconds")
    target: float = Field(..., description="Target validation time in milliseconds")
    target_met: bool

    class Config:
        frozen = True


class ValidationResult(BaseModel):
    """Outcome of validating one content pack document."""
    content_pack_id: Optional[str] = None
    is_valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationWarning] = Field(default_factory=list)
    schema_version: str
    validated_at: datetime
    performance: PerformanceMetrics

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "content_pack_id": "3f2b8c1e-6a7d-4e59-9f0a-1c2d3e4f5a6b",
                "is_valid": False,
                "errors": [
                    {
                        "path": "content.questions[0].text",
                        "message": "Potentially unsafe content detected",
                        "code": "SECURITY_VIOLATION",
                    }
                ],
                "warnings": [],
                "schema_version": "1.0.0",
                "validated_at": "2025-01-01T00:00:00Z",
                "performance": {"duration": 12.4, "target": 1000, "target_met": True},
            }
        }


class ValidationResponse(BaseModel):
    """Response schema for POST /content-packs/{id}/validate."""
    data: ValidationResult


class UploadResponse(BaseModel):
    """Response schema for POST /content/upload."""
    valid: bool
    id: Optional[str] = None
    version: str
    name: str
    timestamp: datetime
    warnings: List[ValidationWarning] = Field(default_factory=list)
    performance: PerformanceMetrics
