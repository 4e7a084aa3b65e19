"""Data models - ORM entities, domain models and API schemas."""

# SQLAlchemy ORM models
from .entities import Base, OutlineRequest, Lesson, StatusRecord

# Domain models (business logic)
from .domain import (
    ValidationOutcome,
    GeneratedLesson,
    BlocksMetadata,
    BlocksResult,
    LessonContext,
    CodeValidationError,
    CodeValidationResult,
    CompiledArtifact
)

__all__ = [
    # Database models
    "Base",
    "OutlineRequest",
    "Lesson",
    "StatusRecord",
    # Domain models
    "ValidationOutcome",
    "GeneratedLesson",
    "BlocksMetadata",
    "BlocksResult",
    "LessonContext",
    "CodeValidationError",
    "CodeValidationResult",
    "CompiledArtifact",
]
