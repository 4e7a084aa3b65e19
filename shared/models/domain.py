"""Domain models for business logic."""
from pydantic import BaseModel, Field
from typing import List, Dict, Any, Optional


class ValidationOutcome(BaseModel):
    """Outline assessment returned by the scorer. Not persisted on its own."""
    safety_score: float = Field(..., ge=0.0, le=1.0)
    specificity_score: float = Field(..., ge=0.0, le=1.0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    actionable: bool = False
    target_age_range: List[int] = Field(..., min_length=2, max_length=2)  # [min, max]
    topic: str = ""
    domains: List[str] = Field(default_factory=list)
    matches_taxonomy: bool = False
    reasoning: str = ""
    requirements: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    missing_info: List[str] = Field(default_factory=list)
    flags: List[str] = Field(default_factory=list)
    valid: Optional[bool] = None  # Set by the threshold policy, never by the scorer


class GeneratedLesson(BaseModel):
    """One lesson produced by block generation."""
    title: str = Field(..., min_length=1)
    blocks: List[Any] = Field(..., min_length=1)  # Opaque content blocks


class BlocksMetadata(BaseModel):
    """Shared context for every lesson of an outline."""
    topic: str = ""
    domains: List[str] = Field(default_factory=list)
    age_range: List[int] = Field(default_factory=list)
    complexity: str = "moderate"  # simple, moderate, complex


class BlocksResult(BaseModel):
    """Result of the block generation stage."""
    lessons: List[GeneratedLesson] = Field(..., min_length=1)
    metadata: BlocksMetadata = Field(default_factory=BlocksMetadata)


class LessonContext(BaseModel):
    """Context handed to code generation for a single lesson."""
    topic: str = ""
    domains: List[str] = Field(default_factory=list)
    age_range: List[int] = Field(default_factory=list)
    complexity: str = "moderate"

    @classmethod
    def from_metadata(cls, metadata: BlocksMetadata) -> "LessonContext":
        return cls(
            topic=metadata.topic,
            domains=list(metadata.domains),
            age_range=list(metadata.age_range),
            complexity=metadata.complexity,
        )


class CodeValidationError(BaseModel):
    """A single structural problem found in generated lesson code."""
    type: str  # syntax, import, builtin, structure, internal
    message: str
    line: Optional[int] = None
    column: Optional[int] = None
    severity: str = "error"  # error, warning

    def describe(self) -> str:
        if self.line is not None:
            return f"Line {self.line}: {self.message}"
        return self.message


class CodeValidationResult(BaseModel):
    """Structural validation verdict for generated lesson code."""
    valid: bool
    errors: List[CodeValidationError] = Field(default_factory=list)

    def error_messages(self) -> List[str]:
        return [e.describe() for e in self.errors if e.severity == "error"]


class CompiledArtifact(BaseModel):
    """Output of the compiler plus where it was written."""
    output: str  # base64 encoded bytecode
    locations: Dict[str, str] = Field(default_factory=dict)  # {"source": ..., "compiled": ...}
