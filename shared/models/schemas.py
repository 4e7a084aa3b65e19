"""Pydantic API request/response schemas."""
from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Dict, Any, Optional


class CreateOutlineRequest(BaseModel):
    """Request to submit a new outline."""
    outline: str = Field(..., description="Free-text outline describing the lessons to build")


class CreateOutlineResponse(BaseModel):
    """Response with the new outline request ID and its initial status."""
    id: str
    title: Optional[str] = None
    status: str


class StatusRecordResponse(BaseModel):
    """One entry of a subject's status history."""
    status: str
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime


class LessonSummary(BaseModel):
    """Lesson as listed under its outline."""
    id: str
    position: int
    title: str
    status: Optional[str] = None
    validation_attempts: int = 0


class OutlineRequestResponse(BaseModel):
    """Outline request with current status and lessons."""
    id: str
    title: Optional[str] = None
    outline: str
    status: Optional[str] = None
    status_metadata: Optional[Dict[str, Any]] = None
    num_lessons: Optional[int] = None
    lessons: List[LessonSummary] = Field(default_factory=list)
    created_at: datetime


class LessonResponse(BaseModel):
    """Full lesson detail."""
    id: str
    outline_request_id: str
    position: int
    title: str
    blocks: List[Any] = Field(default_factory=list)
    status: Optional[str] = None
    status_metadata: Optional[Dict[str, Any]] = None
    validation_attempts: int = 0
    generated_code: Optional[str] = None
    generated_file_path: Optional[str] = None
    compiled_file_path: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
