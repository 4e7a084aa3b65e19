"""
API routes for the content pipeline.

Provides endpoints to submit outlines and follow outline and lesson progress.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from content_pipeline.services.outline_service import OutlineService
from content_pipeline.workflows.dispatcher import PipelineDispatcher, get_dispatcher
from database import get_db
from shared.models.schemas import (
    CreateOutlineRequest,
    CreateOutlineResponse,
    LessonResponse,
    OutlineRequestResponse,
    StatusRecordResponse,
)
from shared.utils.constants import STATUS_SUBMITTED, SUBJECT_LESSON, SUBJECT_OUTLINE
from shared.utils.exceptions import LessonNotFoundException, OutlineRequestNotFoundException

logger = logging.getLogger(__name__)

router = APIRouter(tags=["content-pipeline"])


# ===== Outline Endpoints =====

@router.post("/outlines", response_model=CreateOutlineResponse, status_code=status.HTTP_201_CREATED)
def create_outline(
    request: CreateOutlineRequest,
    db: Session = Depends(get_db),
    dispatcher: PipelineDispatcher = Depends(get_dispatcher),
):
    """
    Submit an outline and start its pipeline.

    Args:
        request: Outline submission
        db: Database session
        dispatcher: Workflow dispatcher

    Returns:
        ID, title and initial status of the new outline request

    Raises:
        HTTPException: 400 if the outline is empty
    """
    service = OutlineService(db)
    try:
        outline_request = service.submit(request.outline)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    dispatcher.dispatch_outline(outline_request.id)
    return CreateOutlineResponse(
        id=outline_request.id,
        title=outline_request.title,
        status=STATUS_SUBMITTED,
    )


@router.get("/outlines/{outline_request_id}", response_model=OutlineRequestResponse)
def get_outline(outline_request_id: str, db: Session = Depends(get_db)):
    """Get an outline request with its current status and lessons."""
    try:
        return OutlineService(db).get_outline(outline_request_id)
    except OutlineRequestNotFoundException as e:
        raise e.to_http_exception()


@router.get("/outlines/{outline_request_id}/statuses", response_model=List[StatusRecordResponse])
def get_outline_statuses(outline_request_id: str, db: Session = Depends(get_db)):
    """Get the full status history of an outline request."""
    try:
        return OutlineService(db).get_status_history(outline_request_id, SUBJECT_OUTLINE)
    except OutlineRequestNotFoundException as e:
        raise e.to_http_exception()


# ===== Lesson Endpoints =====

@router.get("/lessons/{lesson_id}", response_model=LessonResponse)
def get_lesson(lesson_id: str, db: Session = Depends(get_db)):
    """Get a lesson with its current status, attempts and code."""
    try:
        return OutlineService(db).get_lesson(lesson_id)
    except LessonNotFoundException as e:
        raise e.to_http_exception()


@router.get("/lessons/{lesson_id}/statuses", response_model=List[StatusRecordResponse])
def get_lesson_statuses(lesson_id: str, db: Session = Depends(get_db)):
    """Get the full status history of a lesson."""
    try:
        return OutlineService(db).get_status_history(lesson_id, SUBJECT_LESSON)
    except LessonNotFoundException as e:
        raise e.to_http_exception()
