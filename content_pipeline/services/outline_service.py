"""Outline submission and read-side views for the HTTP API."""
import logging
from typing import List

from sqlalchemy.orm import Session as DBSession

from shared.models.entities import OutlineRequest
from shared.models.schemas import (
    LessonResponse,
    LessonSummary,
    OutlineRequestResponse,
    StatusRecordResponse,
)
from shared.repositories.lesson_repository import LessonRepository
from shared.repositories.outline_request_repository import OutlineRequestRepository
from shared.repositories.status_ledger import StatusLedger
from shared.utils.code_utils import derive_title
from shared.utils.constants import MAX_TITLE_LENGTH, STATUS_SUBMITTED, SUBJECT_OUTLINE
from shared.utils.exceptions import LessonNotFoundException, OutlineRequestNotFoundException

logger = logging.getLogger(__name__)


class OutlineService:
    """Creates outline requests and assembles their status views."""

    def __init__(self, db: DBSession):
        self.db = db
        self.outlines = OutlineRequestRepository(db)
        self.lessons = LessonRepository(db)
        self.ledger = StatusLedger(db)

    def submit(self, outline: str) -> OutlineRequest:
        """
        Create an outline request in the `submitted` status.

        Args:
            outline: Raw outline text

        Returns:
            Created OutlineRequest

        Raises:
            ValueError: If the outline is empty or whitespace only
        """
        text = (outline or "").strip()
        if not text:
            raise ValueError("Outline must not be empty")

        request = self.outlines.create(text, derive_title(text, MAX_TITLE_LENGTH))
        self.ledger.append(request.id, SUBJECT_OUTLINE, STATUS_SUBMITTED)
        logger.info(f"[Outline {request.id}] Submitted: {request.title}")
        return request

    def get_outline(self, outline_request_id: str) -> OutlineRequestResponse:
        request = self.outlines.get_by_id(outline_request_id)
        if request is None:
            raise OutlineRequestNotFoundException(outline_request_id)

        current = self.ledger.latest(outline_request_id)
        lessons = [
            LessonSummary(
                id=lesson.id,
                position=lesson.position,
                title=lesson.title,
                status=self._status_of(lesson.id),
                validation_attempts=lesson.validation_attempts or 0,
            )
            for lesson in self.lessons.list_for_outline(outline_request_id)
        ]
        return OutlineRequestResponse(
            id=request.id,
            title=request.title,
            outline=request.outline,
            status=current.status if current else None,
            status_metadata=self.ledger.metadata_of(current),
            num_lessons=request.num_lessons,
            lessons=lessons,
            created_at=request.created_at,
        )

    def get_status_history(self, subject_id: str, subject_kind: str = SUBJECT_OUTLINE) -> List[StatusRecordResponse]:
        """Status history of an outline request or lesson, oldest first."""
        if subject_kind == SUBJECT_OUTLINE:
            if self.outlines.get_by_id(subject_id) is None:
                raise OutlineRequestNotFoundException(subject_id)
        elif self.lessons.get_by_id(subject_id) is None:
            raise LessonNotFoundException(subject_id)
        return [
            StatusRecordResponse(
                status=record.status,
                metadata=self.ledger.metadata_of(record),
                created_at=record.created_at,
            )
            for record in self.ledger.history(subject_id)
        ]

    def get_lesson(self, lesson_id: str) -> LessonResponse:
        lesson = self.lessons.get_by_id(lesson_id)
        if lesson is None:
            raise LessonNotFoundException(lesson_id)

        current = self.ledger.latest(lesson_id)
        return LessonResponse(
            id=lesson.id,
            outline_request_id=lesson.outline_request_id,
            position=lesson.position,
            title=lesson.title,
            blocks=LessonRepository.blocks_of(lesson),
            status=current.status if current else None,
            status_metadata=self.ledger.metadata_of(current),
            validation_attempts=lesson.validation_attempts or 0,
            generated_code=lesson.generated_code,
            generated_file_path=lesson.generated_file_path,
            compiled_file_path=lesson.compiled_file_path,
            created_at=lesson.created_at,
            updated_at=lesson.updated_at,
        )

    def _status_of(self, subject_id: str):
        record = self.ledger.latest(subject_id)
        return record.status if record else None
