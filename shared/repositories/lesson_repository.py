"""Lesson data access layer."""
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4
from sqlalchemy.orm import Session as DBSession

from shared.models.entities import Lesson
from shared.utils.exceptions import LessonNotFoundException

logger = logging.getLogger(__name__)


class LessonRepository:
    """
    Repository for lesson operations.

    Every write commits immediately so the next stage reads what the
    previous one wrote.
    """

    def __init__(self, db: DBSession):
        self.db = db

    def create(
        self,
        outline_request_id: str,
        position: int,
        title: str,
        blocks: List[Any]
    ) -> Lesson:
        """
        Create a lesson under an outline request.

        Args:
            outline_request_id: Parent outline request ID
            position: Order of the lesson within the outline
            title: Lesson title
            blocks: Ordered content blocks

        Returns:
            Created Lesson model
        """
        now = datetime.utcnow()
        lesson = Lesson(
            id=str(uuid4()),
            outline_request_id=outline_request_id,
            position=position,
            title=title,
            blocks_json=json.dumps(blocks),
            code_revision=0,
            validation_attempts=0,
            created_at=now,
            updated_at=now
        )
        self.db.add(lesson)
        self.db.commit()
        self.db.refresh(lesson)
        return lesson

    def get_by_id(self, lesson_id: str) -> Optional[Lesson]:
        return self.db.query(Lesson).filter(Lesson.id == lesson_id).first()

    def list_for_outline(self, outline_request_id: str) -> List[Lesson]:
        """
        Get all lessons of an outline request.

        Args:
            outline_request_id: Parent outline request ID

        Returns:
            List of Lesson models ordered by position
        """
        return (
            self.db.query(Lesson)
            .filter(Lesson.outline_request_id == outline_request_id)
            .order_by(Lesson.position)
            .all()
        )

    def get_by_position(self, outline_request_id: str, position: int) -> Optional[Lesson]:
        return (
            self.db.query(Lesson)
            .filter(Lesson.outline_request_id == outline_request_id, Lesson.position == position)
            .first()
        )

    def list_ids(self) -> List[str]:
        """IDs of all lessons, oldest first."""
        rows = self.db.query(Lesson.id).order_by(Lesson.created_at).all()
        return [row.id for row in rows]

    def save_generated_code(self, lesson_id: str, code: str) -> int:
        """
        Overwrite the lesson's current code and bump its revision.

        Args:
            lesson_id: Lesson identifier
            code: Generated or regenerated source

        Returns:
            New code revision
        """
        lesson = self._require(lesson_id)
        lesson.generated_code = code
        lesson.code_revision = (lesson.code_revision or 0) + 1
        lesson.updated_at = datetime.utcnow()
        self.db.commit()
        return lesson.code_revision

    def increment_validation_attempts(self, lesson_id: str) -> int:
        """
        Increment and persist the validation attempt counter.

        Args:
            lesson_id: Lesson identifier

        Returns:
            Updated attempt count
        """
        lesson = self._require(lesson_id)
        lesson.validation_attempts = (lesson.validation_attempts or 0) + 1
        lesson.updated_at = datetime.utcnow()
        self.db.commit()
        return lesson.validation_attempts

    def save_compiled(self, lesson_id: str, compiled_code: str, locations: Dict[str, str]) -> None:
        """
        Store compiled output and where the artifacts were written.

        Args:
            lesson_id: Lesson identifier
            compiled_code: Compiler output
            locations: {"source": path, "compiled": path}
        """
        lesson = self._require(lesson_id)
        lesson.compiled_code = compiled_code
        lesson.generated_file_path = locations.get("source")
        lesson.compiled_file_path = locations.get("compiled")
        lesson.updated_at = datetime.utcnow()
        self.db.commit()

    @staticmethod
    def blocks_of(lesson: Lesson) -> List[Any]:
        return json.loads(lesson.blocks_json) if lesson.blocks_json else []

    def _require(self, lesson_id: str) -> Lesson:
        lesson = self.get_by_id(lesson_id)
        if lesson is None:
            raise LessonNotFoundException(lesson_id)
        return lesson
