"""Restart recovery - resumes workflows that were interrupted."""
import logging
from typing import Dict, List

from sqlalchemy.orm import Session as DBSession

from shared.repositories.lesson_repository import LessonRepository
from shared.repositories.outline_request_repository import OutlineRequestRepository
from shared.repositories.status_ledger import StatusLedger
from shared.utils.constants import SUBJECT_LESSON, SUBJECT_OUTLINE, TERMINAL_STATUSES

logger = logging.getLogger(__name__)


class WorkflowRecoveryService:
    """
    Finds subjects whose workflow stopped before a terminal status and
    starts them again through the dispatcher.
    """

    def __init__(self, db: DBSession, dispatcher):
        self.db = db
        self.dispatcher = dispatcher
        self.ledger = StatusLedger(db)
        self.outlines = OutlineRequestRepository(db)
        self.lessons = LessonRepository(db)

    def find_incomplete_outlines(self) -> List[str]:
        """Outline requests with no status or a non-terminal one."""
        latest = self.ledger.latest_by_subject(SUBJECT_OUTLINE)
        terminal = TERMINAL_STATUSES[SUBJECT_OUTLINE]
        return [
            outline_id for outline_id in self.outlines.list_ids()
            if outline_id not in latest or latest[outline_id].status not in terminal
        ]

    def find_incomplete_lessons(self) -> List[str]:
        """
        Lessons with a non-terminal status, plus never-started lessons whose
        outline already finished (the orchestrator will not start those).
        """
        latest = self.ledger.latest_by_subject(SUBJECT_LESSON)
        outline_latest = self.ledger.latest_by_subject(SUBJECT_OUTLINE)
        terminal = TERMINAL_STATUSES[SUBJECT_LESSON]
        outline_terminal = TERMINAL_STATUSES[SUBJECT_OUTLINE]

        incomplete = []
        for lesson_id in self.lessons.list_ids():
            record = latest.get(lesson_id)
            if record is not None:
                if record.status not in terminal:
                    incomplete.append(lesson_id)
                continue
            lesson = self.lessons.get_by_id(lesson_id)
            parent = outline_latest.get(lesson.outline_request_id)
            if parent is not None and parent.status in outline_terminal:
                incomplete.append(lesson_id)
        return incomplete

    def resume_incomplete(self) -> Dict[str, int]:
        """
        Re-dispatch every interrupted workflow.

        Returns:
            Counts of resumed outlines and lessons
        """
        outline_ids = self.find_incomplete_outlines()
        lesson_ids = self.find_incomplete_lessons()

        resumed_outlines = sum(1 for outline_id in outline_ids if self.dispatcher.dispatch_outline(outline_id))
        resumed_lessons = sum(1 for lesson_id in lesson_ids if self.dispatcher.dispatch_lesson(lesson_id))

        logger.info(
            f"Recovery resumed {resumed_outlines} outline workflow(s) and "
            f"{resumed_lessons} lesson workflow(s)"
        )
        return {"outlines": resumed_outlines, "lessons": resumed_lessons}
