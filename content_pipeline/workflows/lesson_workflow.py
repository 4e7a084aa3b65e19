"""
Per-lesson workflow: generate code, then validate, regenerate and compile.

    generating -> generated -> validating (-> regenerate -> validating)* -> compiled
                                          -> failed (attempts exhausted)
    any non-terminal state -> error (system error)
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session as DBSession

from config import get_settings
from content_pipeline.services.code_compiler import LessonCompiler
from content_pipeline.services.code_generator import LessonCodeGenerator
from content_pipeline.services.code_validator import LessonCodeValidator
from content_pipeline.states import (
    LESSON_TERMINAL_STATES,
    LessonEvent,
    LessonState,
    lesson_public_status,
    lesson_state_from_public,
    next_lesson_state,
)
from content_pipeline.workflows.base import BaseWorkflow
from shared.models.domain import CodeValidationError, LessonContext
from shared.models.entities import Lesson
from shared.repositories.lesson_repository import LessonRepository
from shared.repositories.outline_request_repository import OutlineRequestRepository
from shared.utils.constants import (
    STAGE_CODE_GENERATION,
    STAGE_CODE_REGENERATION,
    STAGE_CODE_VALIDATION,
    STAGE_COMPILATION,
    STATUS_LESSON_VALIDATING,
    SUBJECT_LESSON,
)
from shared.utils.exceptions import LessonNotFoundException

logger = logging.getLogger(__name__)


class LessonWorkflow(BaseWorkflow):
    """
    Drives a single lesson to compiled, failed or error.

    Progress is inferred from persisted state so a resumed workflow never
    repeats a completed stage:
    - generated_code present means generation already happened
    - validation_attempts counts validations started
    - the last `lesson.validating` record with an attempt_number tells which
      attempt was last judged, and code_revision whether its repair was saved
    """

    subject_kind = SUBJECT_LESSON
    log_label = "Lesson"
    terminal_states = LESSON_TERMINAL_STATES
    next_state = staticmethod(next_lesson_state)
    to_public = staticmethod(lesson_public_status)
    from_public = staticmethod(lesson_state_from_public)
    system_error_event = LessonEvent.SYSTEM_ERROR

    def __init__(
        self,
        db: DBSession,
        lesson_id: str,
        code_generator: LessonCodeGenerator,
        validator: Optional[LessonCodeValidator] = None,
        compiler: Optional[LessonCompiler] = None,
        max_validation_attempts: Optional[int] = None,
        context: Optional[LessonContext] = None,
    ):
        super().__init__(db, lesson_id)
        self.lessons = LessonRepository(db)
        self.outlines = OutlineRequestRepository(db)
        self.code_generator = code_generator
        self.validator = validator or LessonCodeValidator()
        self.compiler = compiler or LessonCompiler()
        self.max_validation_attempts = max_validation_attempts or get_settings().max_validation_attempts
        self.context = context

    @property
    def lesson_id(self) -> str:
        return self.subject_id

    def _run(self):
        lesson = self.lessons.get_by_id(self.lesson_id)
        if lesson is None:
            raise LessonNotFoundException(self.lesson_id)

        if self.state is None:
            self._enter(LessonState.GENERATING)

        if self.state == LessonState.GENERATING:
            if not lesson.generated_code:
                self._generate(lesson)
            self._transition(LessonEvent.CODE_GENERATED)

        if self.state == LessonState.GENERATED:
            self._transition(LessonEvent.BEGIN_VALIDATION)

        if self.state == LessonState.VALIDATING:
            self._validation_loop(lesson)

    # ─── Stages ───────────────────────────────────────────────────────

    def _generate(self, lesson: Lesson):
        logger.info(f"[Lesson {self.lesson_id}] Generating code...")
        code = self._stage(
            STAGE_CODE_GENERATION,
            self.code_generator.generate,
            lesson.title,
            LessonRepository.blocks_of(lesson),
            self._lesson_context(lesson),
        )
        self.lessons.save_generated_code(self.lesson_id, code)
        logger.info(f"[Lesson {self.lesson_id}] Code generated successfully")

    def _regenerate(self, lesson: Lesson, errors: List[str], attempt_number: int):
        logger.info(f"[Lesson {self.lesson_id}] Regenerating code with error feedback...")
        code = self._stage(
            STAGE_CODE_REGENERATION,
            self.code_generator.regenerate,
            lesson.generated_code,
            errors,
            lesson.title,
            LessonRepository.blocks_of(lesson),
            attempt_number,
        )
        self.lessons.save_generated_code(self.lesson_id, code)

    def _validation_loop(self, lesson: Lesson):
        attempt, pending_errors, failed_attempt = self._resume_point(lesson)

        while True:
            if pending_errors is not None:
                self._regenerate(lesson, pending_errors, failed_attempt)
                pending_errors = None

            if attempt is None:
                attempt = self.lessons.increment_validation_attempts(self.lesson_id)

            logger.info(
                f"[Lesson {self.lesson_id}] Validation attempt {attempt}/{self.max_validation_attempts}"
            )
            result = self._stage(STAGE_CODE_VALIDATION, self.validator.check, lesson.generated_code)

            if result.valid:
                logger.info(f"[Lesson {self.lesson_id}] Validation passed on attempt {attempt}")
                self._compile(lesson)
                return

            messages = result.error_messages()
            logger.warning(
                f"[Lesson {self.lesson_id}] Validation failed (attempt {attempt}): {len(messages)} errors"
            )

            if attempt >= self.max_validation_attempts:
                self._transition(LessonEvent.ATTEMPTS_EXHAUSTED, {
                    "message": (
                        f"Validation failed after {attempt} attempts. "
                        f"Last errors: {', '.join(messages)}"
                    ),
                    "error": "ValidationError",
                    "attempts": attempt,
                    "errors": [e.model_dump() for e in result.errors],
                })
                return

            self._transition(LessonEvent.VALIDATION_RETRY, {
                "attempt_number": attempt,
                "errors": [e.model_dump() for e in result.errors],
            })
            pending_errors = messages
            failed_attempt = attempt
            attempt = None

    def _compile(self, lesson: Lesson):
        artifact = self._stage(STAGE_COMPILATION, self.compiler.compile, lesson.generated_code, self.lesson_id)
        self.lessons.save_compiled(self.lesson_id, artifact.output, artifact.locations)
        self._transition(LessonEvent.VALIDATION_PASSED, {"locations": artifact.locations})
        logger.info(f"[Lesson {self.lesson_id}] Code compiled and written successfully")

    # ─── Resume support ───────────────────────────────────────────────

    def _resume_point(self, lesson: Lesson) -> Tuple[Optional[int], Optional[List[str]], int]:
        """
        Work out where the validation loop stopped.

        Returns (attempt, pending_errors, failed_attempt):
        - attempt is set when an attempt was counted but never judged; it is
          redone without incrementing the counter again
        - pending_errors is set when an attempt was judged invalid but the
          repaired code was never saved; regeneration runs first
        """
        counter = lesson.validation_attempts or 0
        last_attempt, last_errors = self._last_judged_attempt()

        if counter > last_attempt:
            logger.info(f"[Lesson {self.lesson_id}] Resuming unfinished attempt {counter}")
            return counter, None, last_attempt

        if last_attempt > 0 and (lesson.code_revision or 0) <= last_attempt:
            logger.info(f"[Lesson {self.lesson_id}] Resuming regeneration after attempt {last_attempt}")
            return None, last_errors, last_attempt

        return None, None, last_attempt

    def _last_judged_attempt(self) -> Tuple[int, List[str]]:
        """Attempt number and error messages of the latest rejected validation."""
        for record in reversed(self.ledger.history(self.lesson_id)):
            if record.status != STATUS_LESSON_VALIDATING:
                continue
            metadata = self.ledger.metadata_of(record) or {}
            if "attempt_number" in metadata:
                return metadata["attempt_number"], self._describe_errors(metadata.get("errors", []))
        return 0, []

    @staticmethod
    def _describe_errors(errors: List[Dict[str, Any]]) -> List[str]:
        return [
            CodeValidationError.model_validate(e).describe()
            for e in errors
            if e.get("severity", "error") == "error"
        ]

    def _lesson_context(self, lesson: Lesson) -> LessonContext:
        if self.context is None:
            blocks = self.outlines.get_content_blocks(lesson.outline_request_id)
            self.context = LessonContext.from_metadata(blocks.metadata) if blocks else LessonContext()
        return self.context
