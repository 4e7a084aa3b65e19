"""
Outline orchestrator: validate the outline, generate blocks, fan out lessons.

    submitted -> outline.validating -> outline.validated
              -> outline.blocks.generating -> outline.blocks.generated
    outline.validating / outline.blocks.generating -> failed (rejected)
    any non-terminal state -> error (system error)

The orchestrator does not wait for its lessons.
"""
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session as DBSession

from content_pipeline.services.blocks_generator import BlocksGenerationService
from content_pipeline.services.outline_validator import OutlineValidationService
from content_pipeline.services.validation_rules import ThresholdConfig, evaluate
from content_pipeline.states import (
    OUTLINE_TERMINAL_STATES,
    OutlineEvent,
    OutlineState,
    next_outline_state,
    outline_public_status,
    outline_state_from_public,
)
from content_pipeline.workflows.base import BaseWorkflow
from shared.models.domain import BlocksResult, ValidationOutcome
from shared.models.entities import OutlineRequest
from shared.repositories.lesson_repository import LessonRepository
from shared.repositories.outline_request_repository import OutlineRequestRepository
from shared.utils.constants import (
    STAGE_BLOCKS_GENERATION,
    STAGE_OUTLINE_VALIDATION,
    STATUS_OUTLINE_BLOCKS_GENERATED,
    STATUS_OUTLINE_VALIDATED,
    SUBJECT_OUTLINE,
)
from shared.utils.exceptions import FlowFailure, OutlineRequestNotFoundException, StageSystemError

logger = logging.getLogger(__name__)


class OutlineWorkflow(BaseWorkflow):
    """
    Drives an outline request to outline.blocks.generated, failed or error.

    On resume the stored validation outcome and stored content blocks are
    reused rather than produced again.
    """

    subject_kind = SUBJECT_OUTLINE
    log_label = "Outline"
    terminal_states = OUTLINE_TERMINAL_STATES
    next_state = staticmethod(next_outline_state)
    to_public = staticmethod(outline_public_status)
    from_public = staticmethod(outline_state_from_public)
    system_error_event = OutlineEvent.SYSTEM_ERROR

    def __init__(
        self,
        db: DBSession,
        outline_request_id: str,
        validator: OutlineValidationService,
        blocks_generator: BlocksGenerationService,
        thresholds: Optional[ThresholdConfig] = None,
        dispatch_lesson: Optional[Callable[[str], None]] = None,
    ):
        """
        Args:
            db: Session owned by this workflow
            outline_request_id: Outline request to process
            validator: Scorer stage
            blocks_generator: Block generation stage
            thresholds: Pass/fail policy (defaults to settings)
            dispatch_lesson: Starts the workflow of one lesson by ID
        """
        super().__init__(db, outline_request_id)
        self.outlines = OutlineRequestRepository(db)
        self.lessons = LessonRepository(db)
        self.validator = validator
        self.blocks_generator = blocks_generator
        self.thresholds = thresholds or ThresholdConfig.from_settings()
        self.dispatch_lesson = dispatch_lesson
        self.outcome: Optional[ValidationOutcome] = None

    @property
    def outline_request_id(self) -> str:
        return self.subject_id

    def _run(self):
        request = self.outlines.get_by_id(self.outline_request_id)
        if request is None:
            raise OutlineRequestNotFoundException(self.outline_request_id)

        if self.state is None:
            self._enter(OutlineState.SUBMITTED)

        if self.state == OutlineState.SUBMITTED:
            self._transition(OutlineEvent.START)

        if self.state == OutlineState.OUTLINE_VALIDATING:
            self._validate(request)

        if self.state == OutlineState.OUTLINE_VALIDATED:
            self._transition(OutlineEvent.PROCEED)

        if self.state == OutlineState.OUTLINE_BLOCKS_GENERATING:
            self._generate_blocks(request)

        if self.state == OutlineState.OUTLINE_BLOCKS_GENERATED:
            self._fan_out()

    def _after_terminal(self):
        # Lessons created before a crash may never have been started
        if self.state == OutlineState.OUTLINE_BLOCKS_GENERATED:
            self._fan_out()

    # ─── Stages ───────────────────────────────────────────────────────

    def _validate(self, request: OutlineRequest):
        logger.info(f"[Outline {self.outline_request_id}] Validating outline...")
        outcome = self._stage(STAGE_OUTLINE_VALIDATION, self.validator.validate, request.outline)
        decision = evaluate(outcome, self.thresholds)

        if not decision.passed:
            logger.info(f"[Outline {self.outline_request_id}] Outline rejected: {decision.errors}")
            self._transition(OutlineEvent.VALIDATION_REJECTED, {
                "message": "Outline validation failed",
                "errors": decision.errors,
                "safety_score": outcome.safety_score,
                "specificity_score": outcome.specificity_score,
                "confidence": outcome.confidence,
                "actionable": outcome.actionable,
                "target_age_range": list(outcome.target_age_range),
                "reasoning": outcome.reasoning,
            })
            return

        self.outcome = decision.outcome
        self._transition(OutlineEvent.VALIDATION_PASSED, {"outcome": decision.outcome.model_dump()})
        logger.info(f"[Outline {self.outline_request_id}] Outline validated: topic={outcome.topic}")

    def _generate_blocks(self, request: OutlineRequest):
        blocks = self.outlines.get_content_blocks(self.outline_request_id)

        if blocks is None:
            logger.info(f"[Outline {self.outline_request_id}] Generating content blocks...")
            outcome = self._stored_outcome()
            try:
                blocks = self._stage(
                    STAGE_BLOCKS_GENERATION, self.blocks_generator.generate_blocks, request.outline, outcome
                )
            except FlowFailure as e:
                logger.info(f"[Outline {self.outline_request_id}] Blocks rejected: {e.message}")
                self._transition(OutlineEvent.BLOCKS_REJECTED, e.to_metadata())
                return
            self.outlines.save_content_blocks(self.outline_request_id, blocks)

        lesson_ids = self._create_lessons(blocks)
        self._transition(OutlineEvent.BLOCKS_GENERATED, {
            "num_lessons": len(lesson_ids),
            "lesson_ids": lesson_ids,
        })

    def _create_lessons(self, blocks: BlocksResult) -> List[str]:
        """Create one lesson per generated lesson, skipping positions that already exist."""
        lesson_ids = []
        for position, generated in enumerate(blocks.lessons):
            lesson = self.lessons.get_by_position(self.outline_request_id, position)
            if lesson is None:
                lesson = self.lessons.create(
                    self.outline_request_id, position, generated.title, list(generated.blocks)
                )
            lesson_ids.append(lesson.id)
        return lesson_ids

    def _fan_out(self):
        """Start a workflow for every lesson that has not been started yet."""
        if self.dispatch_lesson is None:
            return
        started = 0
        for lesson in self.lessons.list_for_outline(self.outline_request_id):
            if self.ledger.latest(lesson.id) is None:
                self.dispatch_lesson(lesson.id)
                started += 1
        logger.info(f"[Outline {self.outline_request_id}] Dispatched {started} lesson workflow(s)")

    # ─── Resume support ───────────────────────────────────────────────

    def _stored_outcome(self) -> ValidationOutcome:
        if self.outcome is not None:
            return self.outcome
        record = self.ledger.latest_with_status(self.outline_request_id, STATUS_OUTLINE_VALIDATED)
        metadata = self.ledger.metadata_of(record) or {}
        if "outcome" not in metadata:
            raise StageSystemError(
                STAGE_BLOCKS_GENERATION,
                "Validated outline has no stored validation outcome",
                kind="state_error",
            )
        self.outcome = ValidationOutcome.model_validate(metadata["outcome"])
        return self.outcome
