"""
Starts outline and lesson workflows.

Each workflow runs with its own DB session, in its own registry thread
(or synchronously when run_inline is set, for scripts and tests).

Usage:
    dispatcher = PipelineDispatcher()
    dispatcher.dispatch_outline(outline_request_id)
"""
import time
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session as DBSession

from config import get_settings
from content_pipeline.services.blocks_generator import BlocksGenerationService
from content_pipeline.services.code_compiler import LessonCompiler
from content_pipeline.services.code_generator import LessonCodeGenerator
from content_pipeline.services.code_validator import LessonCodeValidator
from content_pipeline.services.outline_validator import OutlineValidationService
from content_pipeline.services.validation_rules import ThresholdConfig
from content_pipeline.workflows.base import BaseWorkflow
from content_pipeline.workflows.lesson_workflow import LessonWorkflow
from content_pipeline.workflows.outline_workflow import OutlineWorkflow
from content_pipeline.workflows.registry import WorkflowRegistry
from database import get_db_manager
from shared.repositories.status_ledger import StatusLedger
from shared.services.llm_service import create_llm_service
from shared.utils.constants import STAGE_WORKFLOW, STATUS_ERROR, SUBJECT_LESSON, SUBJECT_OUTLINE
from shared.utils.exceptions import (
    LessonNotFoundException,
    OutlineRequestNotFoundException,
    WorkflowAlreadyRunning,
)

logger = logging.getLogger(__name__)


class WorkflowFactory:
    """Builds workflows with their stage services wired from settings."""

    def __init__(self, settings=None):
        self.settings = settings or get_settings()
        self._validator = None
        self._blocks_generator = None
        self._code_generator = None

    @property
    def host(self) -> Optional[str]:
        return self.settings.ollama_host if self.settings.llm_provider == "ollama" else None

    def outline_validator(self) -> OutlineValidationService:
        if self._validator is None:
            self._validator = OutlineValidationService(
                create_llm_service(self.settings.validation_model, self.settings),
                age_bounds=self.settings.age_bounds,
                host=self.host,
            )
        return self._validator

    def blocks_generator(self) -> BlocksGenerationService:
        if self._blocks_generator is None:
            self._blocks_generator = BlocksGenerationService(
                create_llm_service(self.settings.generation_model, self.settings),
                age_bounds=self.settings.age_bounds,
                host=self.host,
            )
        return self._blocks_generator

    def code_generator(self) -> LessonCodeGenerator:
        if self._code_generator is None:
            self._code_generator = LessonCodeGenerator(
                create_llm_service(self.settings.code_generation_model, self.settings),
                host=self.host,
            )
        return self._code_generator

    def outline_workflow(
        self,
        db: DBSession,
        outline_request_id: str,
        dispatch_lesson: Optional[Callable[[str], None]] = None,
    ) -> OutlineWorkflow:
        return OutlineWorkflow(
            db,
            outline_request_id,
            validator=self.outline_validator(),
            blocks_generator=self.blocks_generator(),
            thresholds=ThresholdConfig.from_settings(self.settings),
            dispatch_lesson=dispatch_lesson,
        )

    def lesson_workflow(self, db: DBSession, lesson_id: str) -> LessonWorkflow:
        return LessonWorkflow(
            db,
            lesson_id,
            code_generator=self.code_generator(),
            validator=LessonCodeValidator(),
            compiler=LessonCompiler(self.settings.lesson_output_dir),
            max_validation_attempts=self.settings.max_validation_attempts,
        )


class PipelineDispatcher:
    """
    Launches workflows on the registry.

    A crash that escapes a workflow is logged and the subject is marked
    `error` unless it already reached a terminal status.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], DBSession]] = None,
        registry: Optional[WorkflowRegistry] = None,
        factory: Optional[WorkflowFactory] = None,
        run_inline: bool = False,
    ):
        self._session_factory = session_factory
        self.registry = registry or WorkflowRegistry()
        self.factory = factory or WorkflowFactory()
        self.run_inline = run_inline

    @property
    def session_factory(self) -> Callable[[], DBSession]:
        if self._session_factory is None:
            self._session_factory = get_db_manager().session_factory
        return self._session_factory

    def dispatch_outline(self, outline_request_id: str) -> bool:
        """
        Start the orchestrator for an outline request.

        Returns:
            False if a workflow for the request is already running
        """
        return self._dispatch(
            outline_request_id,
            SUBJECT_OUTLINE,
            lambda db: self.factory.outline_workflow(db, outline_request_id, self.dispatch_lesson),
        )

    def dispatch_lesson(self, lesson_id: str) -> bool:
        """
        Start the workflow of one lesson.

        Returns:
            False if a workflow for the lesson is already running
        """
        return self._dispatch(
            lesson_id,
            SUBJECT_LESSON,
            lambda db: self.factory.lesson_workflow(db, lesson_id),
        )

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """Wait for running workflows to finish."""
        logger.info(f"Waiting for {self.registry.active_count()} running workflow(s)")
        return self.registry.join_all(timeout)

    def _dispatch(self, subject_id: str, kind: str, build: Callable[[DBSession], BaseWorkflow]) -> bool:
        if self.run_inline:
            self._execute(subject_id, kind, build)
            return True
        try:
            self.registry.start(subject_id, lambda: self._execute(subject_id, kind, build), kind)
        except WorkflowAlreadyRunning:
            logger.info(f"Workflow for {kind} {subject_id} is already running, not starting another")
            return False
        return True

    def _execute(self, subject_id: str, kind: str, build: Callable[[DBSession], BaseWorkflow]):
        session = self.session_factory()
        try:
            workflow = build(session)
            workflow.run()
        except (LessonNotFoundException, OutlineRequestNotFoundException) as e:
            # No row means no lifecycle, so nothing is recorded
            logger.warning(f"Skipping workflow for {kind} {subject_id}: {e}")
        except Exception as e:
            logger.error(
                f"Workflow for {kind} {subject_id} crashed: {e}",
                exc_info=True,
                extra={"subject_id": subject_id},
            )
            self._mark_error(session, subject_id, kind, e)
        finally:
            session.close()

    def _mark_error(self, session: DBSession, subject_id: str, kind: str, error: Exception):
        # Ensure the subject ends in error, retry once on DB error
        for attempt in range(2):
            try:
                session.rollback()
                ledger = StatusLedger(session)
                if not ledger.is_terminal(subject_id):
                    ledger.append(subject_id, kind, STATUS_ERROR, {
                        "message": str(error),
                        "error": type(error).__name__,
                        "stage": STAGE_WORKFLOW,
                        "kind": "unknown",
                    })
                break
            except Exception:
                if attempt == 0:
                    logger.warning("First attempt to record workflow error failed, retrying...")
                    time.sleep(1)
                else:
                    logger.error(
                        f"Could not mark {kind} {subject_id} as error; "
                        "it will be resumed on the next startup"
                    )


# Global dispatcher instance
_dispatcher: Optional[PipelineDispatcher] = None


def get_dispatcher() -> PipelineDispatcher:
    """
    Get or create the global dispatcher (also used as a FastAPI dependency).

    Returns:
        PipelineDispatcher: Dispatcher sharing one registry for the process
    """
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = PipelineDispatcher()
    return _dispatcher


def reset_dispatcher():
    """Reset the global dispatcher (useful for testing)."""
    global _dispatcher
    _dispatcher = None
