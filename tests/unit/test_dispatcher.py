"""
Tests for content_pipeline/workflows/dispatcher.py

Runs complete pipelines inline against a file-backed SQLite database, plus
the crash guard that marks subjects as error.
"""

import pytest
from unittest.mock import Mock, patch
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from content_pipeline.services.validation_rules import ThresholdConfig
from content_pipeline.workflows.dispatcher import (
    PipelineDispatcher,
    WorkflowFactory,
    get_dispatcher,
    reset_dispatcher,
)
from content_pipeline.workflows.lesson_workflow import LessonWorkflow
from content_pipeline.workflows.outline_workflow import OutlineWorkflow
from content_pipeline.workflows.registry import WorkflowRegistry
from shared.models.domain import BlocksResult, CodeValidationResult, CompiledArtifact
from shared.models.entities import Base
from shared.repositories.lesson_repository import LessonRepository
from shared.repositories.outline_request_repository import OutlineRequestRepository
from shared.repositories.status_ledger import StatusLedger
from shared.utils.exceptions import WorkflowAlreadyRunning


@pytest.fixture
def file_sessions(tmp_path):
    """Sessions on separate connections, as workflows get in production."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'pipeline.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()


@pytest.fixture
def stages(sample_outcome, sample_blocks_data):
    validator = Mock()
    validator.validate.return_value = sample_outcome
    blocks_generator = Mock()
    blocks_generator.generate_blocks.return_value = BlocksResult.model_validate(sample_blocks_data)
    code_generator = Mock()
    code_generator.generate.return_value = "def render():\n    return []\n"
    code_validator = Mock()
    code_validator.check.return_value = CodeValidationResult(valid=True)
    compiler = Mock()
    compiler.compile.return_value = CompiledArtifact(output="AA==", locations={})
    return Mock(
        validator=validator,
        blocks_generator=blocks_generator,
        code_generator=code_generator,
        code_validator=code_validator,
        compiler=compiler,
    )


@pytest.fixture
def factory(stages):
    fake = Mock()
    fake.outline_workflow.side_effect = lambda db, outline_id, dispatch_lesson=None: OutlineWorkflow(
        db,
        outline_id,
        validator=stages.validator,
        blocks_generator=stages.blocks_generator,
        thresholds=ThresholdConfig(),
        dispatch_lesson=dispatch_lesson,
    )
    fake.lesson_workflow.side_effect = lambda db, lesson_id: LessonWorkflow(
        db,
        lesson_id,
        code_generator=stages.code_generator,
        validator=stages.code_validator,
        compiler=stages.compiler,
        max_validation_attempts=3,
    )
    return fake


def _submit(session_factory, outline="Teach fractions"):
    session = session_factory()
    try:
        request = OutlineRequestRepository(session).create(outline, outline)
        StatusLedger(session).append(request.id, "outline", "submitted")
        return request.id
    finally:
        session.close()


# ===========================================================================
# Inline pipelines
# ===========================================================================

class TestInlinePipeline:

    def test_outline_and_lessons_reach_terminal(self, file_sessions, factory):
        outline_id = _submit(file_sessions)
        dispatcher = PipelineDispatcher(session_factory=file_sessions, factory=factory, run_inline=True)

        assert dispatcher.dispatch_outline(outline_id) is True

        session = file_sessions()
        ledger = StatusLedger(session)
        assert ledger.latest(outline_id).status == "outline.blocks.generated"
        lessons = LessonRepository(session).list_for_outline(outline_id)
        assert len(lessons) == 2
        assert all(ledger.latest(lesson.id).status == "lesson.compiled" for lesson in lessons)
        session.close()

    def test_one_lesson_failing_does_not_affect_siblings(self, file_sessions, factory, stages):
        stages.code_generator.generate.side_effect = [
            RuntimeError("model crashed"),
            "def render():\n    return []\n",
        ]
        outline_id = _submit(file_sessions)
        dispatcher = PipelineDispatcher(session_factory=file_sessions, factory=factory, run_inline=True)

        dispatcher.dispatch_outline(outline_id)

        session = file_sessions()
        ledger = StatusLedger(session)
        lessons = LessonRepository(session).list_for_outline(outline_id)
        assert [ledger.latest(lesson.id).status for lesson in lessons] == ["error", "lesson.compiled"]
        assert ledger.latest(outline_id).status == "outline.blocks.generated"
        session.close()

    def test_rejected_outline_starts_no_lessons(self, file_sessions, factory, stages, sample_outcome):
        stages.validator.validate.return_value = sample_outcome.model_copy(update={"safety_score": 0.1})
        outline_id = _submit(file_sessions)
        dispatcher = PipelineDispatcher(session_factory=file_sessions, factory=factory, run_inline=True)

        dispatcher.dispatch_outline(outline_id)

        factory.lesson_workflow.assert_not_called()
        session = file_sessions()
        assert StatusLedger(session).latest(outline_id).status == "failed"
        session.close()


# ===========================================================================
# Threaded dispatch
# ===========================================================================

class TestThreadedDispatch:

    def test_runs_on_registry_and_shutdown_waits(self, file_sessions, factory):
        outline_id = _submit(file_sessions)
        dispatcher = PipelineDispatcher(session_factory=file_sessions, factory=factory)

        assert dispatcher.dispatch_outline(outline_id) is True
        assert dispatcher.shutdown(timeout=10) is True

        session = file_sessions()
        ledger = StatusLedger(session)
        lessons = LessonRepository(session).list_for_outline(outline_id)
        assert ledger.latest(outline_id).status == "outline.blocks.generated"
        assert all(ledger.latest(lesson.id).status == "lesson.compiled" for lesson in lessons)
        session.close()

    def test_duplicate_dispatch_is_refused(self, session_factory):
        registry = Mock(spec=WorkflowRegistry)
        registry.start.side_effect = WorkflowAlreadyRunning("o-1")
        dispatcher = PipelineDispatcher(session_factory=session_factory, registry=registry, factory=Mock())

        assert dispatcher.dispatch_outline("o-1") is False


# ===========================================================================
# Crash guard
# ===========================================================================

class TestCrashGuard:

    def test_crash_marks_subject_error(self, session_factory, db_session):
        StatusLedger(db_session).append("l-1", "lesson", "lesson.generating")
        factory = Mock()
        factory.lesson_workflow.return_value.run.side_effect = RuntimeError("worker died")
        dispatcher = PipelineDispatcher(session_factory=session_factory, factory=factory, run_inline=True)

        dispatcher.dispatch_lesson("l-1")

        record = StatusLedger(db_session).latest("l-1")
        assert record.status == "error"
        assert StatusLedger.metadata_of(record) == {
            "message": "worker died",
            "error": "RuntimeError",
            "stage": "workflow",
            "kind": "unknown",
        }

    def test_crash_after_terminal_appends_nothing(self, session_factory, db_session):
        StatusLedger(db_session).append("l-1", "lesson", "lesson.compiled")
        factory = Mock()
        factory.lesson_workflow.return_value.run.side_effect = RuntimeError("late crash")
        dispatcher = PipelineDispatcher(session_factory=session_factory, factory=factory, run_inline=True)

        dispatcher.dispatch_lesson("l-1")

        assert StatusLedger.statuses(StatusLedger(db_session).history("l-1")) == ["lesson.compiled"]

    def test_crash_while_building_workflow(self, session_factory, db_session):
        factory = Mock()
        factory.outline_workflow.side_effect = ValueError("bad config")
        dispatcher = PipelineDispatcher(session_factory=session_factory, factory=factory, run_inline=True)

        dispatcher.dispatch_outline("o-1")

        assert StatusLedger(db_session).latest("o-1").status == "error"

    def test_missing_lesson_records_nothing(self, file_sessions, factory):
        dispatcher = PipelineDispatcher(session_factory=file_sessions, factory=factory, run_inline=True)

        dispatcher.dispatch_lesson("no-such-lesson")

        session = file_sessions()
        assert StatusLedger(session).latest("no-such-lesson") is None
        session.close()

    def test_missing_outline_records_nothing(self, file_sessions, factory):
        dispatcher = PipelineDispatcher(session_factory=file_sessions, factory=factory, run_inline=True)

        dispatcher.dispatch_outline("no-such-outline")

        session = file_sessions()
        assert StatusLedger(session).history("no-such-outline") == []
        factory.lesson_workflow.assert_not_called()
        session.close()

    @patch("content_pipeline.workflows.dispatcher.time.sleep")
    @patch("content_pipeline.workflows.dispatcher.StatusLedger")
    def test_error_marking_retries_once(self, mock_ledger_cls, mock_sleep, session_factory):
        ledger = Mock()
        ledger.is_terminal.side_effect = [Exception("db locked"), False]
        mock_ledger_cls.return_value = ledger
        factory = Mock()
        factory.lesson_workflow.return_value.run.side_effect = RuntimeError("boom")
        dispatcher = PipelineDispatcher(session_factory=session_factory, factory=factory, run_inline=True)

        dispatcher.dispatch_lesson("l-1")

        mock_sleep.assert_called_once_with(1)
        ledger.append.assert_called_once()
        assert ledger.append.call_args.args[2] == "error"

    @patch("content_pipeline.workflows.dispatcher.time.sleep")
    @patch("content_pipeline.workflows.dispatcher.StatusLedger")
    def test_error_marking_gives_up_after_retry(self, mock_ledger_cls, mock_sleep, session_factory):
        ledger = Mock()
        ledger.is_terminal.side_effect = Exception("db gone")
        mock_ledger_cls.return_value = ledger
        factory = Mock()
        factory.lesson_workflow.return_value.run.side_effect = RuntimeError("boom")
        dispatcher = PipelineDispatcher(session_factory=session_factory, factory=factory, run_inline=True)

        dispatcher.dispatch_lesson("l-1")

        assert ledger.is_terminal.call_count == 2
        ledger.append.assert_not_called()


# ===========================================================================
# Factory and global instance
# ===========================================================================

class TestWorkflowFactory:

    def _settings(self, provider="openai"):
        return Mock(
            llm_provider=provider,
            ollama_host="http://localhost:11434",
            validation_model="val-model",
            generation_model="gen-model",
            code_generation_model="code-model",
            age_bounds=(5, 16),
            min_safety_score=0.7,
            min_specificity_score=0.7,
            min_confidence=0.6,
            require_taxonomy_match=False,
            lesson_output_dir="tmp/generated",
            max_validation_attempts=4,
        )

    @patch("content_pipeline.workflows.dispatcher.create_llm_service")
    def test_builds_stage_services_once(self, mock_create, db_session):
        factory = WorkflowFactory(self._settings())

        first = factory.outline_workflow(db_session, "o-1")
        second = factory.outline_workflow(db_session, "o-2")

        assert first.validator is second.validator
        models = [c.args[0] for c in mock_create.call_args_list]
        assert models == ["val-model", "gen-model"]

    @patch("content_pipeline.workflows.dispatcher.create_llm_service")
    def test_lesson_workflow_uses_settings(self, mock_create, db_session):
        factory = WorkflowFactory(self._settings())

        workflow = factory.lesson_workflow(db_session, "l-1")

        assert workflow.max_validation_attempts == 4
        mock_create.assert_called_once()
        assert mock_create.call_args.args[0] == "code-model"

    def test_host_only_for_ollama(self):
        assert WorkflowFactory(self._settings("openai")).host is None
        assert WorkflowFactory(self._settings("ollama")).host == "http://localhost:11434"


class TestGlobalDispatcher:

    def test_get_dispatcher_is_cached(self):
        reset_dispatcher()
        with patch("content_pipeline.workflows.dispatcher.WorkflowFactory"):
            assert get_dispatcher() is get_dispatcher()
        reset_dispatcher()
