"""Tests for content_pipeline/services/outline_service.py"""

import pytest

from content_pipeline.services.outline_service import OutlineService
from shared.repositories.lesson_repository import LessonRepository
from shared.repositories.status_ledger import StatusLedger
from shared.utils.exceptions import LessonNotFoundException, OutlineRequestNotFoundException


class TestSubmit:

    def test_submit_records_submitted(self, db_session):
        request = OutlineService(db_session).submit("  Fractions for 10 year olds\nmore detail  ")

        assert request.outline == "Fractions for 10 year olds\nmore detail"
        assert request.title == "Fractions for 10 year olds"
        assert StatusLedger.statuses(StatusLedger(db_session).history(request.id)) == ["submitted"]

    def test_long_first_line_is_truncated(self, db_session):
        request = OutlineService(db_session).submit("x" * 150)
        assert len(request.title) == 100

    @pytest.mark.parametrize("outline", ["", "   ", None])
    def test_empty_outline_raises(self, db_session, outline):
        with pytest.raises(ValueError, match="Outline must not be empty"):
            OutlineService(db_session).submit(outline)


class TestViews:

    def test_get_outline(self, db_session):
        service = OutlineService(db_session)
        request = service.submit("Fractions")
        lesson = LessonRepository(db_session).create(request.id, 0, "Halves", [{"type": "x"}])
        StatusLedger(db_session).append(lesson.id, "lesson", "lesson.generating")

        view = service.get_outline(request.id)

        assert view.status == "submitted"
        assert view.status_metadata is None
        assert [(l.title, l.status) for l in view.lessons] == [("Halves", "lesson.generating")]

    def test_get_outline_missing(self, db_session):
        with pytest.raises(OutlineRequestNotFoundException):
            OutlineService(db_session).get_outline("missing")

    def test_get_lesson(self, db_session):
        service = OutlineService(db_session)
        request = service.submit("Fractions")
        repo = LessonRepository(db_session)
        lesson = repo.create(request.id, 0, "Halves", [{"type": "x"}])
        repo.save_generated_code(lesson.id, "def render():\n    return []\n")
        StatusLedger(db_session).append(lesson.id, "lesson", "failed", {"message": "Validation failed after 3 attempts"})

        view = service.get_lesson(lesson.id)

        assert view.status == "failed"
        assert view.status_metadata == {"message": "Validation failed after 3 attempts"}
        assert view.generated_code.startswith("def render")

    def test_get_lesson_missing(self, db_session):
        with pytest.raises(LessonNotFoundException):
            OutlineService(db_session).get_lesson("missing")

    def test_status_history_checks_subject_kind(self, db_session):
        service = OutlineService(db_session)
        request = service.submit("Fractions")

        assert [r.status for r in service.get_status_history(request.id)] == ["submitted"]
        with pytest.raises(LessonNotFoundException):
            service.get_status_history(request.id, "lesson")
