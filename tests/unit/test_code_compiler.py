"""Tests for content_pipeline/services/code_compiler.py"""

import base64
import pytest
from unittest.mock import patch

from content_pipeline.services.code_compiler import LessonCompiler
from shared.utils.exceptions import StageSystemError


class TestLessonCompiler:

    def test_writes_source_and_bytecode(self, tmp_path, valid_lesson_code):
        artifact = LessonCompiler(str(tmp_path)).compile(valid_lesson_code, "lesson-1")

        source = tmp_path / "lesson-1" / "lesson.py"
        compiled = tmp_path / "lesson-1" / "lesson.pyc"
        assert source.read_text(encoding="utf-8") == valid_lesson_code
        assert compiled.exists()
        assert artifact.locations == {"source": str(source), "compiled": str(compiled)}
        assert base64.b64decode(artifact.output) == compiled.read_bytes()

    def test_recompiling_overwrites(self, tmp_path, valid_lesson_code):
        compiler = LessonCompiler(str(tmp_path))
        compiler.compile(valid_lesson_code, "lesson-1")
        compiler.compile("def render():\n    return [2]\n", "lesson-1")

        assert (tmp_path / "lesson-1" / "lesson.py").read_text(encoding="utf-8") == "def render():\n    return [2]\n"

    def test_syntax_error_is_system_error(self, tmp_path):
        with pytest.raises(StageSystemError) as exc_info:
            LessonCompiler(str(tmp_path)).compile("def render(:\n", "lesson-1")

        assert exc_info.value.stage == "compilation"
        assert exc_info.value.kind == "compilation_error"

    def test_write_failure_is_system_error(self, tmp_path, valid_lesson_code):
        with patch("pathlib.Path.write_text", side_effect=OSError("read-only file system")):
            with pytest.raises(StageSystemError) as exc_info:
                LessonCompiler(str(tmp_path)).compile(valid_lesson_code, "lesson-1")

        assert "read-only file system" in exc_info.value.message

    @patch("content_pipeline.services.code_compiler.get_settings")
    def test_output_dir_defaults_to_settings(self, mock_settings, tmp_path):
        mock_settings.return_value.lesson_output_dir = str(tmp_path / "generated")

        compiler = LessonCompiler()

        assert compiler.output_dir == tmp_path / "generated"
