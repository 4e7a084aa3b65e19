"""Tests for content_pipeline/services/code_validator.py"""

import pytest
from unittest.mock import patch

from content_pipeline.services.code_validator import LessonCodeValidator, blocked_import_message


def _types(result):
    return [e.type for e in result.errors]


class TestLessonCodeValidator:

    def test_valid_code(self, valid_lesson_code):
        result = LessonCodeValidator().check(valid_lesson_code)

        assert result.valid is True
        assert result.errors == []

    def test_syntax_error_stops_other_checks(self):
        result = LessonCodeValidator().check("import os\ndef render(:\n    pass\n")

        assert result.valid is False
        assert _types(result) == ["syntax"]
        assert result.errors[0].line == 2

    def test_blocked_import(self, invalid_lesson_code):
        result = LessonCodeValidator().check(invalid_lesson_code)

        assert result.valid is False
        assert _types(result) == ["import"]
        assert result.errors[0].line == 1
        assert "Operating system access" in result.errors[0].message

    @pytest.mark.parametrize("source", [
        "from subprocess import run\n",
        "import numpy\n",
        "from . import helpers\n",
        "import os.path\n",
    ])
    def test_disallowed_imports(self, source):
        result = LessonCodeValidator().check(source + "\ndef render():\n    return []\n")

        assert result.valid is False
        assert "import" in _types(result)

    def test_allowed_submodule_import(self):
        result = LessonCodeValidator().check("from collections import Counter\n\ndef render():\n    return []\n")
        assert result.valid is True

    @pytest.mark.parametrize("call", ["eval('1')", "open('f')", "__import__('os')", "exec('x=1')"])
    def test_forbidden_builtins(self, call):
        result = LessonCodeValidator().check(f"def render():\n    return {call}\n")

        assert result.valid is False
        assert _types(result) == ["builtin"]

    def test_forbidden_attribute(self):
        result = LessonCodeValidator().check("def render():\n    return ().__class__.__bases__\n")

        assert result.valid is False
        assert _types(result) == ["attribute"]

    def test_print_is_only_a_warning(self):
        result = LessonCodeValidator().check("def render():\n    print('hi')\n    return []\n")

        assert result.valid is True
        assert result.errors[0].severity == "warning"
        assert result.error_messages() == []

    def test_missing_entry_point(self):
        result = LessonCodeValidator().check("def show():\n    return []\n")

        assert result.valid is False
        assert result.errors[0].message == "Missing top-level function render()"

    def test_entry_point_requiring_arguments(self):
        result = LessonCodeValidator().check("def render(level):\n    return []\n")

        assert result.valid is False
        assert _types(result) == ["structure"]

    def test_entry_point_with_defaults_is_fine(self):
        result = LessonCodeValidator().check("def render(level=1, *, verbose=False):\n    return []\n")
        assert result.valid is True

    def test_checker_crash_is_reported_not_raised(self, valid_lesson_code):
        with patch.object(LessonCodeValidator, "_check", side_effect=RecursionError("too deep")):
            result = LessonCodeValidator().check(valid_lesson_code)

        assert result.valid is False
        assert _types(result) == ["internal"]
        assert result.error_messages() == ["Line 1: Validator error: too deep"]


class TestBlockedImportMessage:

    def test_known_module(self):
        assert blocked_import_message("socket") == 'Import "socket": Network access is not allowed in lessons'

    def test_unknown_module(self):
        assert "is not in the whitelist" in blocked_import_message("numpy")
