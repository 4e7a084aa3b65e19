"""Compilation of validated lesson code into bytecode artifacts."""
import base64
import logging
import py_compile
from pathlib import Path
from typing import Optional

from config import get_settings
from shared.models.domain import CompiledArtifact
from shared.utils.constants import (
    LESSON_COMPILED_FILENAME,
    LESSON_SOURCE_FILENAME,
    STAGE_COMPILATION,
)
from shared.utils.exceptions import StageSystemError

logger = logging.getLogger(__name__)


class LessonCompiler:
    """
    Writes lesson source and its byte-compiled form under
    `{output_dir}/{lesson_id}/`.
    """

    def __init__(self, output_dir: Optional[str] = None):
        self.output_dir = Path(output_dir or get_settings().lesson_output_dir)

    def compile(self, code: str, lesson_id: str) -> CompiledArtifact:
        """
        Compile lesson code and write both artifacts.

        Args:
            code: Validated lesson source
            lesson_id: Lesson identifier, used as the artifact directory name

        Returns:
            CompiledArtifact with base64 bytecode and the written file paths

        Raises:
            StageSystemError: If writing or compiling fails
        """
        lesson_dir = self.output_dir / lesson_id
        source_path = lesson_dir / LESSON_SOURCE_FILENAME
        compiled_path = lesson_dir / LESSON_COMPILED_FILENAME

        try:
            lesson_dir.mkdir(parents=True, exist_ok=True)
            source_path.write_text(code, encoding="utf-8")
            logger.info(f"Wrote lesson source: {source_path}")

            py_compile.compile(
                str(source_path),
                cfile=str(compiled_path),
                doraise=True,
            )
            bytecode = compiled_path.read_bytes()
        except (OSError, py_compile.PyCompileError) as e:
            logger.error(f"Compilation failed for lesson {lesson_id}: {e}")
            raise StageSystemError(
                STAGE_COMPILATION,
                f"Failed to compile lesson: {e}",
                kind="compilation_error",
                original_error=e,
            ) from e

        if not bytecode:
            raise StageSystemError(STAGE_COMPILATION, "Compilation produced no output", kind="compilation_error")

        logger.info(f"Wrote compiled lesson: {compiled_path}")
        return CompiledArtifact(
            output=base64.b64encode(bytecode).decode("ascii"),
            locations={"source": str(source_path), "compiled": str(compiled_path)},
        )
