"""Lesson code generation and regeneration."""
import json
import logging
from typing import Any, List, Optional

from shared.models.domain import LessonContext
from shared.prompts.loader import PromptLoader
from shared.services.llm_service import LLMService, LLMServiceError
from shared.utils.code_utils import strip_markdown_fences
from shared.utils.constants import (
    ALLOWED_IMPORTS,
    STAGE_CODE_GENERATION,
    STAGE_CODE_REGENERATION,
)
from shared.utils.exceptions import StageSystemError
from shared.utils.llm_errors import to_stage_error

logger = logging.getLogger(__name__)


class LessonCodeGenerator:
    """
    Produces lesson source code from blocks, and repairs code that failed
    structural validation.

    Both operations return code with any markdown fence removed. Model
    failures and empty responses raise StageSystemError.
    """

    def __init__(
        self,
        llm_service: LLMService,
        prompt_loader=PromptLoader,
        host: Optional[str] = None,
    ):
        self.llm_service = llm_service
        self.prompt_loader = prompt_loader
        self.host = host

    def generate(self, title: str, blocks: List[Any], context: LessonContext) -> str:
        """
        Generate lesson code.

        Args:
            title: Lesson title
            blocks: Ordered content blocks
            context: Topic, domains, age range and complexity shared by the outline

        Returns:
            Lesson source code
        """
        prompt = self.prompt_loader.format(
            "lesson_code_generation",
            title=title,
            blocks=json.dumps(blocks, indent=2),
            topic=context.topic,
            domains=", ".join(context.domains),
            age_range=self._format_age_range(context.age_range),
            complexity=context.complexity,
            allowed_imports=", ".join(sorted(ALLOWED_IMPORTS)),
        )
        return self._complete(prompt, STAGE_CODE_GENERATION, title)

    def regenerate(
        self,
        original_code: str,
        errors: List[str],
        title: str,
        blocks: List[Any],
        attempt_number: int,
    ) -> str:
        """
        Repair code using the errors reported by the validator.

        Args:
            original_code: Code that failed validation
            errors: Validator error messages
            title: Lesson title
            blocks: Ordered content blocks
            attempt_number: Validation attempt that produced the errors

        Returns:
            Repaired lesson source code
        """
        prompt = self.prompt_loader.format(
            "lesson_code_regeneration",
            code=original_code,
            errors="\n".join(f"- {error}" for error in errors),
            title=title,
            blocks=json.dumps(blocks, indent=2),
            attempt_number=attempt_number,
            allowed_imports=", ".join(sorted(ALLOWED_IMPORTS)),
        )
        return self._complete(prompt, STAGE_CODE_REGENERATION, title)

    def _complete(self, prompt: str, stage: str, title: str) -> str:
        logger.info(json.dumps({
            "step": stage.upper(),
            "status": "starting",
            "title": title
        }))

        try:
            response = self.llm_service.call(prompt, json_mode=False)
        except LLMServiceError as e:
            logger.error(f"{stage} failed for '{title}': {e}")
            raise to_stage_error(stage, e, model_name=self.llm_service.model_id, host=self.host) from e

        code = strip_markdown_fences(response.get("output_text") or "")
        if not code:
            raise StageSystemError(stage, "Model returned no code", kind="validation_error")

        logger.info(json.dumps({
            "step": stage.upper(),
            "status": "complete",
            "title": title,
            "code_length": len(code)
        }))
        return code

    @staticmethod
    def _format_age_range(age_range: List[int]) -> str:
        if len(age_range) == 2:
            return f"{age_range[0]}-{age_range[1]}"
        return "all ages"
