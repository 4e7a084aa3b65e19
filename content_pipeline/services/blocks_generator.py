"""Block generation stage - turns a validated outline into lessons of content blocks."""
import json
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from content_pipeline.services.validation_rules import extract_validation_feedback
from shared.models.domain import BlocksResult, ValidationOutcome
from shared.prompts.loader import PromptLoader
from shared.services.llm_service import LLMService, LLMServiceError
from shared.utils.constants import DEFAULT_AGE_BOUNDS, STAGE_BLOCKS_GENERATION
from shared.utils.exceptions import FlowFailure
from shared.utils.llm_errors import to_stage_error

logger = logging.getLogger(__name__)


class BlocksGenerationService:
    """
    Generates content blocks grouped into lessons.

    An unreachable or failing model is a system error. A response that
    cannot be used (not JSON, wrong shape, no lessons, empty lessons) is a
    flow failure.
    """

    def __init__(
        self,
        llm_service: LLMService,
        prompt_loader=PromptLoader,
        age_bounds=DEFAULT_AGE_BOUNDS,
        host: Optional[str] = None,
    ):
        self.llm_service = llm_service
        self.prompt_loader = prompt_loader
        self.age_bounds = age_bounds
        self.host = host

    def generate_blocks(self, outline: str, outcome: ValidationOutcome) -> BlocksResult:
        """
        Generate lessons and blocks for a validated outline.

        Args:
            outline: Outline text
            outcome: Assessment that passed the thresholds

        Returns:
            BlocksResult with at least one lesson, each with at least one block

        Raises:
            StageSystemError: If the LLM call fails
            FlowFailure: If the response is unusable
        """
        feedback = extract_validation_feedback(outcome)
        prompt = self.prompt_loader.format(
            "blocks_generation",
            outline=outline,
            min_age=self.age_bounds[0],
            max_age=self.age_bounds[1],
            topic=outcome.topic,
            domains=", ".join(outcome.domains),
            age_range=list(outcome.target_age_range),
            feedback=json.dumps(feedback, indent=2),
        )

        logger.info(json.dumps({
            "step": "BLOCKS_GENERATION",
            "status": "starting",
            "topic": outcome.topic
        }))

        try:
            response = self.llm_service.call(prompt, json_mode=True)
        except LLMServiceError as e:
            logger.error(f"Block generation call failed: {e}")
            raise to_stage_error(
                STAGE_BLOCKS_GENERATION, e, model_name=self.llm_service.model_id, host=self.host
            ) from e

        result = self._parse(response.get("output_text"))
        if not result.metadata.topic:
            result.metadata.topic = outcome.topic
        if not result.metadata.domains:
            result.metadata.domains = list(outcome.domains)
        if not result.metadata.age_range:
            result.metadata.age_range = list(outcome.target_age_range)

        logger.info(json.dumps({
            "step": "BLOCKS_GENERATION",
            "status": "complete",
            "num_lessons": len(result.lessons),
            "num_blocks": sum(len(lesson.blocks) for lesson in result.lessons)
        }))
        return result

    def _parse(self, output_text: Any) -> BlocksResult:
        try:
            data: Dict[str, Any] = json.loads(output_text)
        except (json.JSONDecodeError, TypeError) as e:
            raise FlowFailure(
                "Block generation returned an unparseable response",
                {"stage": STAGE_BLOCKS_GENERATION, "error": str(e)},
            ) from e

        if not isinstance(data, dict) or not data.get("lessons"):
            raise FlowFailure(
                "Block generation produced no lessons",
                {"stage": STAGE_BLOCKS_GENERATION},
            )

        try:
            return BlocksResult.model_validate(data)
        except ValidationError as e:
            raise FlowFailure(
                "Block generation returned lessons in an unexpected shape",
                {"stage": STAGE_BLOCKS_GENERATION, "error": str(e)},
            ) from e
