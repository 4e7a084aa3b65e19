"""Outline validation stage - scores an outline with the LLM."""
import json
import logging
from typing import Optional

from pydantic import ValidationError

from shared.models.domain import ValidationOutcome
from shared.prompts.loader import PromptLoader
from shared.services.llm_service import LLMService, LLMServiceError
from shared.utils.constants import DEFAULT_AGE_BOUNDS, STAGE_OUTLINE_VALIDATION, TOPIC_TAXONOMY
from shared.utils.llm_errors import to_stage_error

logger = logging.getLogger(__name__)


class OutlineValidationService:
    """
    Asks the scorer for an assessment of an outline.

    Returns raw scores only; pass/fail is decided by validation_rules.
    """

    def __init__(
        self,
        llm_service: LLMService,
        prompt_loader=PromptLoader,
        age_bounds=DEFAULT_AGE_BOUNDS,
        host: Optional[str] = None,
    ):
        """
        Args:
            llm_service: Service bound to the validation model
            prompt_loader: Template loader class exposing format() (PromptLoader)
            age_bounds: Supported learner ages, shown to the scorer
            host: Provider host, used in connection error messages
        """
        self.llm_service = llm_service
        self.prompt_loader = prompt_loader
        self.age_bounds = age_bounds
        self.host = host

    def validate(self, outline: str) -> ValidationOutcome:
        """
        Score an outline.

        Args:
            outline: Outline text

        Returns:
            ValidationOutcome with valid left as None

        Raises:
            StageSystemError: If the LLM call fails or returns an unusable response
        """
        prompt = self.prompt_loader.format(
            "outline_validation",
            outline=outline,
            min_age=self.age_bounds[0],
            max_age=self.age_bounds[1],
            taxonomy=self._format_taxonomy(),
        )

        logger.info(json.dumps({
            "step": "OUTLINE_VALIDATION",
            "status": "starting",
            "outline_length": len(outline)
        }))

        try:
            response = self.llm_service.call(prompt, json_mode=True)
            data = self.llm_service.parse_json_response(response["output_text"])
            if not isinstance(data, dict):
                raise LLMServiceError("Invalid response: expected a JSON object")
            data.pop("valid", None)
            outcome = ValidationOutcome.model_validate(data)
        except (LLMServiceError, ValidationError) as e:
            logger.error(f"Outline validation failed: {e}")
            raise to_stage_error(
                STAGE_OUTLINE_VALIDATION, e, model_name=self.llm_service.model_id, host=self.host
            ) from e

        logger.info(json.dumps({
            "step": "OUTLINE_VALIDATION",
            "status": "complete",
            "safety_score": outcome.safety_score,
            "specificity_score": outcome.specificity_score,
            "confidence": outcome.confidence,
            "topic": outcome.topic
        }))
        return outcome

    @staticmethod
    def _format_taxonomy() -> str:
        return "\n".join(
            f"- {topic}: {', '.join(domains)}" for topic, domains in TOPIC_TAXONOMY.items()
        )
