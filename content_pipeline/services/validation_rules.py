"""
Validation rules - threshold policy applied to outline scores.

The scorer only produces numbers; everything that decides pass or fail
lives here as pure functions over a ValidationOutcome and a ThresholdConfig.
"""
from typing import Any, Dict, List, Tuple
from pydantic import BaseModel, Field

from config import get_settings
from shared.models.domain import ValidationOutcome
from shared.utils import constants


class ThresholdConfig(BaseModel):
    """Minimum scores and bounds an outline must meet."""
    min_safety: float = constants.DEFAULT_MIN_SAFETY_SCORE
    min_specificity: float = constants.DEFAULT_MIN_SPECIFICITY_SCORE
    min_confidence: float = constants.DEFAULT_MIN_CONFIDENCE
    age_bounds: Tuple[int, int] = constants.DEFAULT_AGE_BOUNDS
    require_actionable: bool = True
    require_taxonomy_match: bool = False

    @classmethod
    def from_settings(cls, settings=None) -> "ThresholdConfig":
        settings = settings or get_settings()
        return cls(
            min_safety=settings.min_safety_score,
            min_specificity=settings.min_specificity_score,
            min_confidence=settings.min_confidence,
            age_bounds=settings.age_bounds,
            require_taxonomy_match=settings.require_taxonomy_match,
        )


class ThresholdDecision(BaseModel):
    """Result of applying the threshold policy."""
    passed: bool
    errors: List[str] = Field(default_factory=list)
    outcome: ValidationOutcome


def _age_range_ok(age_range: List[int], bounds: Tuple[int, int]) -> bool:
    if len(age_range) != 2:
        return False
    low, high = age_range
    return low <= high and bounds[0] <= low and high <= bounds[1]


def apply_thresholds(outcome: ValidationOutcome, config: ThresholdConfig) -> bool:
    """
    Decide whether an outline is acceptable.

    Pure: the same outcome and config always give the same answer.
    """
    return (
        outcome.safety_score >= config.min_safety
        and outcome.specificity_score >= config.min_specificity
        and outcome.confidence >= config.min_confidence
        and _age_range_ok(outcome.target_age_range, config.age_bounds)
        and (outcome.actionable or not config.require_actionable)
        and (outcome.matches_taxonomy or not config.require_taxonomy_match)
    )


def _pct(score: float) -> str:
    return f"{score * 100:.0f}%"


def describe_threshold_failures(outcome: ValidationOutcome, config: ThresholdConfig) -> List[str]:
    """
    Human readable reasons an outline falls short of the thresholds.

    Returns an empty list when apply_thresholds would pass.
    """
    reasons: List[str] = []

    if outcome.safety_score < config.min_safety:
        label = "Unsafe content" if outcome.safety_score < 0.3 else "Unclear safety"
        reasons.append(
            f"{label} (safety_score: {_pct(outcome.safety_score)}, "
            f"must be >= {_pct(config.min_safety)}): {outcome.reasoning}"
        )
        if outcome.flags:
            reasons.append(f"Concerns: {', '.join(outcome.flags)}")

    if outcome.confidence < config.min_confidence:
        reasons.append(
            f"Low confidence in assessment ({_pct(outcome.confidence)}, "
            f"must be >= {_pct(config.min_confidence)})"
        )

    if outcome.specificity_score < config.min_specificity:
        topic_info = f'Detected: "{outcome.topic}"' if outcome.topic else "No clear topic detected"
        reasons.append(
            f"Too vague (specificity_score: {_pct(outcome.specificity_score)}, "
            f"must be >= {_pct(config.min_specificity)}): {topic_info}"
        )
        if outcome.suggestions:
            reasons.append(f"Suggestions: {'; '.join(outcome.suggestions)}")

    if config.require_taxonomy_match and not outcome.matches_taxonomy:
        reasons.append(f'Topic "{outcome.topic}" not found in our taxonomy')

    if config.require_actionable and not outcome.actionable:
        reasons.append("Not actionable: Insufficient information to generate content")
        if outcome.missing_info:
            reasons.append(f"Missing: {', '.join(outcome.missing_info)}")

    if not _age_range_ok(outcome.target_age_range, config.age_bounds):
        low, high = config.age_bounds
        reasons.append(
            f"Age range {list(outcome.target_age_range)} is outside the supported range [{low}, {high}]"
        )

    return reasons


def evaluate(outcome: ValidationOutcome, config: ThresholdConfig) -> ThresholdDecision:
    """
    Apply the thresholds and fill in outcome.valid.

    Errors reported by the scorer itself come first, followed by threshold
    rejection reasons.
    """
    passed = apply_thresholds(outcome, config)
    errors = list(outcome.errors) + describe_threshold_failures(outcome, config)
    decided = outcome.model_copy(update={"valid": passed})
    return ThresholdDecision(passed=passed, errors=errors, outcome=decided)


def extract_validation_feedback(outcome: ValidationOutcome) -> Dict[str, Any]:
    """Subset of the assessment that is useful to block generation."""
    return {
        "topic": outcome.topic,
        "domains": list(outcome.domains),
        "requirements": list(outcome.requirements),
        "target_age_range": list(outcome.target_age_range),
        "reasoning": outcome.reasoning,
        "suggestions": list(outcome.suggestions),
    }
