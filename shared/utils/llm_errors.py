"""Classification of raw LLM failures into actionable error information."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from shared.utils.exceptions import StageSystemError

MODEL_NOT_FOUND = "model_not_found"
CONNECTION_ERROR = "connection_error"
API_ERROR = "api_error"
VALIDATION_ERROR = "validation_error"
UNKNOWN = "unknown"


@dataclass
class LLMErrorInfo:
    """Structured view of a failed LLM operation."""
    type: str
    message: str
    original_error: Optional[BaseException] = None
    context: Dict[str, Any] = field(default_factory=dict)


def classify_llm_error(
    error: Any,
    model_name: Optional[str] = None,
    host: Optional[str] = None,
    operation: Optional[str] = None,
) -> LLMErrorInfo:
    """
    Turn a raw LLM exception into an LLMErrorInfo.

    Matching is done on the lowercased message, checked in order:
    model not found, connection, API (rate limit / auth), output validation.

    Args:
        error: Exception (or any object) raised by the LLM call
        model_name: Model that was called
        host: Provider host, used in connection messages
        operation: Human name of the operation, used for unknown errors

    Returns:
        LLMErrorInfo with one of the module-level type constants
    """
    context = {"model_name": model_name, "host": host, "operation": operation}

    if not isinstance(error, BaseException):
        return LLMErrorInfo(
            type=UNKNOWN,
            message="Unknown error occurred during LLM operation",
            original_error=Exception(str(error)),
            context=context,
        )

    text = str(error).lower()

    if "model" in text and ("not found" in text or "pull" in text):
        name = model_name or "specified model"
        return LLMErrorInfo(
            type=MODEL_NOT_FOUND,
            message=f"Model '{name}' not found. Check the model name or pull it on the provider host.",
            original_error=error,
            context=context,
        )

    if "connection" in text or "connect" in text or "refused" in text:
        target = host or "the LLM provider"
        return LLMErrorInfo(
            type=CONNECTION_ERROR,
            message=f"Cannot connect to {target}. Please ensure it is running and accessible.",
            original_error=error,
            context=context,
        )

    if any(marker in text for marker in ("api", "rate limit", "unauthorized", "forbidden")):
        return LLMErrorInfo(
            type=API_ERROR,
            message=f"API error: {error}. Please check your configuration and try again.",
            original_error=error,
            context=context,
        )

    if any(marker in text for marker in ("validation", "schema", "parse", "invalid")):
        return LLMErrorInfo(
            type=VALIDATION_ERROR,
            message=(
                f"LLM output validation failed: {error}. "
                "The model may not be following the expected format."
            ),
            original_error=error,
            context=context,
        )

    return LLMErrorInfo(
        type=UNKNOWN,
        message=f"{operation or 'LLM operation'} failed: {error}",
        original_error=error,
        context=context,
    )


def to_stage_error(
    stage: str,
    error: BaseException,
    model_name: Optional[str] = None,
    host: Optional[str] = None,
) -> StageSystemError:
    """Wrap a failed LLM call as a StageSystemError for the given stage."""
    info = classify_llm_error(error, model_name=model_name, host=host, operation=stage)
    return StageSystemError(stage, info.message, kind=info.type, original_error=error)
