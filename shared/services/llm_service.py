"""
LLM Service - Centralized interface for all LLM API calls.

Routes calls to the configured provider (OpenAI, Ollama through its
OpenAI-compatible endpoint, or Google Gemini). The entry point is `call()`.
"""

import json
import time
from typing import Dict, Any, Optional
from openai import OpenAI, OpenAIError, RateLimitError, APITimeoutError
from google import genai
import logging

from config import get_settings

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "ollama", "google")


class LLMService:
    """
    Service for making LLM API calls with retry logic and error handling.

    One instance is bound to one provider and one model.
    """

    def __init__(
        self,
        api_key: str,
        *,
        provider: str,
        model_id: str,
        gemini_api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        max_retries: int = 3,
        initial_retry_delay: float = 1.0,
        timeout: int = 60,
    ):
        if provider not in SUPPORTED_PROVIDERS:
            raise LLMServiceError(f"Unsupported LLM provider: {provider}")

        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self.timeout = timeout
        self.provider = provider
        self.model_id = model_id
        self.base_url = base_url

        if provider == "google":
            if not gemini_api_key:
                raise LLMServiceError("Gemini API key not configured")
            self.client = None
            self.gemini_client = genai.Client(api_key=gemini_api_key)
        else:
            self.client = OpenAI(api_key=api_key, base_url=base_url)
            self.gemini_client = None

    # ─── Primary entry point ───────────────────────────────────────────

    def call(self, prompt: str, json_mode: bool = True) -> Dict[str, Any]:
        """
        Generic LLM call, routed to the configured provider.

        Always returns: {output_text: str, reasoning: str|None}
        """
        if self.provider == "google":
            text = self._call_gemini(prompt, json_mode=json_mode)
        else:
            text = self._call_chat_completions(prompt, json_mode=json_mode)
        return {"output_text": text, "reasoning": None}

    # ─── OpenAI-compatible Chat Completions (openai, ollama) ──────────

    def _call_chat_completions(
        self,
        prompt: str,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        json_mode: bool = True,
    ) -> str:
        """Call the Chat Completions API. Returns raw text."""
        logger.info(json.dumps({
            "step": "LLM_CALL",
            "status": "starting",
            "provider": self.provider,
            "model": self.model_id,
            "params": {"json_mode": json_mode}
        }))

        def _api_call():
            kwargs = {
                "model": self.model_id,
                "messages": [{"role": "user", "content": prompt}],
                "max_completion_tokens": max_tokens,
                "temperature": temperature,
                "timeout": self.timeout,
            }
            if json_mode:
                kwargs["response_format"] = {"type": "json_object"}
            response = self.client.chat.completions.create(**kwargs)
            return response.choices[0].message.content

        return self._execute_with_retry(_api_call, self.model_id)

    # ─── Gemini ───────────────────────────────────────────────────────

    def _call_gemini(
        self,
        prompt: str,
        temperature: float = 0.7,
        json_mode: bool = True,
    ) -> str:
        """Call Google Gemini. Returns raw text."""
        logger.info(json.dumps({
            "step": "LLM_CALL",
            "status": "starting",
            "provider": self.provider,
            "model": self.model_id,
            "params": {"temperature": temperature}
        }))

        def _api_call():
            config = {"temperature": temperature}
            if json_mode:
                config["response_mime_type"] = "application/json"
            response = self.gemini_client.models.generate_content(
                model=self.model_id, contents=prompt, config=config
            )
            return response.text

        return self._execute_with_retry(_api_call, f"Gemini-{self.model_id}")

    # ─── Helpers ──────────────────────────────────────────────────────

    def _execute_with_retry(self, api_call_fn, model_name: str) -> Any:
        """Execute API call with exponential backoff retry logic."""
        last_error = None
        delay = self.initial_retry_delay
        start_time = time.time()

        for attempt in range(self.max_retries):
            try:
                result = api_call_fn()
                duration_ms = int((time.time() - start_time) * 1000)

                logger.info(json.dumps({
                    "step": "LLM_CALL",
                    "status": "complete",
                    "model": model_name,
                    "output": {"response_length": len(str(result)) if result else 0},
                    "duration_ms": duration_ms,
                    "attempts": attempt + 1
                }))

                if attempt > 0:
                    logger.info(f"{model_name} call succeeded on attempt {attempt + 1}")
                return result

            except RateLimitError as e:
                last_error = e
                logger.warning(
                    f"{model_name} rate limit hit (attempt {attempt + 1}/{self.max_retries}). "
                    f"Retrying in {delay}s..."
                )
                time.sleep(delay)
                delay *= 2

            except APITimeoutError as e:
                last_error = e
                logger.warning(
                    f"{model_name} timeout (attempt {attempt + 1}/{self.max_retries}). "
                    f"Retrying in {delay}s..."
                )
                time.sleep(delay)
                delay *= 2

            except OpenAIError as e:
                logger.error(f"{model_name} API error: {str(e)}")
                raise LLMServiceError(f"{model_name} API error: {str(e)}") from e

            except Exception as e:
                logger.error(f"{model_name} unexpected error: {str(e)}")
                raise LLMServiceError(f"{model_name} unexpected error: {str(e)}") from e

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(json.dumps({
            "step": "LLM_CALL",
            "status": "failed",
            "model": model_name,
            "error": str(last_error),
            "duration_ms": duration_ms,
            "attempts": self.max_retries
        }))
        raise LLMServiceError(
            f"{model_name} failed after {self.max_retries} attempts. Last error: {str(last_error)}"
        ) from last_error

    def parse_json_response(self, response: str) -> Dict[str, Any]:
        """Parse JSON response from LLM."""
        try:
            return json.loads(response)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error(f"Failed to parse JSON response: {str(response)[:200]}...")
            raise LLMServiceError(f"Invalid JSON response: {str(e)}") from e


class LLMServiceError(Exception):
    """Custom exception for LLM service errors"""
    pass


def create_llm_service(model_id: str, settings=None) -> LLMService:
    """
    Build an LLMService for the configured provider.

    Args:
        model_id: Model to bind the service to
        settings: Optional settings override (defaults to global settings)
    """
    settings = settings or get_settings()
    provider = settings.llm_provider

    if provider == "ollama":
        return LLMService(
            "ollama",
            provider=provider,
            model_id=model_id,
            base_url=f"{settings.ollama_host.rstrip('/')}/v1",
            max_retries=settings.llm_max_retries,
            timeout=settings.llm_timeout,
        )

    return LLMService(
        settings.openai_api_key,
        provider=provider,
        model_id=model_id,
        gemini_api_key=settings.gemini_api_key or None,
        max_retries=settings.llm_max_retries,
        timeout=settings.llm_timeout,
    )
