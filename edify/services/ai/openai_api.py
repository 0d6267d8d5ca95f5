"""
Helper for interacting with the OpenAI API.

Provides content generation for the tools, short true/false classification
prompts for the safety checks, and access to the moderation endpoint.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from openai import AsyncOpenAI, OpenAIError

from edify.config import get_settings

__all__ = [
    "OpenAIError",
    "OpenAIAPIError",
    "CompletionResult",
    "ModerationResult",
    "generate_completion",
    "classify_text",
    "moderate_text",
]

logger = logging.getLogger(__name__)


class OpenAIAPIError(RuntimeError):
    """Raised when the OpenAI API cannot be contacted or returns an error."""


@dataclass
class CompletionResult:
    """Generated text plus the token usage reported by the API."""
    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ModerationResult:
    """Categories reported by the moderation endpoint for one input."""
    flagged: bool
    categories: dict[str, bool]


def _get_client(timeout: int) -> AsyncOpenAI:
    settings = get_settings()
    if not settings.openai_api_key:
        raise OpenAIAPIError("OPENAI_API_KEY environment variable must be set")
    return AsyncOpenAI(api_key=settings.openai_api_key, timeout=timeout)


def _extract_content(response: Any, model: str) -> str:
    if not response.choices:
        raise OpenAIAPIError("OpenAI API returned no choices")

    choice = response.choices[0]
    if not choice.message:
        raise OpenAIAPIError("OpenAI API returned choice without message")

    output_text = choice.message.content
    if not output_text or not output_text.strip():
        logger.warning(
            f"OpenAI returned empty content. Model: {model}, Finish reason: {choice.finish_reason}"
        )
        raise OpenAIAPIError("OpenAI API returned empty response content")

    return output_text.strip()


async def generate_completion(
        system_message: str,
        user_message: str,
        model: Optional[str] = None,
        json_mode: bool = True,
        timeout: Optional[int] = None,
) -> CompletionResult:
    """
    Generate tool content using the chat completions API.

    Args:
        system_message: Instructions describing the expected output
        user_message: The educator's request, built from the tool input
        model: OpenAI model to use (default: settings.ai_generation_model)
        json_mode: Ask the API for a JSON object response
        timeout: Request timeout in seconds

    Returns:
        CompletionResult with the content and token usage

    Raises:
        OpenAIAPIError: If API key is missing or API call fails
    """
    settings = get_settings()
    model_name = model or settings.ai_generation_model
    client = _get_client(timeout or settings.ai_timeout_seconds)

    kwargs: dict[str, Any] = {
        "model": model_name,
        "messages": [
            {"role": "system", "content": system_message},
            {"role": "user", "content": user_message},
        ],
    }
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    try:
        response = await client.chat.completions.create(**kwargs)
    except OpenAIError as exc:
        raise OpenAIAPIError(f"OpenAI API error: {exc}") from exc
    except Exception as exc:
        raise OpenAIAPIError(f"Failed to contact OpenAI API: {exc}") from exc

    content = _extract_content(response, model_name)
    usage = getattr(response, "usage", None)
    return CompletionResult(
        content=content,
        model=model_name,
        input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        total_tokens=getattr(usage, "total_tokens", 0) or 0,
    )


async def classify_text(
        system_message: str,
        user_message: str,
        model: Optional[str] = None,
        timeout: Optional[int] = None,
) -> str:
    """Ask a single classification question with deterministic sampling.

    Returns:
        The raw answer text, lower-cased

    Raises:
        OpenAIAPIError: If the request cannot be completed
    """
    settings = get_settings()
    model_name = model or settings.ai_classifier_model
    client = _get_client(timeout or settings.ai_classifier_timeout_seconds)

    try:
        response = await client.chat.completions.create(
            model=model_name,
            messages=[
                {"role": "system", "content": system_message},
                {"role": "user", "content": user_message},
            ],
            temperature=0,
        )
    except OpenAIError as exc:
        raise OpenAIAPIError(f"OpenAI API error: {exc}") from exc
    except Exception as exc:
        raise OpenAIAPIError(f"Failed to contact OpenAI API: {exc}") from exc

    return _extract_content(response, model_name).lower()


async def moderate_text(input_text: str, timeout: Optional[int] = None) -> ModerationResult:
    """Run OpenAI's moderation endpoint against the provided text.

    Args:
        input_text: Text to moderate.
        timeout: Request timeout in seconds.

    Returns:
        ModerationResult with the overall verdict and category booleans,
        keyed by the API's category names (e.g. ``"self-harm"``).

    Raises:
        OpenAIAPIError: If the moderation request cannot be completed.
    """
    settings = get_settings()
    client = _get_client(timeout or settings.ai_classifier_timeout_seconds)

    try:
        response = await client.moderations.create(
            model=settings.ai_moderation_model,
            input=input_text,
        )
    except OpenAIError as exc:
        raise OpenAIAPIError(f"OpenAI API error: {exc}") from exc
    except Exception as exc:
        raise OpenAIAPIError(f"Failed to contact OpenAI API: {exc}") from exc

    if not response.results:
        raise OpenAIAPIError("OpenAI API returned no moderation results")

    result = response.results[0]
    categories = result.categories
    if hasattr(categories, "model_dump"):
        # by_alias keeps the API's slash/hyphen names ("self-harm", "sexual/minors")
        categories = categories.model_dump(by_alias=True)
    return ModerationResult(
        flagged=bool(getattr(result, "flagged", False)),
        categories={key: bool(value) for key, value in dict(categories or {}).items()},
    )
