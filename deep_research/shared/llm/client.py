"""
OpenAI-compatible async client with retry logic.

Provides a cached client instance pointed at Groq's OpenAI-compatible
endpoint and wrappers for chat completions with automatic retries
using tenacity.
"""

import os
from typing import List, Dict, Optional, Tuple

from openai import (
    AsyncOpenAI,
    APIConnectionError,
    InternalServerError,
    RateLimitError,
)
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)
from dotenv import load_dotenv
load_dotenv()

DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "openai/gpt-oss-120b"

# Module-level cache for the client
_client: Optional[AsyncOpenAI] = None


class LLMConfigurationError(ValueError):
    """Raised when the LLM provider is not configured."""

    pass


class EmptyResponseError(RuntimeError):
    """Raised when the model returns no content."""

    pass


# Errors worth another attempt; client errors (4xx other than 429) are not
TRANSIENT_ERRORS = (
    APIConnectionError,
    RateLimitError,
    InternalServerError,
    EmptyResponseError,
)


def get_cached_client() -> AsyncOpenAI:
    """
    Returns a cached instance of the async OpenAI-compatible client.

    Uses GROQ_API_KEY for authentication and RESEARCH_LLM_BASE_URL
    (default: Groq) as the endpoint. The client is created once and
    reused for all subsequent calls.

    Raises:
        LLMConfigurationError: If GROQ_API_KEY is not set.
    """
    global _client
    if _client is None:
        api_key = os.environ.get("GROQ_API_KEY")
        if not api_key:
            raise LLMConfigurationError(
                "GROQ_API_KEY environment variable is not set. "
                "Please set it to your Groq API key."
            )
        base_url = os.environ.get("RESEARCH_LLM_BASE_URL", DEFAULT_BASE_URL)
        _client = AsyncOpenAI(api_key=api_key, base_url=base_url)
    return _client


async def close_cached_client() -> None:
    """Close the cached client's connection pool (application shutdown)."""
    global _client
    if _client is not None:
        await _client.close()
        _client = None


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    reraise=True,
)
async def call_llm_with_usage(
    messages: List[Dict[str, str]],
    model: str = DEFAULT_MODEL,
    client: Optional[AsyncOpenAI] = None,
    temperature: float = 0.4,
    max_tokens: int = 1500,
    json_mode: bool = False,
) -> Tuple[str, Dict[str, int]]:
    """
    Call the Chat Completion API and return content with token usage.

    Args:
        messages: List of message dicts with 'role' and 'content' keys
        model: Model identifier to use
        client: Optional client instance. If not provided, uses cached client.
        temperature: Sampling temperature
        max_tokens: Completion token limit
        json_mode: Request a JSON object response format

    Returns:
        Tuple of (response content, usage dict with input/output/total tokens)

    Raises:
        EmptyResponseError: If the model returned no content.
        Exception: If all retry attempts fail.
    """
    if client is None:
        client = get_cached_client()

    kwargs = {}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    response = await client.chat.completions.create(
        model=model,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
        **kwargs,
    )

    content = (response.choices[0].message.content or "").strip()
    if not content:
        raise EmptyResponseError(f"Model {model} returned an empty response")

    usage = {"input_tokens": 0, "output_tokens": 0, "total_tokens": 0}
    if response.usage is not None:
        usage = {
            "input_tokens": response.usage.prompt_tokens,
            "output_tokens": response.usage.completion_tokens,
            "total_tokens": response.usage.total_tokens,
        }

    return content, usage


async def get_llm_response_with_usage(
    user_prompt: str,
    system_prompt: str,
    model: str = DEFAULT_MODEL,
    temperature: float = 0.4,
    max_tokens: int = 1500,
    json_mode: bool = False,
    client: Optional[AsyncOpenAI] = None,
) -> Tuple[str, Dict[str, int]]:
    """
    Get an LLM response with token usage information.

    The client is resolved before the retried call so that a missing
    API key fails fast instead of being retried.

    Args:
        user_prompt: The user message content
        system_prompt: The system message content
        model: Model identifier to use
        temperature: Sampling temperature
        max_tokens: Completion token limit
        json_mode: Request a JSON object response format
        client: Optional client instance

    Returns:
        Tuple of (response content, usage dict with input/output/total tokens)
    """
    if client is None:
        client = get_cached_client()

    messages = [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]
    return await call_llm_with_usage(
        messages,
        model=model,
        client=client,
        temperature=temperature,
        max_tokens=max_tokens,
        json_mode=json_mode,
    )
