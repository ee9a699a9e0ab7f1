"""The translation capability used by the orchestrator, backed by OpenAI chat models."""
import asyncio
import logging
import random
from typing import Dict, Optional

import tiktoken
from aiolimiter import AsyncLimiter
from openai import (
    APIConnectionError,
    APIStatusError,
    RateLimitError,
    APITimeoutError,
    OpenAIError
)
from openai import AsyncOpenAI
from openai.types.chat import (
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam
)

from properties_translator.app_config import AppConfig
from properties_translator.exceptions import TranslationServiceError
from properties_translator.translator import SEGMENT_DELIMITER

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are an expert translator specializing in software localization. Translate the user's text into {language_name}.

**Instructions**:
- **Do not translate or modify placeholder tokens**: Any text enclosed within double underscores `__` (e.g., `__PH_0__`) must remain exactly as is.
- **Keep every segment separator**: The character `{delimiter}` separates lines of one message. Output exactly as many `{delimiter}` characters as the input contains, in the same relative positions.
- **Preserve formatting**: Keep line breaks, tabs and surrounding whitespace.
- **Do not add** any additional characters or punctuation (e.g., no square brackets, quotation marks, etc.).
- **Provide only** the translated text, with no explanations.
"""


def count_tokens(text: str, model_name: str = 'gpt-3.5-turbo') -> int:
    """Count the number of tokens in ``text`` for ``model_name``.

    ``tiktoken.encoding_for_model`` occasionally attempts a network request to
    download model data if it is not already cached. If obtaining the encoding
    for the requested model fails, the function falls back to ``gpt2`` which
    ships with ``tiktoken``. As a last resort, a simple whitespace split is used.
    """
    try:
        encoding = tiktoken.encoding_for_model(model_name)
    except Exception:
        try:
            encoding = tiktoken.get_encoding("gpt2")
        except Exception:
            return len(text.split())

    try:
        return len(encoding.encode(text))
    except Exception:
        return len(text.split())


def completion_token_budget(text: str, model_name: str) -> int:
    """Upper bound for the completion length of a translation of ``text``."""
    return count_tokens(text, model_name) * 4 + 64


def clean_translated_text(translated_text: str, original_text: str) -> str:
    """
    Cleans the translated text by removing leading/trailing quotes and brackets
    the model added, and by restoring the original's outer whitespace.

    Args:
        translated_text (str): The translated text.
        original_text (str): The original text.

    Returns:
        str: The cleaned translated text.
    """
    translated_text = translated_text.strip()
    original_core = original_text.strip()
    # Remove leading/trailing quotes if they are not in the original text
    if len(translated_text) > 1 and translated_text.startswith('"') and translated_text.endswith('"') and not (
            original_core.startswith('"') and original_core.endswith('"')):
        translated_text = translated_text[1:-1]
    # Remove square brackets if they are not in the original text
    if len(translated_text) > 1 and translated_text.startswith('[') and translated_text.endswith(']') and not (
            original_core.startswith('[') and original_core.endswith(']')):
        translated_text = translated_text[1:-1]

    leading = original_text[:len(original_text) - len(original_text.lstrip())]
    trailing = original_text[len(original_text.rstrip()):]
    return leading + translated_text + trailing


def _retry_delay(attempt: int, base_delay: float, api_exc: Optional[Exception]) -> float:
    """Honour a Retry-After header if present, else back off exponentially with jitter."""
    try:
        retry_after = None
        if api_exc is not None and isinstance(api_exc, APIStatusError):
            retry_after_header = api_exc.response.headers.get("Retry-After")
            if retry_after_header:
                if retry_after_header.isdigit():
                    retry_after = float(retry_after_header)
                elif retry_after_header.endswith("ms"):
                    retry_after = float(retry_after_header[:-2]) / 1000
        if retry_after is not None:
            return retry_after
    except (AttributeError, ValueError) as exc:
        logger.warning("Failed to parse Retry-After header: %s. Falling back to exponential backoff.", exc)
    return base_delay * (2 ** (attempt - 1)) + random.uniform(0, 1)


class OpenAITranslator:
    """
    Translate text with an OpenAI chat model.

    Concurrency is bounded by a semaphore and request rate by an ``AsyncLimiter``.
    A failed call is retried only when ``max_attempts`` is greater than one.
    """

    def __init__(
            self,
            client: AsyncOpenAI,
            model_name: str,
            language_codes: Dict[str, str],
            max_concurrent_api_calls: int = 100,
            rate_limit: int = 600,
            rate_period: float = 60,
            max_attempts: int = 1,
            request_timeout: float = 60.0,
            base_delay: float = 1.0
    ):
        self.client = client
        self.model_name = model_name
        self.language_codes = language_codes
        self.max_attempts = max_attempts
        self.request_timeout = request_timeout
        self.base_delay = base_delay
        self.semaphore = asyncio.Semaphore(max_concurrent_api_calls)
        self.rate_limiter = AsyncLimiter(max_rate=rate_limit, time_period=rate_period)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.close()

    def _system_prompt(self, target_language: str) -> str:
        language_name = self.language_codes.get(target_language, target_language)
        return SYSTEM_PROMPT.format(language_name=language_name, delimiter=SEGMENT_DELIMITER)

    async def translate(self, text: str, target_language: str) -> str:
        """
        Translate ``text`` into the language with code ``target_language``.

        Raises:
            TranslationServiceError: If the API call fails on every attempt or
            returns no content.
        """
        system_prompt = self._system_prompt(target_language)
        max_tokens = completion_token_budget(text, self.model_name)

        async with self.semaphore:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    # Every attempt, retries included, counts against the rate limit.
                    async with self.rate_limiter:
                        response = await self.client.chat.completions.create(
                            model=self.model_name,
                            messages=[
                                ChatCompletionSystemMessageParam(role="system", content=system_prompt),
                                ChatCompletionUserMessageParam(role="user", content=text)
                            ],
                            temperature=0.3,
                            max_tokens=max_tokens,
                            timeout=self.request_timeout,
                        )
                except (RateLimitError, APITimeoutError, APIConnectionError, APIStatusError, OpenAIError) as api_exc:
                    logger.warning("API error occurred: %s - %s", api_exc.__class__.__name__, api_exc)
                    if attempt >= self.max_attempts:
                        raise TranslationServiceError(
                            f"{api_exc.__class__.__name__}: {api_exc}",
                            code="api_error",
                            details={"attempts": attempt}
                        ) from api_exc
                    delay = _retry_delay(attempt, self.base_delay, api_exc)
                    logger.info(
                        "Retrying request to /chat/completions in %.2f seconds (Attempt %d/%d)",
                        delay, attempt, self.max_attempts
                    )
                    await asyncio.sleep(delay)
                    continue

                content = response.choices[0].message.content if response.choices else None
                if content is None:
                    raise TranslationServiceError("The model returned an empty response.", code="empty_response")
                return clean_translated_text(content, text)

        # Only reachable when max_attempts < 1.
        raise TranslationServiceError("No translation attempt was made.", code="no_attempt")


class DryRunTranslator:
    """Returns every text unchanged; used when no API calls should be made."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None

    async def translate(self, text: str, target_language: str) -> str:
        logger.debug("[Dry Run] Would translate %d characters into '%s'.", len(text), target_language)
        return text


def create_translator(config: AppConfig):
    """Build the translator described by the configuration."""
    if config.dry_run:
        return DryRunTranslator()
    return OpenAITranslator(
        client=AsyncOpenAI(api_key=config.openai_api_key),
        model_name=config.model_name,
        language_codes=config.language_codes,
        max_concurrent_api_calls=config.max_concurrent_api_calls,
        rate_limit=config.rate_limit,
        rate_period=config.rate_period,
        max_attempts=config.max_attempts,
        request_timeout=config.request_timeout
    )
