"""LLM collaborator: prompt in, text out, with bounded retries."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI

from aeo_scoring.config import Settings, get_settings
from aeo_scoring.exceptions import ConfigurationError, LLMError, LLMQuotaError, LLMRateLimitError
from aeo_scoring.models import LLMResponse

logger = logging.getLogger(__name__)

QUOTA_MARKERS = ("insufficient_quota", "quota exceeded", "billing", "exceeded your current quota")
RETRYABLE_STATUS = {408, 409, 429, 500, 502, 503, 504}


def classify_error(provider: str, status_code: Optional[int], message: str) -> LLMError:
    """Map a provider failure onto the retry taxonomy."""
    lowered = (message or "").lower()
    if status_code == 402 or any(m in lowered for m in QUOTA_MARKERS):
        return LLMQuotaError(provider, status_code, message)
    if status_code == 429 or "rate limit" in lowered or "too many requests" in lowered:
        return LLMRateLimitError(provider, status_code, message)
    return LLMError(provider, status_code, message)


def is_retryable(error: LLMError) -> bool:
    if isinstance(error, LLMQuotaError):
        return False
    if isinstance(error, LLMRateLimitError):
        return True
    # None means the request never got a response (network/timeout)
    return error.status_code is None or error.status_code in RETRYABLE_STATUS


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential delay for the given zero-based attempt, capped at max_delay."""
    return min(base_delay * (2 ** attempt), max_delay)


class LLMClient:
    """
    Thin async client over the providers used for scoring.

    ``call`` is the only contract the rest of the engine relies on:
    given a provider, prompt and model, return an ``LLMResponse`` or raise
    an ``LLMError`` once retries are exhausted.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        openai_client: AsyncOpenAI | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self._openai = openai_client
        self._http = http_client
        self._sleep = sleep
        self.calls_made = 0

    def _get_openai(self) -> AsyncOpenAI:
        if self._openai is None:
            if not self.settings.openai_api_key:
                raise ConfigurationError("OPENAI_API_KEY not set")
            self._openai = AsyncOpenAI(
                api_key=self.settings.openai_api_key,
                base_url=self.settings.openai_base_url,
                timeout=httpx.Timeout(self.settings.llm_timeout, connect=self.settings.llm_connect_timeout),
                max_retries=0,
            )
        return self._openai

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            timeout = httpx.Timeout(self.settings.llm_timeout, connect=self.settings.llm_connect_timeout)
            self._http = httpx.AsyncClient(timeout=timeout)
        return self._http

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
        if self._openai is not None:
            await self._openai.close()

    async def call(
        self,
        provider: str,
        prompt: str,
        model: str,
        temperature: float = 0.0,
        max_tokens: int = 600,
    ) -> LLMResponse:
        """
        Submit a prompt with retry and exponential backoff.

        Args:
            provider: "openai" or "perplexity"
            prompt: User prompt text
            model: Provider model identifier
            temperature: Sampling temperature
            max_tokens: Completion token cap

        Returns:
            LLMResponse with text and token usage

        Raises:
            ConfigurationError: Unknown provider or missing API key
            LLMError: Final failure after retries (or a non-retryable error)
        """
        if provider == "openai":
            send = self._call_openai
        elif provider == "perplexity":
            send = self._call_perplexity
        else:
            raise ConfigurationError(f"Unknown LLM provider: {provider}")

        attempts = self.settings.llm_max_retries
        last_error: LLMError | None = None
        for attempt in range(attempts):
            self.calls_made += 1
            try:
                return await send(prompt, model, temperature, max_tokens)
            except LLMError as e:
                last_error = e
                if not is_retryable(e) or attempt == attempts - 1:
                    break
                delay = backoff_delay(attempt, self.settings.llm_base_delay, self.settings.llm_max_delay)
                logger.warning(
                    f"{provider} call failed (attempt {attempt + 1}/{attempts}): {e.message}; retrying in {delay:.1f}s"
                )
                await self._sleep(delay)

        if last_error is None:
            raise LLMError(provider, None, f"no attempts made (llm_max_retries={attempts})")
        logger.error(f"{provider} call failed after retries: {last_error}")
        raise last_error

    async def _call_openai(self, prompt: str, model: str, temperature: float, max_tokens: int) -> LLMResponse:
        client = self._get_openai()
        try:
            completion = await client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except APIStatusError as e:
            raise classify_error("openai", e.status_code, str(e)) from e
        except (APIConnectionError, APITimeoutError) as e:
            raise LLMError("openai", None, str(e)) from e

        text = completion.choices[0].message.content or ""
        usage = None
        if completion.usage is not None:
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens,
            }
        return LLMResponse(text=text, token_usage=usage, model=model, provider="openai")

    async def _call_perplexity(self, prompt: str, model: str, temperature: float, max_tokens: int) -> LLMResponse:
        api_key = self.settings.perplexity_api_key
        if not api_key:
            raise ConfigurationError("PERPLEXITY_API_KEY not set")

        url = f"{self.settings.perplexity_base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        client = self._get_http()
        try:
            response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise classify_error("perplexity", e.response.status_code, e.response.text[:500]) from e
        except httpx.RequestError as e:
            raise LLMError("perplexity", None, str(e)) from e
        except ValueError as e:
            raise LLMError("perplexity", None, f"Invalid JSON body: {e}") from e

        try:
            text = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError("perplexity", None, f"Unexpected response shape: {e}") from e
        return LLMResponse(text=text, token_usage=data.get("usage"), model=model, provider="perplexity")
