"""OpenAI provider using openai SDK with native async.

Also serves OpenAI-compatible endpoints (xAI Grok, local servers) when the
model config carries a base_url.
"""

import asyncio
import logging
import os
import time

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from roundtable.models import Completion
from roundtable.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """OpenAI (or OpenAI-compatible) provider via openai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        if config.base_url:
            self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url)
        else:
            self._client = AsyncOpenAI(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    def default_timeout_sec(self) -> float:
        return self._config.timeout_sec

    async def generate(
        self,
        prompt: str,
        purpose: str,
        json_output: bool = False,
        timeout_sec: float | None = None,
    ) -> Completion:
        timeout = timeout_sec or self._config.timeout_sec
        start = time.monotonic()
        kwargs: dict = {}
        if json_output:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=[{"role": "user", "content": prompt}],
                    max_tokens=self._config.max_tokens,
                    **kwargs,
                ),
                timeout=timeout,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {timeout:g}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content or not choice.message.content.strip():
            raise ProviderError(self._config.name, "Empty response content")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info("OpenAI %s: %.2fs, %s tokens", purpose, latency, token_count)

        return Completion(
            provider=self._config.name,
            model=self._config.model,
            purpose=purpose,
            content=choice.message.content.strip(),
            latency_sec=latency,
            token_count=token_count,
        )
