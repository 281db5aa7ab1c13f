# src/tasklane/llm/client.py

from __future__ import annotations

import logging
import time
from typing import Any

import httpx
import openai
from openai import OpenAI

logger = logging.getLogger(__name__)

ChatMessage = dict[str, str]

# A 404'd model is not retried for this long.
BAD_MODEL_COOLDOWN_SECONDS = 3600.0


class OpenAICompatClient:
    """
    Chat completion client over any OpenAI-compatible endpoint (OpenRouter by default).

    complete() tries the configured models in order:
    - auth errors fail fast,
    - a model that 404s is skipped for an hour,
    - rate limits, timeouts and empty answers fall through to the next model.

    A plan is one JSON document, so there is no streaming; the read timeout
    covers the whole answer.
    """

    def __init__(
            self,
            *,
            api_key: str | None,
            base_url: str,
            models: list[str],
            read_timeout: float = 90.0,
            temperature: float = 0.2,
            http_client: httpx.Client | None = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise RuntimeError("LLM API key is not set. Set TASKLANE_LLM_API_KEY in your .env.")
        if not base_url.strip():
            raise RuntimeError("LLM base URL is not set. Set TASKLANE_LLM_BASE_URL in your .env.")
        self._models = [m.strip() for m in models if m and m.strip()]
        if not self._models:
            raise RuntimeError("LLM model list is empty. Set TASKLANE_LLM_MODELS in your .env.")

        self._temperature = temperature
        self._client = OpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=httpx.Timeout(read_timeout, connect=5.0),
            max_retries=0,
            http_client=http_client,
        )
        self._bad_models: dict[str, float] = {}  # model -> retry_at (monotonic)

    @classmethod
    def from_settings(cls, settings: Any) -> OpenAICompatClient:
        return cls(
            api_key=getattr(settings, "llm_api_key", None),
            base_url=str(getattr(settings, "llm_base_url", "") or ""),
            models=list(getattr(settings, "llm_models", []) or []),
        )

    def _available_models(self) -> list[str]:
        now = time.monotonic()
        return [m for m in self._models if self._bad_models.get(m, 0.0) <= now]

    def complete(self, messages: list[ChatMessage], system_prompt: str) -> str:
        """Return the first non-empty answer; RuntimeError if every model fails."""
        last_error: Exception | None = None

        for model in self._available_models():
            t0 = time.monotonic()
            try:
                resp = self._client.chat.completions.create(
                    model=model,
                    temperature=self._temperature,
                    messages=[{"role": "system", "content": system_prompt}, *messages],  # type: ignore[list-item]
                )
            except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
                raise RuntimeError("LLM authentication failed. Check TASKLANE_LLM_API_KEY.") from e
            except openai.NotFoundError as e:
                last_error = e
                self._bad_models[model] = time.monotonic() + BAD_MODEL_COOLDOWN_SECONDS
                logger.info("LLM: model not available (404): %s", model)
                continue
            except openai.OpenAIError as e:
                last_error = e
                logger.info("LLM: %s on model=%s, trying next", e.__class__.__name__, model)
                continue

            content = resp.choices[0].message.content if resp.choices else None
            if content and content.strip():
                logger.info("LLM: answer from model=%s (%.2fs)", model, time.monotonic() - t0)
                return content
            last_error = RuntimeError(f"Model returned no content: {model}")
            logger.info("LLM: empty answer from model=%s, trying next", model)

        raise RuntimeError("All LLM models failed.") from last_error
