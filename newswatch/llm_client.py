"""Universal LLM client wrapper using OpenAI-compatible endpoints.

Works with DeepSeek, OpenAI, OpenRouter, Gemini (via OpenAI compat) — you
just swap the base_url and model. Retries are not done here: callers wrap
``complete`` in a BackoffRetrier so every outbound call shares one policy.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from openai import AsyncOpenAI

from newswatch.errors import ConfigurationError

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


class LLMClient:
    """Thin async wrapper around any OpenAI-compatible chat completions API."""

    def __init__(
        self,
        provider: str,
        api_key: str,
        base_url: str,
        model: str,
        timeout: float = 30.0,
        temperature: float = 0.2,
    ) -> None:
        self.provider = provider
        self.model = model
        self.temperature = temperature
        self._configured = bool(api_key and model)

        self._client = (
            AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)
            if self._configured
            else None
        )

        self._total_prompt_tokens = 0
        self._total_completion_tokens = 0

    @property
    def is_configured(self) -> bool:
        return self._configured

    # ── core completion ────────────────────────────────────────────────
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        json_mode: bool = False,
    ) -> str:
        """Send a single chat completion request."""
        if self._client is None:
            raise ConfigurationError(f"LLM client for {self.provider} is missing api key or model")

        messages: list[dict[str, str]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self._client.chat.completions.create(**kwargs)
        usage = response.usage
        if usage:
            self._total_prompt_tokens += usage.prompt_tokens
            self._total_completion_tokens += usage.completion_tokens
            logger.debug(
                "LLM usage [%s/%s] prompt=%d completion=%d",
                self.provider,
                self.model,
                usage.prompt_tokens,
                usage.completion_tokens,
            )
        return response.choices[0].message.content or ""

    # ── stats ──────────────────────────────────────────────────────────
    @property
    def token_usage(self) -> dict[str, int]:
        return {
            "prompt_tokens": self._total_prompt_tokens,
            "completion_tokens": self._total_completion_tokens,
            "total_tokens": self._total_prompt_tokens + self._total_completion_tokens,
        }


def extract_json_object(raw: str) -> dict[str, Any]:
    """Parse a JSON object out of free-form model output.

    Tries the whole string first, then the widest ``{...}`` span. Raises
    ``ValueError`` when nothing parses to a dict.
    """
    text = (raw or "").strip()
    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    match = _JSON_OBJECT_RE.search(text)
    if match:
        try:
            data = json.loads(match.group())
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

    raise ValueError("No JSON object found in model response")
