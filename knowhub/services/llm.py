"""
OpenAI client singleton, token counting and JSON-reply parsing.

Every generation call in the service (answer synthesis, quick topics,
starter questions, insight clusters, intent analysis) goes through
``LLMClient.complete`` so provider failures surface uniformly as
``UpstreamError``.
"""

from __future__ import annotations

import json
import re
import threading
from typing import Any

import openai
import tiktoken
from openai import AsyncOpenAI

from knowhub.core.config import Settings, settings as default_settings
from knowhub.core.errors import UpstreamError
from knowhub.utils.logging import get_logger

logger = get_logger("knowhub.services.llm")


# ── Singleton OpenAI client ─────────────────────────────────────────
_client_lock = threading.Lock()
_client_instance: AsyncOpenAI | None = None


def get_openai_client(config: Settings | None = None) -> AsyncOpenAI:
    """
    Return a module-level async OpenAI client singleton.

    Raises UpstreamError when the API key is missing.
    """
    global _client_instance
    if _client_instance is not None:
        return _client_instance

    config = config or default_settings
    with _client_lock:
        if _client_instance is not None:
            return _client_instance
        if not config.openai_api_key:
            raise UpstreamError("llm", "OpenAI API key not configured (OPENAI_API_KEY).")

        _client_instance = AsyncOpenAI(
            api_key=config.openai_api_key,
            timeout=config.llm_timeout_seconds,
        )
        logger.info("OpenAI client singleton initialized.")
        return _client_instance


# ── Token counting ──────────────────────────────────────────────────
_encoder_lock = threading.Lock()
_encoder: Any | None = None


def _get_encoder() -> Any:
    global _encoder
    if _encoder is not None:
        return _encoder
    with _encoder_lock:
        if _encoder is None:
            _encoder = tiktoken.get_encoding("cl100k_base")
        return _encoder


def count_tokens(text: str) -> int:
    """Count cl100k tokens in ``text``."""
    return len(_get_encoder().encode(text or ""))


# ── JSON replies ────────────────────────────────────────────────────
_FENCED_JSON = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")


def parse_json_reply(text: str) -> Any:
    """
    Parse a model reply that should be JSON, tolerating a surrounding
    markdown code fence.  Raises ValueError on anything unparsable.
    """
    raw = (text or "").strip()
    match = _FENCED_JSON.search(raw)
    if match:
        raw = match.group(1).strip()
    if not raw:
        raise ValueError("empty model reply")
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"model reply is not JSON: {e}") from e


class LLMClient:
    """Thin async wrapper over chat completions."""

    def __init__(self, config: Settings | None = None, client: AsyncOpenAI | None = None):
        self._config = config or default_settings
        self._client = client
        self.model = self._config.chat_model

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = get_openai_client(self._config)
        return self._client

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 800,
    ) -> str:
        """Return the text of a single chat completion."""
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self._get_client().chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.OpenAIError as e:
            raise UpstreamError("llm", str(e)) from e

        if not response.choices or not response.choices[0].message.content:
            raise UpstreamError("llm", "model returned no content")
        return response.choices[0].message.content.strip()
