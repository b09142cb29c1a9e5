"""Client for an OpenAI-compatible chat-completions endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from json import JSONDecodeError
from pathlib import Path
from typing import Any, Optional

import httpx
from jsonschema import ValidationError, validate

from .cache import CacheConfig, ResponseCache
from .utils import parse_json_lenient, stable_hash


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LLMConfig:
    """Connection and sampling settings for the text-generation service."""

    endpoint: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    temperature: float = 0.2
    max_tokens: int = 4096
    timeout: float = 60.0
    seed: Optional[int] = None
    json_mode: bool = True


class LLMResponseError(RuntimeError):
    """Raised when a model response cannot be parsed or validated."""

    def __init__(self, message: str, *, response: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.response = response


class LLMClient:
    """Thin HTTP client returning parsed JSON replies."""

    def __init__(self, config: Optional[LLMConfig] = None, cache_dir: Optional[Path] = None) -> None:
        self.config = config or LLMConfig()
        headers = {}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        self._client = httpx.Client(timeout=self.config.timeout, headers=headers)
        self._cache = None
        if cache_dir is not None:
            self._cache = ResponseCache(CacheConfig(directory=cache_dir))

    def complete_json(
        self,
        prompt: dict[str, Any],
        *,
        schema: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Send one prompt and return its JSON content, validated against ``schema``.

        Only replies that parse and validate are cached. A cached reply that
        no longer validates is evicted and the request is sent again.
        """

        payload = self._build_payload(prompt)
        cache_key = stable_hash([payload])

        cached = self._cache.get(cache_key) if self._cache is not None else None
        if cached is not None:
            logger.debug("Using cached model response %s", cache_key[:12])
            try:
                return self._post_process(cached, schema=schema)
            except LLMResponseError as exc:
                logger.warning("Discarding cached model response %s: %s", cache_key[:12], exc)
                self._cache.delete(cache_key)

        response = self._client.post(
            f"{self.config.endpoint}/chat/completions",
            json=payload,
        )
        response.raise_for_status()
        data = response.json()
        parsed = self._post_process(data, schema=schema)
        if self._cache is not None:
            self._cache.set(cache_key, data)
        return parsed

    def close(self) -> None:
        """Close underlying HTTP and cache resources."""

        self._client.close()
        if self._cache is not None:
            self._cache.close()

    def _build_payload(self, prompt: dict[str, Any]) -> dict[str, Any]:
        messages = prompt.get("messages")
        if not messages:
            raise ValueError("prompt must include 'messages'")

        payload: dict[str, Any] = {
            "model": prompt.get("model", self.config.model),
            "messages": messages,
            "temperature": prompt.get("temperature", self.config.temperature),
            "max_tokens": prompt.get("max_tokens", self.config.max_tokens),
        }

        seed = prompt.get("seed", self.config.seed)
        if seed is not None:
            payload["seed"] = int(seed)

        if self.config.json_mode:
            payload["response_format"] = {"type": "json_object"}

        return payload

    def _post_process(self, response: dict[str, Any], *, schema: Optional[dict[str, Any]]) -> Any:
        content = self._extract_content(response)
        try:
            parsed = parse_json_lenient(content)
        except JSONDecodeError as exc:
            raise LLMResponseError("LLM response is not valid JSON", response=response) from exc

        if schema is not None:
            try:
                validate(instance=parsed, schema=schema)
            except ValidationError as exc:
                raise LLMResponseError(
                    f"LLM response failed schema validation: {exc.message}", response=response
                ) from exc

        return parsed

    def _extract_content(self, response: dict[str, Any]) -> str:
        choices = response.get("choices")
        if not choices:
            raise LLMResponseError("LLM response missing choices", response=response)
        message = choices[0].get("message")
        if not isinstance(message, dict):
            raise LLMResponseError("LLM response missing message payload", response=response)
        content = message.get("content")
        if not isinstance(content, str) or not content.strip():
            raise LLMResponseError("LLM response content is empty", response=response)
        return content

    def __enter__(self) -> "LLMClient":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
