"""Analyzer client: sends screenshots and follow-up questions to a vision model.

Two backends:
  - ``api``: any OpenAI-compatible ``/chat/completions`` endpoint, image sent
    as a base64 data URL
  - ``ollama``: a local Ollama server (``/api/generate`` with ``images`` for
    analysis, ``/api/chat`` for follow-ups)

Every failure is raised as ``ModelError`` whose text keeps the status code
and response body, so ``classify_model_error`` can tell auth, quota, rate
limit, and server problems apart.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from screen_assistant.config.models import ModelConfig
from screen_assistant.errors import ModelError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0
MAX_RESPONSE_TOKENS = 1024
_ERROR_BODY_LIMIT = 500


class ModelManager:
    """Async client for the configured analyzer backend."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def analyze_image(
        self, model: ModelConfig, image_base64: str, prompt: str
    ) -> str:
        """Ask the analyzer to describe a screenshot. Returns its raw text."""
        if model.provider == "ollama":
            data = await self._post(
                f"{model.ollama.endpoint.rstrip('/')}/api/generate",
                {
                    "model": model.ollama.model,
                    "prompt": prompt,
                    "images": [image_base64],
                    "stream": False,
                },
            )
            return _require_text(data.get("response"))

        data = await self._post_openai(
            model,
            [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:image/jpeg;base64,{image_base64}"},
                        },
                    ],
                }
            ],
        )
        return _openai_text(data)

    async def chat(self, model: ModelConfig, context: str, question: str) -> str:
        """Ask a text-only follow-up question with ``context`` as system prompt."""
        messages = [
            {"role": "system", "content": context},
            {"role": "user", "content": question},
        ]
        if model.provider == "ollama":
            data = await self._post(
                f"{model.ollama.endpoint.rstrip('/')}/api/chat",
                {"model": model.ollama.model, "messages": messages, "stream": False},
            )
            message = data.get("message") or {}
            return _require_text(message.get("content"))

        data = await self._post_openai(model, messages)
        return _openai_text(data)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _post_openai(
        self, model: ModelConfig, messages: list[dict[str, Any]]
    ) -> dict[str, Any]:
        headers = {}
        if model.api.api_key:
            headers["Authorization"] = f"Bearer {model.api.api_key}"
        return await self._post(
            f"{model.api.endpoint.rstrip('/')}/chat/completions",
            {
                "model": model.api.model,
                "messages": messages,
                "max_tokens": MAX_RESPONSE_TOKENS,
            },
            headers=headers,
        )

    async def _post(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise ModelError(f"Request timed out: {url}: {e}") from e
        except httpx.HTTPError as e:
            raise ModelError(f"Network error (connect failed): {url}: {e}") from e

        if response.status_code >= 400:
            body = response.text[:_ERROR_BODY_LIMIT]
            logger.warning("Analyzer returned %d for %s", response.status_code, url)
            raise ModelError(f"HTTP {response.status_code}: {body}")

        try:
            data = response.json()
        except ValueError as e:
            raise ModelError(f"Invalid JSON from analyzer: {response.text[:200]}") from e
        if not isinstance(data, dict):
            raise ModelError(f"Unexpected analyzer response: {str(data)[:200]}")
        return data


def _openai_text(data: dict[str, Any]) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise ModelError(f"Unexpected analyzer response: {str(data)[:200]}") from e
    return _require_text(content)


def _require_text(value: Any) -> str:
    if not isinstance(value, str):
        raise ModelError(f"Analyzer returned no text: {value!r}")
    return value
