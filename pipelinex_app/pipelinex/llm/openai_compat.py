"""Chat-completions client for OpenAI-compatible APIs.

Any server exposing ``/v1/chat/completions`` and ``/v1/models`` works:
hosted OpenAI, Groq, Together, OpenRouter, or a local vLLM / llama.cpp
server. Explanations are short, so requests use a small token cap and a
low temperature.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from pipelinex.llm.base import LLMBackend, LLMResponse

logger = logging.getLogger(__name__)

CHAT_PATH = "/v1/chat/completions"
MODELS_PATH = "/v1/models"


class LLMError(RuntimeError):
    """The backend returned an error or an unusable response."""


def build_chat_payload(
    model: str,
    system_prompt: str,
    user_prompt: str,
    max_tokens: int,
    temperature: float,
) -> dict[str, Any]:
    return {
        "model": model,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "stream": False,
    }


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"].get("message") or resp.text
    return resp.text


def parse_completion(data: Any, default_model: str) -> LLMResponse:
    """Normalise a chat-completions body into an LLMResponse."""
    if not isinstance(data, dict) or not data.get("choices"):
        raise LLMError("Unexpected API response format (missing 'choices').")

    first = data["choices"][0]
    message = first.get("message") or {}
    usage = data.get("usage") or {}
    return LLMResponse(
        content=message.get("content") or "",
        model=data.get("model") or default_model,
        finish_reason=first.get("finish_reason"),
        prompt_tokens=usage.get("prompt_tokens", 0),
        completion_tokens=usage.get("completion_tokens", 0),
        raw=data,
    )


class OpenAICompatBackend(LLMBackend):
    """LLMBackend over an OpenAI-compatible HTTP API."""

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str = "",
        max_tokens: int = 500,
        temperature: float = 0.2,
        timeout_secs: float = 60.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._api_key = api_key
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._timeout = httpx.Timeout(timeout_secs, connect=10.0)
        self._client: httpx.AsyncClient | None = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
            self._client = httpx.AsyncClient(
                base_url=self._base_url, headers=headers, timeout=self._timeout,
            )
        return self._client

    async def generate(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        payload = build_chat_payload(
            self._model, system_prompt, user_prompt, self._max_tokens, self._temperature,
        )
        logger.debug("Requesting explanation from %s (model=%s)", self._base_url, self._model)

        resp = await self._http().post(CHAT_PATH, json=payload)
        if resp.status_code != 200:
            raise LLMError(f"API error ({resp.status_code}): {_error_detail(resp)}")

        try:
            data = resp.json()
        except ValueError:
            preview = resp.text[:200] or "(empty)"
            raise LLMError(
                f"API returned non-JSON response: {preview}. "
                f"Check that llm_api_url ({self._base_url}) is correct."
            ) from None

        response = parse_completion(data, self._model)
        logger.debug(
            "Explanation received: %d prompt + %d completion tokens",
            response.prompt_tokens,
            response.completion_tokens,
        )
        return response

    async def health_check(self) -> bool:
        try:
            resp = await self._http().get(MODELS_PATH)
        except httpx.HTTPError as e:
            logger.warning("LLM backend at %s unreachable: %s", self._base_url, e)
            return False
        return resp.status_code == 200

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
