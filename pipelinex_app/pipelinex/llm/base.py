"""LLM backend interface used by the finding explainer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field


class LLMResponse(BaseModel):
    """One chat completion, normalised across providers."""

    content: str
    model: str = ""
    finish_reason: str | None = None
    prompt_tokens: int = 0
    completion_tokens: int = 0
    raw: dict[str, Any] = Field(default_factory=dict)

    @property
    def truncated(self) -> bool:
        """The model stopped because it hit the token limit."""
        return self.finish_reason == "length"

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class LLMBackend(ABC):
    """A chat model that turns a finding prompt into prose."""

    @property
    def model_name(self) -> str:
        return getattr(self, "_model", "")

    @abstractmethod
    async def generate(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        """Return one completion for a system/user prompt pair."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """True when the backend answers requests."""
        ...

    async def close(self) -> None:
        """Release held connections; backends without any keep the no-op."""
