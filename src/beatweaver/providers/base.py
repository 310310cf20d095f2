"""Generation service protocol and types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class GenerationOptions:
    """Per-call sampling options.

    Attributes:
        temperature: Sampling temperature.
        max_tokens: Maximum tokens to generate.
        json_mode: Ask the provider for a JSON object response.
        stage: Pipeline stage issuing the call, for call logging.
    """

    temperature: float = 0.7
    max_tokens: int = 4000
    json_mode: bool = True
    stage: str = ""


@dataclass
class GenerationResponse:
    """Response from a generation call.

    Attributes:
        content: Text content of the response (JSON text in json_mode).
        model: Model that generated the response.
        tokens_used: Total tokens consumed, 0 when unknown.
    """

    content: str
    model: str = ""
    tokens_used: int = 0


class GenerationService(Protocol):
    """Anything that turns a system and user prompt into text."""

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        options: GenerationOptions,
    ) -> GenerationResponse:
        """Generate a response for the given prompts.

        Raises:
            ProviderError: If the call fails.
        """
        ...


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"[{provider}] {message}")
