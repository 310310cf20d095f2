"""LangChain chat model adapter for the generation service protocol."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from langchain_core.messages import HumanMessage, SystemMessage

from beatweaver.observability.logging import get_logger
from beatweaver.providers.base import (
    GenerationOptions,
    GenerationResponse,
    ProviderError,
)

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from beatweaver.observability import LLMLogger

log = get_logger(__name__)


def binding_kwargs(provider: str, options: GenerationOptions) -> dict[str, Any]:
    """Translate generation options into per-call kwargs for ``bind()``.

    Ollama ignores top-level sampling kwargs at call time, so they go into
    ``options`` under Ollama's own names.
    """
    if provider == "ollama":
        kwargs: dict[str, Any] = {
            "options": {"temperature": options.temperature, "num_predict": options.max_tokens}
        }
        if options.json_mode:
            kwargs["format"] = "json"
        return kwargs

    kwargs = {"temperature": options.temperature, "max_tokens": options.max_tokens}
    if options.json_mode and provider == "openai":
        kwargs["response_format"] = {"type": "json_object"}
    return kwargs


def _content_text(content: Any) -> str:
    """Flatten message content, which may be a list of blocks."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return str(content)


class ChatModelGenerationService:
    """Adapts a LangChain chat model to the GenerationService protocol.

    Attributes:
        provider: Provider name, used to pick binding kwargs.
        model_name: Model identifier for responses and logs.
    """

    def __init__(
        self,
        model: BaseChatModel,
        provider: str,
        model_name: str,
        llm_logger: LLMLogger | None = None,
    ) -> None:
        """Initialize with a configured chat model.

        Args:
            model: LangChain chat model instance.
            provider: Provider name (ollama, openai, anthropic).
            model_name: Model identifier.
            llm_logger: Optional call logger.
        """
        self._model = model
        self.provider = provider
        self.model_name = model_name
        self._llm_logger = llm_logger

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        options: GenerationOptions,
    ) -> GenerationResponse:
        """Run one chat completion.

        Raises:
            ProviderError: If the underlying model call fails.
        """
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        bound = self._model.bind(**binding_kwargs(self.provider, options))

        start_time = time.perf_counter()
        try:
            response = await bound.ainvoke(messages)
        except Exception as e:
            self._record(system_prompt, user_prompt, options, "", 0, start_time, str(e))
            log.warning(
                "generation_failed", stage=options.stage, provider=self.provider, error=str(e)
            )
            raise ProviderError(self.provider, f"Completion failed: {e}") from e

        tokens_used = 0
        if getattr(response, "usage_metadata", None):
            tokens_used = response.usage_metadata.get("total_tokens", 0)
        content = _content_text(response.content)

        self._record(system_prompt, user_prompt, options, content, tokens_used, start_time)
        log.debug(
            "generation_complete",
            stage=options.stage,
            model=self.model_name,
            tokens=tokens_used,
        )
        return GenerationResponse(content=content, model=self.model_name, tokens_used=tokens_used)

    def _record(
        self,
        system_prompt: str,
        user_prompt: str,
        options: GenerationOptions,
        content: str,
        tokens_used: int,
        start_time: float,
        error: str | None = None,
    ) -> None:
        if self._llm_logger is None:
            return
        entry = self._llm_logger.create_entry(
            stage=options.stage,
            model=self.model_name,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            content=content,
            tokens_used=tokens_used,
            duration_seconds=time.perf_counter() - start_time,
            temperature=options.temperature,
            max_tokens=options.max_tokens,
            json_mode=options.json_mode,
            error=error,
            provider=self.provider,
        )
        self._llm_logger.log(entry)
