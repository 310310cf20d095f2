"""Generation providers using LangChain chat models."""

from beatweaver.providers.base import (
    GenerationOptions,
    GenerationResponse,
    GenerationService,
    ProviderError,
)
from beatweaver.providers.chat_service import ChatModelGenerationService
from beatweaver.providers.factory import (
    create_chat_model,
    create_generation_service,
    parse_provider_string,
)

__all__ = [
    "ChatModelGenerationService",
    "GenerationOptions",
    "GenerationResponse",
    "GenerationService",
    "ProviderError",
    "create_chat_model",
    "create_generation_service",
    "parse_provider_string",
]
