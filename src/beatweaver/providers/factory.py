"""Factory for creating chat models and generation services.

Uses LangChain's init_chat_model abstraction for unified provider
instantiation. Provider-specific configuration (API keys, Ollama host and
context size) is resolved before the unified call.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

from beatweaver.observability.logging import get_logger
from beatweaver.providers.base import ProviderError
from beatweaver.providers.chat_service import ChatModelGenerationService

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from beatweaver.observability import LLMLogger

log = get_logger(__name__)

# Provider default models - None means model must be explicitly specified
PROVIDER_DEFAULTS: dict[str, str | None] = {
    "ollama": None,
    "openai": "gpt-4o",
    "anthropic": "claude-sonnet-4-20250514",
}

_KNOWN_PROVIDERS = frozenset(PROVIDER_DEFAULTS)

_PACKAGES = {
    "ollama": "langchain-ollama",
    "openai": "langchain-openai",
    "anthropic": "langchain-anthropic",
}

DEFAULT_OLLAMA_NUM_CTX = 32_768


def parse_provider_string(value: str) -> tuple[str, str]:
    """Split ``provider/model`` into its parts.

    The model may itself contain slashes or colons (``ollama/qwen3:8b``).
    A bare provider name resolves to its default model.

    Raises:
        ProviderError: If the provider is unknown or has no default model.
    """
    provider, _, model = value.strip().partition("/")
    provider = provider.lower()
    if provider not in _KNOWN_PROVIDERS:
        raise ProviderError(provider or "unknown", f"Unknown provider: {provider!r}")
    if not model:
        default = PROVIDER_DEFAULTS[provider]
        if default is None:
            raise ProviderError(provider, f"Model required, use '{provider}/<model>'")
        model = default
    return provider, model


def create_chat_model(provider_name: str, model: str, **kwargs: Any) -> BaseChatModel:
    """Create a LangChain chat model.

    Args:
        provider_name: Provider identifier (ollama, openai, anthropic).
        model: Model name/identifier.
        **kwargs: Additional provider-specific options.

    Returns:
        Configured BaseChatModel.

    Raises:
        ProviderError: If provider unavailable or misconfigured.
    """
    provider = provider_name.lower()
    if provider not in _KNOWN_PROVIDERS:
        log.error("provider_unknown", provider=provider)
        raise ProviderError(provider, f"Unknown provider: {provider}")

    kwargs = _preprocess_provider_kwargs(provider, model, kwargs)

    try:
        from langchain.chat_models import init_chat_model

        chat_model: BaseChatModel = init_chat_model(model=model, model_provider=provider, **kwargs)
    except ImportError as e:
        package = _PACKAGES[provider]
        log.error("provider_import_error", provider=provider, package=package)
        raise ProviderError(provider, f"{package} not installed. Run: pip install {package}") from e

    log.info("chat_model_created", provider=provider, model=model)
    return chat_model


def create_generation_service(
    provider_string: str,
    llm_logger: LLMLogger | None = None,
    **kwargs: Any,
) -> ChatModelGenerationService:
    """Build a generation service from a ``provider/model`` string."""
    provider, model = parse_provider_string(provider_string)
    chat_model = create_chat_model(provider, model, **kwargs)
    return ChatModelGenerationService(chat_model, provider, model, llm_logger=llm_logger)


def _preprocess_provider_kwargs(
    provider: str,
    model: str,
    kwargs: dict[str, Any],
) -> dict[str, Any]:
    """Resolve provider-specific configuration from kwargs or environment.

    Raises:
        ProviderError: If required configuration is missing.
    """
    kwargs = dict(kwargs)

    if provider == "ollama":
        host = kwargs.pop("host", None) or os.getenv("OLLAMA_HOST")
        if not host:
            log.error("provider_config_error", provider="ollama", missing="OLLAMA_HOST")
            raise ProviderError(
                "ollama",
                "OLLAMA_HOST not configured. Set OLLAMA_HOST environment variable.",
            )
        kwargs["base_url"] = host
        if "num_ctx" not in kwargs:
            kwargs["num_ctx"] = _query_ollama_num_ctx(host, model) or DEFAULT_OLLAMA_NUM_CTX

    elif provider in ("openai", "anthropic"):
        env_var = f"{provider.upper()}_API_KEY"
        api_key = kwargs.get("api_key") or os.getenv(env_var)
        if not api_key:
            log.error("provider_config_error", provider=provider, missing=env_var)
            raise ProviderError(provider, f"API key required. Set {env_var} environment variable.")
        kwargs["api_key"] = api_key

    return kwargs


def _query_ollama_num_ctx(host: str, model: str) -> int | None:
    """Ask Ollama's /api/show for the model's configured ``num_ctx``.

    Returns:
        The configured context size, or None if the query fails or the
        value is not present.
    """
    import httpx

    try:
        with httpx.Client(timeout=10.0) as client:
            resp = client.post(f"{host}/api/show", json={"model": model})
            resp.raise_for_status()
            data = resp.json()
    except Exception as exc:
        log.warning("ollama_show_failed", model=model, error=str(exc))
        return None

    for line in data.get("parameters", "").splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "num_ctx" and parts[-1].isdigit():
            return int(parts[-1])

    for key, value in data.get("model_info", {}).items():
        if key.endswith(".context_length") and isinstance(value, int):
            return value
    return None
