"""Tests for the generation providers."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from beatweaver.observability import LLMLogger
from beatweaver.providers import (
    ChatModelGenerationService,
    GenerationOptions,
    ProviderError,
    create_chat_model,
    create_generation_service,
    parse_provider_string,
)
from beatweaver.providers.chat_service import binding_kwargs
from beatweaver.providers.factory import DEFAULT_OLLAMA_NUM_CTX, _query_ollama_num_ctx

if TYPE_CHECKING:
    from pathlib import Path


def _chat_model(response: object) -> MagicMock:
    """A chat model whose bound runnable returns ``response``."""
    bound = MagicMock()
    bound.ainvoke = AsyncMock(return_value=response)
    model = MagicMock()
    model.bind.return_value = bound
    return model


# --- binding_kwargs ---


def test_binding_kwargs_openai_json_mode() -> None:
    """OpenAI gets top-level sampling kwargs and a JSON response format."""
    options = GenerationOptions(temperature=0.2, max_tokens=4000)
    assert binding_kwargs("openai", options) == {
        "temperature": 0.2,
        "max_tokens": 4000,
        "response_format": {"type": "json_object"},
    }


def test_binding_kwargs_ollama_uses_options() -> None:
    """Ollama sampling settings go into its options mapping."""
    options = GenerationOptions(temperature=0.7, max_tokens=8000)
    assert binding_kwargs("ollama", options) == {
        "options": {"temperature": 0.7, "num_predict": 8000},
        "format": "json",
    }


def test_binding_kwargs_without_json_mode() -> None:
    options = GenerationOptions(json_mode=False)
    assert "response_format" not in binding_kwargs("openai", options)
    assert "format" not in binding_kwargs("ollama", options)
    assert binding_kwargs("anthropic", options) == {"temperature": 0.7, "max_tokens": 4000}


# --- parse_provider_string ---


def test_parse_provider_string() -> None:
    assert parse_provider_string("openai/gpt-4o-mini") == ("openai", "gpt-4o-mini")
    assert parse_provider_string("Ollama/qwen3:8b") == ("ollama", "qwen3:8b")


def test_parse_provider_string_default_model() -> None:
    assert parse_provider_string("anthropic") == ("anthropic", "claude-sonnet-4-20250514")


def test_parse_provider_string_ollama_requires_model() -> None:
    with pytest.raises(ProviderError, match="Model required"):
        parse_provider_string("ollama")


def test_parse_provider_string_unknown() -> None:
    with pytest.raises(ProviderError, match="Unknown provider"):
        parse_provider_string("mystery/model")


# --- create_chat_model ---


def test_create_chat_model_openai_uses_env_key(monkeypatch: pytest.MonkeyPatch) -> None:
    """The API key is read from the environment and passed through."""
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    chat = MagicMock()
    with patch("langchain.chat_models.init_chat_model", return_value=chat) as init:
        assert create_chat_model("openai", "gpt-4o") is chat

    init.assert_called_once_with(model="gpt-4o", model_provider="openai", api_key="sk-test")


def test_create_chat_model_missing_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    with pytest.raises(ProviderError, match="ANTHROPIC_API_KEY"):
        create_chat_model("anthropic", "claude-sonnet-4-20250514")


def test_create_chat_model_ollama_requires_host(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OLLAMA_HOST", raising=False)
    with pytest.raises(ProviderError, match="OLLAMA_HOST"):
        create_chat_model("ollama", "qwen3:8b")


def test_create_chat_model_ollama_num_ctx_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    """An unreachable Ollama falls back to the default context size."""
    monkeypatch.setenv("OLLAMA_HOST", "http://localhost:11434")
    with (
        patch("beatweaver.providers.factory._query_ollama_num_ctx", return_value=None),
        patch("langchain.chat_models.init_chat_model", return_value=MagicMock()) as init,
    ):
        create_chat_model("ollama", "qwen3:8b")

    kwargs = init.call_args.kwargs
    assert kwargs["base_url"] == "http://localhost:11434"
    assert kwargs["num_ctx"] == DEFAULT_OLLAMA_NUM_CTX


def test_create_chat_model_missing_package(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    with (
        patch("langchain.chat_models.init_chat_model", side_effect=ImportError("nope")),
        pytest.raises(ProviderError, match="langchain-openai not installed"),
    ):
        create_chat_model("openai", "gpt-4o")


def test_create_generation_service(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    with patch("langchain.chat_models.init_chat_model", return_value=MagicMock()):
        service = create_generation_service("openai/gpt-4o-mini")

    assert isinstance(service, ChatModelGenerationService)
    assert service.provider == "openai"
    assert service.model_name == "gpt-4o-mini"


def test_query_ollama_num_ctx_reads_parameters() -> None:
    response = MagicMock()
    response.json.return_value = {"parameters": "temperature 0.7\nnum_ctx 16384"}
    client = MagicMock()
    client.post.return_value = response
    with patch("httpx.Client") as client_cls:
        client_cls.return_value.__enter__.return_value = client
        assert _query_ollama_num_ctx("http://ollama:11434", "qwen3:8b") == 16384

    client.post.assert_called_once_with(
        "http://ollama:11434/api/show", json={"model": "qwen3:8b"}
    )


def test_query_ollama_num_ctx_failure_returns_none() -> None:
    with patch("httpx.Client") as client_cls:
        client_cls.return_value.__enter__.side_effect = ConnectionError("refused")
        assert _query_ollama_num_ctx("http://ollama:11434", "qwen3:8b") is None


# --- ChatModelGenerationService ---


class TestChatModelGenerationService:
    """Tests for the LangChain adapter."""

    @pytest.mark.asyncio
    async def test_generate_returns_content_and_tokens(self) -> None:
        response = MagicMock()
        response.content = '{"beats": []}'
        response.usage_metadata = {"total_tokens": 42}
        model = _chat_model(response)
        service = ChatModelGenerationService(model, "openai", "gpt-4o")

        result = await service.generate("sys", "user", GenerationOptions(temperature=0.3))

        assert result.content == '{"beats": []}'
        assert result.tokens_used == 42
        assert result.model == "gpt-4o"
        model.bind.assert_called_once_with(
            temperature=0.3, max_tokens=4000, response_format={"type": "json_object"}
        )
        messages = model.bind.return_value.ainvoke.call_args.args[0]
        assert [m.content for m in messages] == ["sys", "user"]

    @pytest.mark.asyncio
    async def test_block_content_is_flattened(self) -> None:
        response = MagicMock()
        response.content = [{"type": "text", "text": "{"}, {"type": "text", "text": "}"}]
        response.usage_metadata = None
        service = ChatModelGenerationService(_chat_model(response), "anthropic", "claude")

        result = await service.generate("sys", "user", GenerationOptions())

        assert result.content == "{}"
        assert result.tokens_used == 0

    @pytest.mark.asyncio
    async def test_failure_raises_provider_error(self) -> None:
        model = MagicMock()
        model.bind.return_value.ainvoke = AsyncMock(side_effect=TimeoutError("slow"))
        service = ChatModelGenerationService(model, "openai", "gpt-4o")

        with pytest.raises(ProviderError, match=r"\[openai\] Completion failed: slow"):
            await service.generate("sys", "user", GenerationOptions())

    @pytest.mark.asyncio
    async def test_calls_are_logged(self, tmp_path: Path) -> None:
        """Each call writes one JSONL entry tagged with its stage."""
        import json

        response = MagicMock()
        response.content = "{}"
        response.usage_metadata = {"total_tokens": 7}
        llm_logger = LLMLogger(tmp_path)
        service = ChatModelGenerationService(
            _chat_model(response), "openai", "gpt-4o", llm_logger=llm_logger
        )

        await service.generate("sys", "user", GenerationOptions(stage="timeline"))

        lines = llm_logger.log_path.read_text().splitlines()
        entry = json.loads(lines[0])
        assert entry["stage"] == "timeline"
        assert entry["tokens_used"] == 7
        assert entry["metadata"]["provider"] == "openai"
