from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import pytest

from ehcgen.core.errors import (
    GenerationRateLimitError,
    GenerationTimeoutError,
    GenerationTransportError,
)
from ehcgen.core.llm_gateway import GenerationOptions, LLMGateway
from ehcgen.services.config_service import ConfigService


def _write_llm_config(base_dir: Path) -> None:
    (base_dir / "settings.yaml").write_text("app: {name: test}\n", encoding="utf-8")
    (base_dir / "models.yaml").write_text(
        (
            "workflows:\n"
            "  plan_sections:\n"
            "    model: 'azure/gpt-4.1'\n"
            "    temperature: 0.7\n"
            "    max_tokens: 1500\n"
            "  plan_outcomes:\n"
            "    temperature: 0.6\n"
            "defaults: {provider: azure_openai, model: 'azure/gpt-4.1-mini'}\n"
        ),
        encoding="utf-8",
    )
    (base_dir / "providers.yaml").write_text(
        (
            "providers:\n"
            "  azure_openai:\n"
            "    api_base: 'https://azure.example.com'\n"
            "    api_version: '2024-05-01-preview'\n"
            "    api_key_env: 'AZURE_KEY'\n"
            "    litellm_provider: 'azure'\n"
        ),
        encoding="utf-8",
    )


@pytest.fixture()
def llm_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigService:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    _write_llm_config(config_dir)
    monkeypatch.setenv("AZURE_KEY", "secret")
    return ConfigService(config_path=config_dir)


def _reply(content: Any, usage: Dict[str, Any] | None = None) -> Dict[str, Any]:
    response: Dict[str, Any] = {"choices": [{"message": {"content": content}}]}
    if usage is not None:
        response["usage"] = usage
    return response


def test_generate_sends_messages_and_stage_parameters(
    llm_config: ConfigService, monkeypatch: pytest.MonkeyPatch
) -> None:
    captured: Dict[str, Any] = {}

    def fake_completion(*, messages: List[Dict[str, str]], **kwargs: Any) -> Dict[str, Any]:
        captured["messages"] = messages
        captured["kwargs"] = kwargs
        return _reply("drafted", {"total_tokens": 321})

    monkeypatch.setattr("ehcgen.core.llm_gateway.completion", fake_completion)

    result = LLMGateway(config_service=llm_config).generate(
        "system", "hello world", GenerationOptions(stage="plan_sections", timeout=12.5)
    )

    assert result.text == "drafted"
    assert result.tokens_used == 321
    assert captured["messages"] == [
        {"role": "system", "content": "system"},
        {"role": "user", "content": "hello world"},
    ]
    kwargs = captured["kwargs"]
    assert kwargs["model"] == "azure/gpt-4.1"
    assert kwargs["temperature"] == 0.7
    assert kwargs["max_tokens"] == 1500
    assert kwargs["timeout"] == 12.5
    assert kwargs["api_key"] == "secret"
    assert kwargs["custom_llm_provider"] == "azure"
    assert "response_format" not in kwargs


def test_generate_requests_json_and_falls_back_to_default_model(
    llm_config: ConfigService, monkeypatch: pytest.MonkeyPatch
) -> None:
    captured: Dict[str, Any] = {}

    def fake_completion(*, messages: List[Dict[str, str]], **kwargs: Any) -> Dict[str, Any]:
        captured.update(kwargs)
        return _reply("{}", {"prompt_tokens": 40, "completion_tokens": 2})

    monkeypatch.setattr("ehcgen.core.llm_gateway.completion", fake_completion)

    result = LLMGateway(config_service=llm_config).generate(
        "system",
        "prompt",
        GenerationOptions(stage="plan_outcomes", response_format="json", temperature=0.1),
    )

    assert result.tokens_used == 42
    assert captured["model"] == "azure/gpt-4.1-mini"
    assert captured["temperature"] == 0.1
    assert captured["response_format"] == {"type": "json_object"}
    assert captured["timeout"] == LLMGateway.DEFAULT_TIMEOUT_SECONDS


def test_timeouts_map_to_generation_timeout(
    llm_config: ConfigService, monkeypatch: pytest.MonkeyPatch
) -> None:
    def slow_completion(**_: Any) -> Dict[str, Any]:
        raise TimeoutError("read timed out")

    monkeypatch.setattr("ehcgen.core.llm_gateway.completion", slow_completion)

    with pytest.raises(GenerationTimeoutError):
        LLMGateway(config_service=llm_config).generate("system", "prompt")


def test_rate_limits_map_to_rate_limit_error(
    llm_config: ConfigService, monkeypatch: pytest.MonkeyPatch
) -> None:
    class FakeRateLimit(Exception):
        pass

    def limited_completion(**_: Any) -> Dict[str, Any]:
        raise FakeRateLimit("429")

    monkeypatch.setattr("ehcgen.core.llm_gateway.RateLimitError", FakeRateLimit)
    monkeypatch.setattr("ehcgen.core.llm_gateway.completion", limited_completion)

    with pytest.raises(GenerationRateLimitError):
        LLMGateway(config_service=llm_config).generate("system", "prompt")


def test_other_failures_map_to_transport_error_without_retry(
    llm_config: ConfigService, monkeypatch: pytest.MonkeyPatch
) -> None:
    attempts = {"count": 0}

    def failing_completion(**_: Any) -> Dict[str, Any]:
        attempts["count"] += 1
        raise RuntimeError("connection reset")

    monkeypatch.setattr("ehcgen.core.llm_gateway.completion", failing_completion)

    with pytest.raises(GenerationTransportError, match="connection reset"):
        LLMGateway(config_service=llm_config).generate("system", "prompt")
    assert attempts["count"] == 1


@pytest.mark.parametrize(
    "response",
    [{"choices": []}, {"choices": [{"message": "text"}]}, {"choices": [{"message": {"content": 5}}]}],
)
def test_unusable_responses_raise_transport_error(
    llm_config: ConfigService, monkeypatch: pytest.MonkeyPatch, response: Dict[str, Any]
) -> None:
    monkeypatch.setattr("ehcgen.core.llm_gateway.completion", lambda **_: response)

    with pytest.raises(GenerationTransportError):
        LLMGateway(config_service=llm_config).generate("system", "prompt")


def test_missing_api_key_is_a_transport_error(
    llm_config: ConfigService, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("AZURE_KEY", raising=False)
    monkeypatch.setattr("ehcgen.core.llm_gateway.completion", lambda **_: _reply("unused"))

    with pytest.raises(GenerationTransportError, match="AZURE_KEY"):
        LLMGateway(config_service=llm_config).generate("system", "prompt")


def test_model_dump_responses_are_normalised(
    llm_config: ConfigService, monkeypatch: pytest.MonkeyPatch
) -> None:
    class ModelResponse:
        def model_dump(self) -> Dict[str, Any]:
            return _reply(None, {"total_tokens": 7})

    monkeypatch.setattr("ehcgen.core.llm_gateway.completion", lambda **_: ModelResponse())

    result = LLMGateway(config_service=llm_config).generate("system", "prompt")

    assert result.text == ""
    assert result.tokens_used == 7
