from __future__ import annotations

from typing import Any, Dict

import pytest

import ehcgen.cli as cli
import ehcgen.cli.runtime as runtime
from ehcgen.services.config_service import ConfigService, PipelineSettings
from tests.helpers.llm import ScriptedGenerationService


class StubConfigService(ConfigService):
    """Packaged configuration with tighter pipeline limits."""

    @property
    def pipeline_settings(self) -> PipelineSettings:
        return PipelineSettings(call_timeout_seconds=3.0, max_attempts=1, total_deadline_seconds=9.0)


class StubOrchestrator:
    def __init__(self, workflows: Dict[str, Any]) -> None:
        self.workflows = workflows


@pytest.fixture()
def stubbed_runtime(monkeypatch: pytest.MonkeyPatch) -> Dict[str, Any]:
    created: Dict[str, Any] = {}

    def gateway_factory(config_service: ConfigService) -> ScriptedGenerationService:
        created["config_service"] = config_service
        created["llm"] = ScriptedGenerationService()
        return created["llm"]

    monkeypatch.setattr(runtime, "configure_logging", lambda config: created.setdefault("logging", config))
    monkeypatch.setattr(cli, "ConfigService", StubConfigService)
    monkeypatch.setattr(cli, "LLMGateway", gateway_factory)
    monkeypatch.setattr(cli, "Orchestrator", StubOrchestrator)
    return created


def test_initialize_runtime_registers_plan_workflows(stubbed_runtime: Dict[str, Any]) -> None:
    orchestrator = runtime.initialize_runtime()

    assert set(orchestrator.workflows) == {"generate_plan", "regenerate_section", "check_compliance"}
    assert isinstance(stubbed_runtime["config_service"], StubConfigService)
    assert stubbed_runtime["logging"]["level"] == "INFO"

    pipeline = orchestrator.workflows["generate_plan"].pipeline
    assert pipeline.settings.call_timeout_seconds == 3.0
    policy = orchestrator.workflows["regenerate_section"].policy_factory()
    assert policy.remaining() == pytest.approx(9.0, abs=1.0)


def test_get_orchestrator_caches_runtime(stubbed_runtime: Dict[str, Any]) -> None:
    runtime.set_runtime(None)
    try:
        first = runtime.get_orchestrator()
        second = runtime.get_orchestrator()
    finally:
        runtime.set_runtime(None)

    assert first is second


def test_create_prompt_service_uses_override(monkeypatch: pytest.MonkeyPatch) -> None:
    created: list[Any] = []

    class RecordingPromptService(cli.PromptService):
        def __init__(self, *args: Any, **kwargs: Any) -> None:
            created.append(kwargs)
            super().__init__(*args, **kwargs)

    monkeypatch.setattr(cli, "PromptService", RecordingPromptService)

    service = runtime.create_prompt_service()

    assert isinstance(service, RecordingPromptService)
    assert "childAge" in created[0]["known_placeholders"]
    assert "child_views" in service.templates
