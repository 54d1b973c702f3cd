"""Shared test doubles and utilities for ehcgen.cli tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Mapping, MutableMapping, Optional

import yaml

import ehcgen.cli as cli
from tests.helpers.context import ASD_PAYLOAD, build_pipeline, make_context
from tests.helpers.llm import ScriptedGenerationService, canned_responders

Handler = Callable[[Dict[str, Any], "RecordingOrchestrator"], Dict[str, Any]]
DefaultHandler = Callable[[str, Dict[str, Any], "RecordingOrchestrator"], Dict[str, Any]]


class RecordingOrchestrator:
    """Orchestrator double that records calls and dispatches handlers."""

    def __init__(
        self,
        *,
        handlers: Optional[Mapping[str, Handler]] = None,
        default: Optional[DefaultHandler] = None,
    ) -> None:
        self._handlers: Dict[str, Handler] = dict(handlers or {})
        self._default = default or (lambda _workflow, _context, _self: {})
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.data: MutableMapping[str, Any] = {}

    def execute(self, workflow: str, context: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append((workflow, context))
        handler = self._handlers.get(workflow)
        if handler:
            return handler(context, self)
        return self._default(workflow, context, self)


def sample_plan() -> Dict[str, Any]:
    """Return a serialised plan produced by the real pipeline with canned replies."""

    llm = ScriptedGenerationService(canned_responders())
    return build_pipeline(llm).generate_plan(make_context()).as_dict()


def build_default_handlers() -> Dict[str, Handler]:
    """Return handlers covering the plan workflows for tests."""

    plan = sample_plan()

    def generate_handler(context: Dict[str, Any], _: RecordingOrchestrator) -> Dict[str, Any]:
        assert context["context"]
        return {"workflow": "generate_plan", "plan": plan}

    def regenerate_handler(context: Dict[str, Any], _: RecordingOrchestrator) -> Dict[str, Any]:
        section = plan["sections"][context["section"]]
        return {"workflow": "regenerate_section", "section": section}

    def compliance_handler(context: Dict[str, Any], _: RecordingOrchestrator) -> Dict[str, Any]:
        assert context["plan"]
        return {
            "workflow": "check_compliance",
            "compliance": plan["compliance"],
            "overall_confidence": 88,
            "tokens_used": 100,
        }

    return {
        "generate_plan": generate_handler,
        "regenerate_section": regenerate_handler,
        "check_compliance": compliance_handler,
    }


def patch_runtime(monkeypatch: Any, orchestrator: RecordingOrchestrator) -> None:
    """Route CLI commands to the supplied orchestrator."""

    monkeypatch.setattr(cli, "get_orchestrator", lambda: orchestrator)
    monkeypatch.setattr(cli, "set_runtime", lambda runtime: None)


def write_context_file(directory: Path, name: str = "context.yaml") -> Path:
    path = directory / name
    path.write_text(yaml.safe_dump(ASD_PAYLOAD, sort_keys=False), encoding="utf-8")
    return path


__all__ = [
    "RecordingOrchestrator",
    "build_default_handlers",
    "patch_runtime",
    "sample_plan",
    "write_context_file",
]
