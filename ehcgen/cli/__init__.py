"""EHC plan generator CLI package."""

from __future__ import annotations

import logging

import typer

from ehcgen.cli.commands.core import (
    check_compliance,
    generate,
    prompts,
    regenerate_section,
)
from ehcgen.cli.io import console
from ehcgen.cli.renderers import (
    render_compliance_output,
    render_plan_output,
    render_prompt_table,
    render_section_output,
)
from ehcgen.cli.reporting import render_plan_markdown, write_plan
from ehcgen.cli.runtime import (
    create_prompt_service,
    get_orchestrator,
    initialize_runtime,
    set_runtime,
    set_runtime_level,
)
from ehcgen.cli.utils import apply_log_override, load_document
from ehcgen.core.llm_gateway import LLMGateway
from ehcgen.core.orchestrator import Orchestrator
from ehcgen.services.config_service import ConfigService
from ehcgen.services.prompt_service import PromptService

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False, help="EHC plan generator CLI")

app.command()(generate)
app.command("regenerate-section")(regenerate_section)
app.command("check-compliance")(check_compliance)
app.command()(prompts)


def main() -> None:
    """CLI entry point."""

    app()


__all__: list[str] = [
    "app",
    "main",
    "console",
    "logger",
    "create_prompt_service",
    "get_orchestrator",
    "initialize_runtime",
    "set_runtime",
    "set_runtime_level",
    "generate",
    "regenerate_section",
    "check_compliance",
    "prompts",
    "render_compliance_output",
    "render_plan_output",
    "render_prompt_table",
    "render_section_output",
    "render_plan_markdown",
    "write_plan",
    "apply_log_override",
    "load_document",
    # Re-exported so tests can substitute runtime dependencies.
    "ConfigService",
    "LLMGateway",
    "Orchestrator",
    "PromptService",
]
