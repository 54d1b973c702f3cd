"""Primary CLI commands for the EHC plan generator."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich.panel import Panel

from ehcgen.cli.io import console
from ehcgen.cli.renderers import (
    render_compliance_output,
    render_plan_output,
    render_prompt_table,
    render_section_output,
)
from ehcgen.cli.reporting import write_plan
from ehcgen.cli.utils import apply_log_override, load_document
from ehcgen.core.errors import PipelineError, PlanGenerationError

logger = logging.getLogger(__name__)


def _cli() -> Any:
    return sys.modules["ehcgen.cli"]


def _execute(workflow: str, context: dict[str, Any], label: str) -> dict[str, Any]:
    try:
        return _cli().get_orchestrator().execute(workflow, context)
    except PipelineError as exc:
        console.print(
            f"[red]{label} failed: {exc}[/] "
            f"(tokens used: {exc.tokens_used}, elapsed: {exc.elapsed_ms} ms)"
        )
        raise typer.Exit(code=1) from exc
    except (PlanGenerationError, ValueError, KeyError) as exc:
        console.print(f"[red]{label} failed: {exc}[/]")
        raise typer.Exit(code=1) from exc


def generate(
    context_file: Path = typer.Argument(..., help="YAML or JSON file holding the generation context."),
    section: Optional[List[str]] = typer.Option(
        None,
        "--section",
        "-s",
        help="Draft only this section; repeat for several. Defaults to every section.",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the plan to this file (.md for markdown, otherwise JSON).",
    ),
    full_text: bool = typer.Option(
        False, "--full-text/--preview", help="Print complete section text."
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Override logging level for this invocation (e.g., DEBUG, INFO).",
    ),
) -> None:
    """Generate a complete EHC plan draft."""

    apply_log_override(log_level)
    payload = load_document(context_file)
    context: dict[str, Any] = {"context": payload}
    if section:
        context["sections"] = list(section)

    result = _execute("generate_plan", context, "Plan generation")
    plan = result.get("plan") or {}
    render_plan_output(plan, full_text=full_text)
    if output is not None:
        write_plan(plan, output)
        console.print(f"[green]Plan written to {output}[/]")
    logger.info("Plan generation command completed.")


def regenerate_section(
    context_file: Path = typer.Argument(..., help="YAML or JSON file holding the generation context."),
    section: str = typer.Argument(..., help="Section to draft again, e.g. child_views."),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Override logging level for this invocation.",
    ),
) -> None:
    """Draft one plan section again."""

    apply_log_override(log_level)
    payload = load_document(context_file)
    result = _execute(
        "regenerate_section", {"context": payload, "section": section}, "Section regeneration"
    )
    render_section_output(result.get("section") or {})


def check_compliance(
    context_file: Path = typer.Argument(..., help="YAML or JSON file holding the generation context."),
    plan_file: Path = typer.Argument(..., help="JSON plan previously written by `generate`."),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Override logging level for this invocation.",
    ),
) -> None:
    """Re-run the compliance review for a saved plan."""

    apply_log_override(log_level)
    payload = load_document(context_file)
    plan = load_document(plan_file)
    result = _execute(
        "check_compliance", {"context": payload, "plan": plan}, "Compliance check"
    )
    render_compliance_output(
        result.get("compliance") or {}, confidence=result.get("overall_confidence")
    )


def prompts() -> None:
    """List registered prompt templates with their versions and placeholders."""

    try:
        prompt_service = _cli().create_prompt_service()
    except (FileNotFoundError, ValueError) as exc:
        console.print(Panel(f"[red]{exc}[/]", title="Prompt registry"))
        raise typer.Exit(code=1) from exc
    render_prompt_table(prompt_service.templates.values())
