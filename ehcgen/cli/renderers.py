"""Rich renderers for CLI outputs."""

from __future__ import annotations

from typing import Any, Iterable

from rich.panel import Panel
from rich.table import Table

from ehcgen.cli.io import console
from ehcgen.services.prompt_service import PromptTemplate

_PREVIEW_CHARACTERS = 600


def render_plan_output(plan: dict[str, Any], *, full_text: bool = False) -> None:
    """Display a generated plan: sections, outcomes, provisions, and review."""

    sections = plan.get("sections") or {}
    if not sections:
        console.print(Panel("No sections were generated.", title="Sections"))
    for section in sections.values():
        render_section_output(section, full_text=full_text)

    render_outcome_table(plan.get("outcomes") or [])
    render_provision_table(plan.get("provisions") or [])
    render_compliance_output(plan.get("compliance") or {})
    render_metadata(plan.get("metadata") or {})


def render_section_output(section: dict[str, Any], *, full_text: bool = True) -> None:
    """Render one drafted section."""

    text = section.get("text") or ""
    if not full_text and len(text) > _PREVIEW_CHARACTERS:
        text = text[:_PREVIEW_CHARACTERS].rstrip() + " ..."
    title = section.get("title") or section.get("section_type") or "Section"
    confidence = section.get("confidence")
    subtitle = f"confidence {confidence}" if confidence is not None else None
    console.print(Panel(text or "No text.", title=title, subtitle=subtitle))


def render_outcome_table(outcomes: Iterable[dict[str, Any]]) -> None:
    outcomes = list(outcomes)
    if not outcomes:
        console.print(Panel("No outcomes were generated.", title="Outcomes"))
        return

    table = Table(title="Outcomes", show_lines=False)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Category", style="magenta")
    table.add_column("Title", style="bold")
    table.add_column("Deadline")
    table.add_column("Milestones", justify="right")
    for outcome in outcomes:
        table.add_row(
            outcome.get("id") or "",
            outcome.get("category") or "",
            outcome.get("title") or "",
            outcome.get("time_bound_deadline") or "-",
            str(len(outcome.get("milestones") or [])),
        )
    console.print(table)


def render_provision_table(provisions: Iterable[dict[str, Any]]) -> None:
    provisions = list(provisions)
    if not provisions:
        console.print(Panel("No provisions were generated.", title="Provisions"))
        return

    table = Table(title="Provisions", show_lines=False)
    table.add_column("Type", style="magenta")
    table.add_column("Title", style="bold")
    table.add_column("Frequency")
    table.add_column("Hours/week", justify="right")
    table.add_column("Annual cost", justify="right")
    table.add_column("Outcomes", style="cyan")
    for provision in provisions:
        table.add_row(
            provision.get("provision_type") or "",
            provision.get("provision_title") or "",
            provision.get("frequency_description") or "",
            f"{float(provision.get('hours_per_week') or 0):g}",
            f"£{float(provision.get('annual_cost') or 0):,.2f}",
            ", ".join(provision.get("linked_outcomes") or []) or "-",
        )
    console.print(table)


def render_compliance_output(compliance: dict[str, Any], *, confidence: Any = None) -> None:
    """Render a compliance report and, when given, the overall confidence."""

    if not compliance:
        console.print(Panel("No compliance report available.", title="Compliance"))
        return

    lines = [f"[bold]Compliance score:[/] {compliance.get('compliance_score', 0)}"]
    if confidence is not None:
        lines.append(f"[bold]Overall confidence:[/] {confidence}")

    issues = compliance.get("issues") or []
    if issues:
        lines.append("\n[bold]Issues:[/]")
        for idx, issue in enumerate(issues, start=1):
            lines.append(f"{idx}. {issue}")

    recommendations = compliance.get("recommendations") or []
    if recommendations:
        lines.append("\n[bold]Recommendations:[/]")
        for idx, item in enumerate(recommendations, start=1):
            lines.append(f"{idx}. {item}")

    requirements = compliance.get("statutory_requirements_met") or {}
    if requirements:
        lines.append("\n[bold]Statutory requirements:[/]")
        for name, met in requirements.items():
            marker = "[green]met[/]" if met else "[red]not met[/]"
            lines.append(f"- {name}: {marker}")

    console.print(Panel("\n".join(lines), title="Compliance"))


def render_metadata(metadata: dict[str, Any]) -> None:
    if not metadata:
        return
    table = Table(title="Generation", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Model", str(metadata.get("model_identifier", "")))
    table.add_row("Confidence", str(metadata.get("confidence_score", "")))
    table.add_row("Tokens", str(metadata.get("tokens_used", "")))
    table.add_row("Time (ms)", str(metadata.get("generation_time_ms", "")))
    failed = metadata.get("failed_stages") or []
    if failed:
        table.add_row("Failed stages", ", ".join(failed))
    if metadata.get("deadline_exceeded"):
        table.add_row("Deadline", "[red]exceeded[/]")
    console.print(table)


def render_prompt_table(templates: Iterable[PromptTemplate]) -> None:
    table = Table(title="Prompt Templates")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Version", justify="right")
    table.add_column("Placeholders")
    table.add_column("File")
    for template in sorted(templates, key=lambda item: item.name):
        table.add_row(
            template.name,
            template.version,
            ", ".join(template.requires) or "-",
            template.path.name,
        )
    console.print(table)


__all__ = [
    "render_compliance_output",
    "render_metadata",
    "render_outcome_table",
    "render_plan_output",
    "render_prompt_table",
    "render_provision_table",
    "render_section_output",
]
