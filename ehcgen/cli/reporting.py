"""Utilities for exporting generated plans."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict


def render_plan_markdown(plan: Dict[str, Any]) -> str:
    """Render a markdown document from a serialised plan."""

    sections: list[str] = ["# Education, Health and Care Plan (draft)"]

    for section in (plan.get("sections") or {}).values():
        title = section.get("title") or section.get("section_type") or "Section"
        sections.append(f"## {title}\n\n{section.get('text') or ''}".rstrip())

    outcomes = plan.get("outcomes") or []
    if outcomes:
        sections.append(_render_outcomes(outcomes))

    provisions = plan.get("provisions") or []
    if provisions:
        sections.append(_render_provisions(provisions))

    compliance = plan.get("compliance") or {}
    if compliance:
        sections.append(_render_compliance(compliance))

    metadata = plan.get("metadata") or {}
    sections.append("## Appendix\n\n```json\n" + json.dumps(metadata, indent=2) + "\n```")
    return "\n\n".join(sections) + "\n"


def write_plan(plan: Dict[str, Any], path: Path) -> None:
    """Write ``plan`` as markdown for ``.md`` paths, JSON otherwise."""

    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() in {".md", ".markdown"}:
        path.write_text(render_plan_markdown(plan), encoding="utf-8")
    else:
        path.write_text(json.dumps(plan, indent=2, ensure_ascii=False), encoding="utf-8")


def _render_outcomes(outcomes: list[Dict[str, Any]]) -> str:
    lines = ["## Outcomes"]
    for outcome in outcomes:
        lines.append(f"\n### {outcome.get('title') or 'Outcome'} ({outcome.get('id')})")
        for label, key in (
            ("Category", "category"),
            ("Description", "description"),
            ("Measured by", "measurable_criteria"),
            ("Baseline", "baseline_measurement"),
            ("By", "time_bound_deadline"),
        ):
            value = outcome.get(key)
            if value:
                lines.append(f"- **{label}:** {value}")
        for milestone in outcome.get("milestones") or []:
            target = milestone.get("target_date") or "no date"
            description = milestone.get("description") or milestone.get("milestone")
            lines.append(f"  - Milestone ({target}): {description}")
    return "\n".join(lines)


def _render_provisions(provisions: list[Dict[str, Any]]) -> str:
    lines = ["## Provision", "", "| Type | Provision | Frequency | Provider | Outcomes |", "|---|---|---|---|---|"]
    for provision in provisions:
        lines.append(
            "| {type} | {title} | {frequency} | {provider} | {links} |".format(
                type=provision.get("provision_type") or "",
                title=provision.get("provision_title") or "",
                frequency=provision.get("frequency_description") or "",
                provider=provision.get("service_provider") or "",
                links=", ".join(provision.get("linked_outcomes") or []),
            )
        )
    return "\n".join(lines)


def _render_compliance(compliance: Dict[str, Any]) -> str:
    lines = ["## Compliance review", "", f"Score: {compliance.get('compliance_score', 0)}"]
    for heading, key in (("Issues", "issues"), ("Recommendations", "recommendations")):
        items = compliance.get(key) or []
        if items:
            lines.append(f"\n### {heading}")
            lines.extend(f"- {item}" for item in items)
    return "\n".join(lines)
