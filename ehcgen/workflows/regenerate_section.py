"""Workflow wrapper for re-drafting a single plan section."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from ..core.call_policy import CallPolicy
from ..services.context_assembler import ContextAssembler
from ..services.plan_pipeline import resolve_sections
from ..services.section_generator import SectionGenerator


@dataclass
class RegenerateSectionWorkflow:
    assembler: ContextAssembler
    section_generator: SectionGenerator
    policy_factory: Callable[[], CallPolicy] = CallPolicy
    name: str = "regenerate_section"

    def run(self, context: dict) -> dict:
        """Draft the requested section again for an existing context."""

        payload = context.get("context")
        if not payload:
            raise ValueError("Context missing 'context'.")
        section = context.get("section")
        if not section:
            raise ValueError("Regeneration requires a 'section' name.")
        (section_type,) = resolve_sections([section])
        generation_context = self.assembler.assemble_from_payload(payload)
        result = self.section_generator.generate(
            section_type, generation_context, self.policy_factory()
        )
        return {"workflow": self.name, "section": result.as_dict()}
