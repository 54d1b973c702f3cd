"""Generate plan workflow.

Updates:
    v0.2.0 - 2025-11-09 - Assemble the context from a raw payload and run the plan pipeline.
    v0.1.0 - 2025-11-09 - Added module and method docstrings.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..services.context_assembler import ContextAssembler
from ..services.plan_pipeline import PlanPipeline


@dataclass
class GeneratePlanWorkflow:
    assembler: ContextAssembler
    pipeline: PlanPipeline
    name: str = "generate_plan"

    def run(self, context: dict) -> dict:
        """Run the generate_plan workflow.

        Args:
            context (dict): Payload containing `context` (the raw generation
                context) and optionally `sections`.

        Returns:
            dict: The serialised plan under `plan`.

        Raises:
            ValueError: If no generation context is provided.
            ValidationError: If the generation context is invalid.
        """

        payload = context.get("context")
        if not payload:
            raise ValueError("Context missing 'context'.")
        generation_context = self.assembler.assemble_from_payload(payload)
        plan = self.pipeline.generate_plan(generation_context, sections=context.get("sections"))
        return {"workflow": self.name, "plan": plan.as_dict()}
