"""Workflow wrapper for re-running the compliance review of a saved plan.

Updates:
    v0.1.0 - 2025-11-09 - Rebuild sections, outcomes, and provisions from a plan payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Tuple

from ..core.call_policy import CallPolicy
from ..core.models import Outcome, Provision, SectionResult, SectionType
from ..services.compliance_evaluator import ComplianceEvaluator
from ..services.context_assembler import ContextAssembler
from ..services.outcome_synthesizer import outcome_from_record
from ..services.provision_synthesizer import provision_from_record
from ..services.record_utils import coerce_string


def read_plan_payload(
    plan: Mapping[str, Any],
) -> Tuple[Dict[SectionType, SectionResult], Tuple[Outcome, ...], Tuple[Provision, ...]]:
    """Rebuild plan content from the dictionary produced by ``GeneratedPlan.as_dict``.

    Unknown sections and malformed outcome or provision records are skipped.
    """

    sections: Dict[SectionType, SectionResult] = {}
    raw_sections = plan.get("sections")
    if isinstance(raw_sections, Mapping):
        for key, entry in raw_sections.items():
            try:
                section_type = SectionType(str(key))
            except ValueError:
                continue
            text = coerce_string(entry.get("text") if isinstance(entry, Mapping) else entry)
            confidence = entry.get("confidence", 0) if isinstance(entry, Mapping) else 0
            sections[section_type] = SectionResult(
                section_type=section_type,
                text=text,
                tokens_used=0,
                confidence=int(confidence) if isinstance(confidence, (int, float)) else 0,
            )

    outcomes: List[Outcome] = []
    for entry in plan.get("outcomes") or []:
        if not isinstance(entry, Mapping):
            continue
        outcome_id = coerce_string(entry.get("id") or entry.get("outcome_id"))
        outcome = outcome_from_record(outcome_id, dict(entry)) if outcome_id else None
        if outcome is not None:
            outcomes.append(outcome)

    known_ids = frozenset(outcome.outcome_id for outcome in outcomes)
    provisions = [
        provision
        for provision in (
            provision_from_record(dict(entry), known_ids)
            for entry in plan.get("provisions") or []
            if isinstance(entry, Mapping)
        )
        if provision is not None
    ]
    return sections, tuple(outcomes), tuple(provisions)


@dataclass
class CheckComplianceWorkflow:
    assembler: ContextAssembler
    evaluator: ComplianceEvaluator
    policy_factory: Callable[[], CallPolicy] = CallPolicy
    name: str = "check_compliance"

    def run(self, context: dict) -> dict:
        """Review a saved plan against its generation context.

        Args:
            context (dict): Payload containing `context` (the raw generation
                context) and `plan` (a serialised plan).

        Returns:
            dict: The compliance report and the recomputed confidence score.

        Raises:
            ValueError: If the context or plan payload is missing.
        """

        payload = context.get("context")
        plan = context.get("plan")
        if not payload:
            raise ValueError("Context missing 'context'.")
        if not isinstance(plan, Mapping):
            raise ValueError("Compliance check requires a 'plan' payload.")
        generation_context = self.assembler.assemble_from_payload(payload)
        sections, outcomes, provisions = read_plan_payload(plan)
        evaluation = self.evaluator.evaluate(
            generation_context,
            sections,
            outcomes,
            provisions,
            policy=self.policy_factory(),
            requested_sections=tuple(sections) or None,
        )
        return {
            "workflow": self.name,
            "compliance": evaluation.compliance.as_dict(),
            "overall_confidence": evaluation.overall_confidence,
            "tokens_used": evaluation.tokens_used,
        }
