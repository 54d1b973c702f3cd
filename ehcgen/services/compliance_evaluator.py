"""Compliance review and overall confidence scoring for drafted plans.

Updates:
    v0.1.0 - 2025-11-09 - Initial evaluator with fail-safe compliance report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

from ..core.call_policy import CallPolicy
from ..core.errors import GenerationError
from ..core.llm_gateway import GenerationOptions, LanguageGenerationService
from ..core.models import (
    ComplianceReport,
    Outcome,
    PlanGenerationContext,
    Provision,
    SectionResult,
    SectionType,
    readonly_mapping,
)
from ..core.structured_output import parse_json_object
from .prompt_service import PromptService
from .record_utils import coerce_bool, coerce_list, coerce_string, prompt_json
from .template_engine import TemplateEngine

COMPLIANCE_STAGE = "plan_compliance"
SHORT_SECTION_CHARACTERS = 200

COMPLIANCE_SHAPE = {
    "compliance_score": "0-100",
    "issues": ["List of compliance issues found"],
    "recommendations": ["Specific improvements needed"],
    "statutory_requirements_met": {"requirement name": True},
}

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ComplianceReview:
    report: ComplianceReport
    tokens_used: int = 0
    failed: bool = False


@dataclass(slots=True, frozen=True)
class Evaluation:
    compliance: ComplianceReport
    overall_confidence: int
    tokens_used: int = 0
    compliance_failed: bool = False


def clamp_score(value: Any) -> int:
    """Clamp ``value`` to an integer in [0, 100]; non-numbers become 0."""

    if isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if number != number:
        return 0
    return int(max(0.0, min(100.0, round(number))))


def score_plan_confidence(
    context: PlanGenerationContext,
    sections: Mapping[SectionType, SectionResult],
    requested: Iterable[SectionType] | None = None,
) -> int:
    """Score how much of the plan rests on real evidence.

    Args:
        context (PlanGenerationContext): Context the plan was drafted from.
        sections (Mapping[SectionType, SectionResult]): Sections that were drafted.
        requested (Iterable[SectionType] | None): Sections the caller asked for.
            A requested section missing from ``sections`` counts as empty.
            Defaults to every section type.

    Returns:
        int: Confidence in [0, 100].
    """

    confidence = 100
    if not context.child.primary_diagnosis:
        confidence -= 10
    if not context.assessments:
        confidence -= 15
    if not context.parent_input.child_views:
        confidence -= 10
    if not context.parent_input.parent_views:
        confidence -= 10
    for section_type in requested if requested is not None else SectionType:
        section = sections.get(section_type)
        if section is None or len(section.text) < SHORT_SECTION_CHARACTERS:
            confidence -= 5
    return max(0, min(100, confidence))


class ComplianceEvaluator:
    """Runs the compliance review and computes the plan confidence."""

    def __init__(
        self,
        llm_gateway: LanguageGenerationService,
        prompt_service: PromptService,
        template_engine: TemplateEngine | None = None,
    ) -> None:
        self._llm = llm_gateway
        self._prompts = prompt_service
        self._engine = template_engine or TemplateEngine()
        self._prompts.require(["compliance_system", "compliance_request"])

    def evaluate(
        self,
        context: PlanGenerationContext,
        sections: Mapping[SectionType, SectionResult],
        outcomes: Sequence[Outcome],
        provisions: Sequence[Provision],
        policy: CallPolicy | None = None,
        requested_sections: Optional[Iterable[SectionType]] = None,
    ) -> Evaluation:
        """Review the drafted plan.

        The compliance review never raises for stage failures; it falls back to
        :meth:`ComplianceReport.fail_safe`.
        """

        confidence = score_plan_confidence(context, sections, requested_sections)
        review = self.review(context, sections, outcomes, provisions, policy)
        return Evaluation(
            compliance=review.report,
            overall_confidence=confidence,
            tokens_used=review.tokens_used,
            compliance_failed=review.failed,
        )

    def review(
        self,
        context: PlanGenerationContext,
        sections: Mapping[SectionType, SectionResult],
        outcomes: Sequence[Outcome],
        provisions: Sequence[Provision],
        policy: CallPolicy | None = None,
    ) -> ComplianceReview:
        """Run only the compliance review, falling back to the fail-safe report."""

        policy = policy or CallPolicy()
        system_instruction = self._prompts.get_prompt("compliance_system").strip()
        prompt = self._compose_prompt(context, sections, outcomes, provisions)
        try:
            result = policy.call(
                "compliance",
                lambda timeout: self._llm.generate(
                    system_instruction,
                    prompt,
                    GenerationOptions(stage=COMPLIANCE_STAGE, response_format="json", timeout=timeout),
                ),
            )
        except GenerationError as exc:
            logger.warning("compliance_failed", extra={"error": str(exc)})
            return ComplianceReview(ComplianceReport.fail_safe(), failed=True)

        parsed = parse_json_object(result.text)
        if not parsed.ok:
            logger.warning(
                "compliance_parse_failed",
                extra={"error": parsed.reason, "tokens_used": result.tokens_used},
            )
            return ComplianceReview(ComplianceReport.fail_safe(), result.tokens_used, failed=True)

        report = self._build_report(parsed.unwrap())
        logger.info(
            "compliance_reviewed",
            extra={
                "compliance_score": report.compliance_score,
                "issues": len(report.issues),
                "tokens_used": result.tokens_used,
            },
        )
        return ComplianceReview(report, result.tokens_used)

    def _compose_prompt(
        self,
        context: PlanGenerationContext,
        sections: Mapping[SectionType, SectionResult],
        outcomes: Sequence[Outcome],
        provisions: Sequence[Provision],
    ) -> str:
        template = self._prompts.get_prompt("compliance_request").strip()
        plan = {
            "sections": {
                section_type.heading: section.text for section_type, section in sections.items()
            },
            "outcomes": [outcome.as_dict() for outcome in outcomes],
            "provisions": [provision.as_dict() for provision in provisions],
        }
        return "\n".join(
            [
                self._engine.render(template, context),
                "",
                "Plan:",
                prompt_json(plan),
                "",
                "Reply strictly in JSON with this shape:",
                prompt_json(COMPLIANCE_SHAPE),
            ]
        )

    @staticmethod
    def _build_report(payload: Mapping[str, Any]) -> ComplianceReport:
        requirements = payload.get("statutory_requirements_met")
        met = (
            {coerce_string(name): coerce_bool(value) for name, value in requirements.items()}
            if isinstance(requirements, dict)
            else {}
        )
        return ComplianceReport(
            compliance_score=clamp_score(payload.get("compliance_score")),
            issues=coerce_list(payload.get("issues")),
            recommendations=coerce_list(payload.get("recommendations")),
            statutory_requirements_met=readonly_mapping(met),
        )
