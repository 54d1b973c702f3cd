"""SMART outcome synthesis.

Updates:
    v0.1.0 - 2025-11-09 - Initial structured outcome generation with ID assignment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from ..core.call_policy import CallPolicy
from ..core.errors import GenerationError
from ..core.llm_gateway import GenerationOptions, LanguageGenerationService
from ..core.models import Milestone, Outcome, OutcomeCategory, PlanGenerationContext
from ..core.structured_output import parse_json_records
from .prompt_service import PromptService
from .record_utils import coerce_list, coerce_string, parse_date, prompt_json
from .template_engine import TemplateEngine

OUTCOME_STAGE = "plan_outcomes"

OUTCOME_SHAPE: Dict[str, Any] = {
    "category": "|".join(category.value for category in OutcomeCategory),
    "title": "Brief outcome title",
    "description": "What will be achieved",
    "specific_detail": "Specific skills or behaviours to develop",
    "measurable_criteria": "How progress will be measured",
    "achievable_rationale": "Why this is achievable for this child",
    "relevant_justification": "How this relates to their needs and aspirations",
    "time_bound_deadline": "YYYY-MM-DD",
    "success_criteria": ["criterion 1", "criterion 2"],
    "baseline_measurement": "Current level or starting point",
    "milestones": [{"milestone": "description", "target_date": "YYYY-MM-DD"}],
}

logger = logging.getLogger(__name__)


def new_outcome_id() -> str:
    return f"OUT-{uuid4().hex[:12]}"


@dataclass(slots=True, frozen=True)
class OutcomeBatch:
    """Outcomes from one synthesis call.

    ``failed`` marks a call that never produced a response; an unparseable
    response leaves ``failed`` false with ``error`` set.
    """

    outcomes: Tuple[Outcome, ...]
    tokens_used: int = 0
    failed: bool = False
    error: Optional[str] = None


class OutcomeSynthesizer:
    """Requests and validates structured SMART outcomes."""

    def __init__(
        self,
        llm_gateway: LanguageGenerationService,
        prompt_service: PromptService,
        template_engine: TemplateEngine | None = None,
        id_factory: Callable[[], str] = new_outcome_id,
    ) -> None:
        self._llm = llm_gateway
        self._prompts = prompt_service
        self._engine = template_engine or TemplateEngine()
        self._new_id = id_factory
        self._prompts.require(["outcome_system", "outcome_request"])

    def synthesize(
        self, context: PlanGenerationContext, policy: CallPolicy | None = None
    ) -> OutcomeBatch:
        """Generate outcomes for ``context``.

        Args:
            context (PlanGenerationContext): Shared generation context.
            policy (CallPolicy | None): Retry and deadline policy for the run.

        Returns:
            OutcomeBatch: Accepted outcomes, each with a fresh identifier. Empty
            when the call failed or its response did not parse.
        """

        policy = policy or CallPolicy()
        system_instruction = self._prompts.get_prompt("outcome_system").strip()
        prompt = self._compose_prompt(context)
        try:
            result = policy.call(
                "outcomes",
                lambda timeout: self._llm.generate(
                    system_instruction,
                    prompt,
                    GenerationOptions(stage=OUTCOME_STAGE, response_format="json", timeout=timeout),
                ),
            )
        except GenerationError as exc:
            logger.warning("outcomes_failed", extra={"error": str(exc)})
            return OutcomeBatch(outcomes=(), failed=True, error=str(exc))

        parsed = parse_json_records(result.text, ("outcomes",))
        if not parsed.ok:
            logger.warning(
                "outcomes_parse_failed",
                extra={"error": parsed.reason, "tokens_used": result.tokens_used},
            )
            return OutcomeBatch(outcomes=(), tokens_used=result.tokens_used, error=parsed.reason)

        records = parsed.unwrap()
        outcomes = self._build_outcomes(records)
        logger.info(
            "outcomes_generated",
            extra={
                "received": len(records),
                "accepted": len(outcomes),
                "tokens_used": result.tokens_used,
            },
        )
        return OutcomeBatch(outcomes=outcomes, tokens_used=result.tokens_used)

    def _compose_prompt(self, context: PlanGenerationContext) -> str:
        template = self._prompts.get_prompt("outcome_request").strip()
        sections = [self._engine.render(template, context)]
        if context.child.strengths:
            sections.extend(["", f"Strengths: {', '.join(context.child.strengths)}"])
        sections.extend(
            [
                "",
                "Describe each outcome with this JSON shape:",
                prompt_json(OUTCOME_SHAPE),
                "",
                'Reply strictly in JSON: an object with key "outcomes" holding an array of outcome objects.',
            ]
        )
        return "\n".join(sections)

    def _build_outcomes(self, entries: List[Any]) -> Tuple[Outcome, ...]:
        outcomes: List[Outcome] = []
        seen_ids: set[str] = set()
        for index, entry in enumerate(entries):
            outcome_id = self._new_id()
            while outcome_id in seen_ids:
                outcome_id = self._new_id()
            outcome = outcome_from_record(outcome_id, entry)
            if outcome is None:
                logger.debug("Dropped outcome record %s: %r", index, entry)
                continue
            seen_ids.add(outcome_id)
            outcomes.append(outcome)
        return tuple(outcomes)


def outcome_from_record(outcome_id: str, entry: Any) -> Optional[Outcome]:
    """Build an :class:`Outcome` from one parsed JSON record.

    Returns ``None`` when the record is not an object, has no title, or names
    an unknown category. An unparseable deadline becomes ``None``.
    """

    if not isinstance(entry, dict):
        return None
    title = coerce_string(entry.get("title"))
    if not title:
        return None
    try:
        category = OutcomeCategory(coerce_string(entry.get("category")).lower())
    except ValueError:
        return None
    return Outcome(
        outcome_id=outcome_id,
        category=category,
        title=title,
        description=coerce_string(entry.get("description")),
        specific_detail=coerce_string(entry.get("specific_detail")),
        measurable_criteria=coerce_string(entry.get("measurable_criteria")),
        achievable_rationale=coerce_string(entry.get("achievable_rationale")),
        relevant_justification=coerce_string(entry.get("relevant_justification")),
        time_bound_deadline=parse_date(entry.get("time_bound_deadline")),
        success_criteria=coerce_list(entry.get("success_criteria")),
        baseline_measurement=coerce_string(entry.get("baseline_measurement")),
        milestones=_milestones(entry.get("milestones")),
    )


def _milestones(value: Any) -> Tuple[Milestone, ...]:
    if not isinstance(value, list):
        return ()
    milestones: List[Milestone] = []
    for item in value:
        if isinstance(item, dict):
            description = coerce_string(item.get("milestone") or item.get("description"))
            target = parse_date(item.get("target_date"))
        else:
            description, target = coerce_string(item), None
        if description:
            milestones.append(Milestone(description=description, target_date=target))
    return tuple(milestones)
