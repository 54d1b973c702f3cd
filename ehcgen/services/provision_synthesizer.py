"""Provision synthesis against generated outcomes.

Updates:
    v0.1.0 - 2025-11-09 - Initial structured provision generation with outcome linking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from ..core.call_policy import CallPolicy
from ..core.errors import GenerationError
from ..core.llm_gateway import GenerationOptions, LanguageGenerationService
from ..core.models import Outcome, PlanGenerationContext, Provision, ProvisionType
from ..core.structured_output import parse_json_records
from .prompt_service import PromptService
from .record_utils import (
    coerce_bool,
    coerce_list,
    coerce_number,
    coerce_optional_int,
    coerce_string,
    parse_date,
    prompt_json,
)
from .template_engine import TemplateEngine

PROVISION_STAGE = "plan_provisions"

PROVISION_SHAPE: Dict[str, Any] = {
    "provision_type": "|".join(kind.value for kind in ProvisionType),
    "provision_title": "Brief title",
    "provision_description": "Detailed description",
    "service_provider": "Who will provide this",
    "delivery_method": "How it will be delivered",
    "frequency_description": "e.g. 3 x 30 minute sessions per week",
    "hours_per_week": 1.5,
    "weeks_per_year": 38,
    "group_size": 1,
    "staff_qualifications_required": ["qualification"],
    "linked_outcomes": ["outcome id"],
    "expected_impact": "What difference this will make",
    "start_date": "YYYY-MM-DD",
    "review_frequency": "termly",
    "statutory_requirement": True,
    "annual_cost": 0,
}

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ProvisionBatch:
    """Provisions from one synthesis call; see :class:`OutcomeBatch` for flags."""

    provisions: Tuple[Provision, ...]
    tokens_used: int = 0
    failed: bool = False
    error: Optional[str] = None


class ProvisionSynthesizer:
    """Requests provisions for a set of already generated outcomes."""

    def __init__(
        self,
        llm_gateway: LanguageGenerationService,
        prompt_service: PromptService,
        template_engine: TemplateEngine | None = None,
    ) -> None:
        self._llm = llm_gateway
        self._prompts = prompt_service
        self._engine = template_engine or TemplateEngine()
        self._prompts.require(["provision_system", "provision_request"])

    def synthesize(
        self,
        context: PlanGenerationContext,
        outcomes: Sequence[Outcome],
        policy: CallPolicy | None = None,
    ) -> ProvisionBatch:
        """Generate provisions linked to ``outcomes``.

        Args:
            context (PlanGenerationContext): Shared generation context.
            outcomes (Sequence[Outcome]): Outcomes the provisions must serve. Only
                their identifiers are accepted as links.
            policy (CallPolicy | None): Retry and deadline policy for the run.

        Returns:
            ProvisionBatch: Accepted provisions; empty on failure.
        """

        policy = policy or CallPolicy()
        known_ids = frozenset(outcome.outcome_id for outcome in outcomes)
        system_instruction = self._prompts.get_prompt("provision_system").strip()
        prompt = self._compose_prompt(context, outcomes)
        try:
            result = policy.call(
                "provisions",
                lambda timeout: self._llm.generate(
                    system_instruction,
                    prompt,
                    GenerationOptions(stage=PROVISION_STAGE, response_format="json", timeout=timeout),
                ),
            )
        except GenerationError as exc:
            logger.warning("provisions_failed", extra={"error": str(exc)})
            return ProvisionBatch(provisions=(), failed=True, error=str(exc))

        parsed = parse_json_records(result.text, ("provisions", "provision"))
        if not parsed.ok:
            logger.warning(
                "provisions_parse_failed",
                extra={"error": parsed.reason, "tokens_used": result.tokens_used},
            )
            return ProvisionBatch(provisions=(), tokens_used=result.tokens_used, error=parsed.reason)

        records = parsed.unwrap()
        provisions = tuple(
            provision
            for provision in (provision_from_record(entry, known_ids) for entry in records)
            if provision is not None
        )
        logger.info(
            "provisions_generated",
            extra={
                "received": len(records),
                "accepted": len(provisions),
                "tokens_used": result.tokens_used,
            },
        )
        return ProvisionBatch(provisions=provisions, tokens_used=result.tokens_used)

    def _compose_prompt(self, context: PlanGenerationContext, outcomes: Sequence[Outcome]) -> str:
        template = self._prompts.get_prompt("provision_request").strip()
        return "\n".join(
            [
                self._engine.render(template, context),
                "",
                "Outcomes:",
                prompt_json([outcome.as_dict() for outcome in outcomes]),
                "",
                "Describe each provision with this JSON shape:",
                prompt_json(PROVISION_SHAPE),
                "",
                'Reply strictly in JSON: an object with key "provisions" holding an array of provision objects.',
            ]
        )


def provision_from_record(entry: Any, known_ids: FrozenSet[str]) -> Optional[Provision]:
    """Build a :class:`Provision` from one parsed JSON record.

    Links to identifiers outside ``known_ids`` are dropped.
    """

    if not isinstance(entry, dict):
        return None
    try:
        provision_type = ProvisionType(coerce_string(entry.get("provision_type")).lower())
    except ValueError:
        logger.debug("Dropped provision with type %r", entry.get("provision_type"))
        return None
    title = coerce_string(entry.get("provision_title") or entry.get("title"))
    if not title:
        return None
    links = entry.get("linked_outcomes")
    if isinstance(links, str):
        links = [links]
    linked: List[str] = [coerce_string(item) for item in links] if isinstance(links, list) else []
    return Provision(
        provision_type=provision_type,
        title=title,
        description=coerce_string(entry.get("provision_description") or entry.get("description")),
        service_provider=coerce_string(entry.get("service_provider")),
        delivery_method=coerce_string(entry.get("delivery_method")),
        frequency_description=coerce_string(entry.get("frequency_description")),
        hours_per_week=coerce_number(entry.get("hours_per_week")),
        weeks_per_year=coerce_number(entry.get("weeks_per_year")),
        group_size=coerce_optional_int(entry.get("group_size")),
        staff_qualifications_required=coerce_list(entry.get("staff_qualifications_required")),
        linked_outcomes=frozenset(link for link in linked if link in known_ids),
        expected_impact=coerce_string(entry.get("expected_impact")),
        start_date=parse_date(entry.get("start_date")),
        review_frequency=coerce_string(entry.get("review_frequency")),
        statutory_requirement=coerce_bool(entry.get("statutory_requirement")),
        annual_cost=coerce_number(entry.get("annual_cost")),
    )
