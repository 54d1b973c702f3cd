"""Free-text drafting of the six EHC plan sections.

Updates:
    v0.1.0 - 2025-11-09 - Initial section generator with local confidence scoring.
"""

from __future__ import annotations

import logging

from ..core.call_policy import CallPolicy
from ..core.errors import GenerationError, GenerationTransportError, SectionGenerationError
from ..core.llm_gateway import GenerationOptions, GenerationResult, LanguageGenerationService
from ..core.models import PlanGenerationContext, SectionResult, SectionType
from .prompt_service import PromptService
from .template_engine import TemplateEngine

SECTION_STAGE = "plan_sections"
SYSTEM_PROMPT = "section_system"

logger = logging.getLogger(__name__)


def score_section(text: str, context: PlanGenerationContext) -> int:
    """Score one drafted section from its length and the context behind it."""

    confidence = 80
    if len(text) > 300:
        confidence += 10
    if len(text) < 150:
        confidence -= 20
    if context.assessments:
        confidence += 5
    if context.child.primary_diagnosis:
        confidence += 5
    return max(0, min(100, confidence))


class SectionGenerator:
    """Drafts plan sections from their registered templates."""

    def __init__(
        self,
        llm_gateway: LanguageGenerationService,
        prompt_service: PromptService,
        template_engine: TemplateEngine | None = None,
    ) -> None:
        self._llm = llm_gateway
        self._prompts = prompt_service
        self._engine = template_engine or TemplateEngine()
        self._prompts.require([SYSTEM_PROMPT, *(section.value for section in SectionType)])

    def generate(
        self,
        section_type: SectionType,
        context: PlanGenerationContext,
        policy: CallPolicy | None = None,
    ) -> SectionResult:
        """Draft one section.

        Args:
            section_type (SectionType): Section to draft.
            context (PlanGenerationContext): Shared generation context.
            policy (CallPolicy | None): Retry and deadline policy for the run.

        Returns:
            SectionResult: Drafted text with token usage and local confidence.

        Raises:
            SectionGenerationError: If every attempt failed or returned no text.
        """

        policy = policy or CallPolicy()
        system_instruction = self._prompts.get_prompt(SYSTEM_PROMPT).strip()
        prompt = self._engine.render(self._prompts.get_prompt(section_type.value), context)
        spent = [0]

        def attempt(timeout: float) -> GenerationResult:
            result = self._llm.generate(
                system_instruction,
                prompt,
                GenerationOptions(stage=SECTION_STAGE, response_format="text", timeout=timeout),
            )
            spent[0] += result.tokens_used
            if not result.text.strip():
                raise GenerationTransportError("empty output")
            return result

        try:
            result = policy.call(f"section:{section_type.value}", attempt)
        except GenerationError as exc:
            logger.warning(
                "section_failed",
                extra={"section": section_type.value, "error": str(exc)},
            )
            raise SectionGenerationError(section_type.value, str(exc), tokens_used=spent[0]) from exc

        text = result.text.strip()
        section = SectionResult(
            section_type=section_type,
            text=text,
            tokens_used=spent[0],
            confidence=score_section(text, context),
        )
        logger.info(
            "section_generated",
            extra={
                "section": section_type.value,
                "characters": len(text),
                "tokens_used": section.tokens_used,
                "confidence": section.confidence,
            },
        )
        return section
