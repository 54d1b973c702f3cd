"""End-to-end EHC plan generation pipeline.

Updates:
    v0.1.0 - 2025-11-09 - Concurrent section and outcome drafting with a total deadline.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..core.call_policy import CallPolicy
from ..core.errors import (
    PipelineExhaustedError,
    SectionFailureError,
    SectionGenerationError,
    ValidationError,
)
from ..core.models import (
    GeneratedPlan,
    PlanGenerationContext,
    PlanMetadata,
    SectionResult,
    SectionType,
    readonly_mapping,
)
from .compliance_evaluator import ComplianceEvaluator
from .config_service import PipelineSettings
from .context_assembler import ContextAssembler
from .outcome_synthesizer import OutcomeBatch, OutcomeSynthesizer
from .provision_synthesizer import ProvisionBatch, ProvisionSynthesizer
from .section_generator import SectionGenerator

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    ASSEMBLING = "assembling"
    GENERATING_SECTIONS_AND_OUTCOMES = "generating_sections_and_outcomes"
    GENERATING_PROVISIONS = "generating_provisions"
    EVALUATING = "evaluating"
    COMPLETE = "complete"
    FAILED = "failed"


def resolve_sections(sections: Optional[Iterable[Any]]) -> Tuple[SectionType, ...]:
    """Normalise a caller's section selection.

    Args:
        sections (Iterable | None): Section types or their names. ``None`` selects
            every section.

    Returns:
        tuple[SectionType, ...]: Selected sections in plan order, without duplicates.

    Raises:
        ValidationError: If the selection is empty or names an unknown section.
    """

    if sections is None:
        return tuple(SectionType)
    if isinstance(sections, (str, SectionType)):
        sections = [sections]
    selected = set()
    for entry in sections:
        if isinstance(entry, SectionType):
            selected.add(entry)
            continue
        try:
            selected.add(SectionType(str(entry).strip().lower()))
        except ValueError as exc:
            allowed = ", ".join(section.value for section in SectionType)
            raise ValidationError(f"Unknown section {entry!r}; expected one of {allowed}.") from exc
    if not selected:
        raise ValidationError("At least one section must be requested.")
    return tuple(section for section in SectionType if section in selected)


class PlanPipeline:
    """Coordinates every stage of one plan generation run.

    Sections and outcomes are drafted concurrently. Provisions start only
    once outcome synthesis has been joined, and the compliance review runs
    last. Stage failures degrade the plan; only validation failures, total
    exhaustion, and (when configured) a failed section abort the run.
    """

    def __init__(
        self,
        assembler: ContextAssembler,
        section_generator: SectionGenerator,
        outcome_synthesizer: OutcomeSynthesizer,
        provision_synthesizer: ProvisionSynthesizer,
        evaluator: ComplianceEvaluator,
        settings: PipelineSettings | None = None,
        model_identifier: str = "unknown",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._assembler = assembler
        self._sections = section_generator
        self._outcomes = outcome_synthesizer
        self._provisions = provision_synthesizer
        self._evaluator = evaluator
        self._settings = settings or PipelineSettings()
        self._model_identifier = model_identifier
        self._clock = clock
        self._sleep = sleep

    @property
    def settings(self) -> PipelineSettings:
        return self._settings

    def new_policy(self) -> CallPolicy:
        """Return a call policy bounded by this pipeline's settings."""

        return CallPolicy(
            call_timeout=self._settings.call_timeout_seconds,
            max_attempts=self._settings.max_attempts,
            wait_seconds=self._settings.retry_wait_seconds,
            deadline_seconds=self._settings.total_deadline_seconds,
            clock=self._clock,
            sleep=self._sleep,
        )

    def generate_plan(
        self,
        context: PlanGenerationContext,
        sections: Optional[Iterable[Any]] = None,
    ) -> GeneratedPlan:
        """Generate a complete plan for ``context``.

        Args:
            context (PlanGenerationContext): Assembled generation context.
            sections (Iterable | None): Subset of sections to draft; all by default.

        Returns:
            GeneratedPlan: The immutable plan with run metadata.

        Raises:
            ValidationError: If the context or section selection is invalid.
            PipelineExhaustedError: If every requested section and the outcome
                stage failed.
            SectionFailureError: If a section failed and the pipeline is set to
                abort on section failure.
        """

        started = self._clock()
        self._transition(PipelineState.ASSEMBLING)
        try:
            self._assembler.validate(context)
            requested = resolve_sections(sections)
        except ValidationError as exc:
            self._transition(PipelineState.FAILED, error=str(exc))
            raise

        policy = self.new_policy()
        tokens = 0
        failed_stages: List[str] = []

        self._transition(PipelineState.GENERATING_SECTIONS_AND_OUTCOMES, sections=len(requested))
        drafted, outcome_batch, fan_out_tokens, deadline_exceeded = self._fan_out(
            context, requested, policy, failed_stages
        )
        tokens += fan_out_tokens

        outcomes_failed = outcome_batch is None or outcome_batch.failed
        if not drafted and outcomes_failed:
            self._abort(
                PipelineExhaustedError,
                "Every requested section and the outcome stage failed.",
                tokens,
                started,
            )
        if self._settings.abort_on_section_failure and len(drafted) < len(requested):
            self._abort(
                SectionFailureError,
                f"{len(requested) - len(drafted)} section(s) failed to generate.",
                tokens,
                started,
            )
        outcomes = outcome_batch.outcomes if outcome_batch is not None else ()

        self._transition(PipelineState.GENERATING_PROVISIONS, outcomes=len(outcomes))
        provision_batch = self._generate_provisions(context, outcomes, policy)
        if provision_batch is None:
            failed_stages.append("provisions")
            deadline_exceeded = True
            provisions: Tuple[Any, ...] = ()
        else:
            tokens += provision_batch.tokens_used
            if provision_batch.failed:
                failed_stages.append("provisions")
            provisions = provision_batch.provisions

        self._transition(PipelineState.EVALUATING)
        evaluation = self._evaluator.evaluate(
            context,
            drafted,
            outcomes,
            provisions,
            policy=policy,
            requested_sections=requested,
        )
        tokens += evaluation.tokens_used
        if evaluation.compliance_failed:
            failed_stages.append("compliance")
        deadline_exceeded = deadline_exceeded or policy.expired()

        metadata = PlanMetadata(
            model_identifier=self._model_identifier,
            generation_time_ms=self._elapsed_ms(started),
            confidence_score=evaluation.overall_confidence,
            tokens_used=tokens,
            failed_stages=tuple(failed_stages),
            deadline_exceeded=deadline_exceeded,
        )
        plan = GeneratedPlan(
            sections=readonly_mapping(
                {section: drafted[section] for section in SectionType if section in drafted}
            ),
            outcomes=tuple(outcomes),
            provisions=tuple(provisions),
            compliance=evaluation.compliance,
            metadata=metadata,
        )
        self._transition(PipelineState.COMPLETE)
        logger.info(
            "plan_generated",
            extra={
                "sections": len(plan.sections),
                "outcomes": len(plan.outcomes),
                "provisions": len(plan.provisions),
                "confidence_score": metadata.confidence_score,
                "compliance_score": plan.compliance.compliance_score,
                "tokens_used": metadata.tokens_used,
                "generation_time_ms": metadata.generation_time_ms,
                "failed_stages": list(metadata.failed_stages),
            },
        )
        return plan

    def _fan_out(
        self,
        context: PlanGenerationContext,
        requested: Tuple[SectionType, ...],
        policy: CallPolicy,
        failed_stages: List[str],
    ) -> Tuple[Dict[SectionType, SectionResult], Optional[OutcomeBatch], int, bool]:
        """Draft sections and outcomes concurrently and join them.

        Futures still running when the deadline passes are cancelled and
        abandoned; their stages are recorded as failed.
        """

        executor = ThreadPoolExecutor(
            max_workers=self._settings.max_workers, thread_name_prefix="ehcgen"
        )
        try:
            section_futures: Dict[Future, SectionType] = {
                executor.submit(self._sections.generate, section, context, policy): section
                for section in requested
            }
            outcome_future = executor.submit(self._outcomes.synthesize, context, policy)
            _, pending = wait([*section_futures, outcome_future], timeout=policy.remaining())
            for future in pending:
                future.cancel()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        drafted: Dict[SectionType, SectionResult] = {}
        tokens = 0
        for future, section in section_futures.items():
            if future in pending:
                failed_stages.append(f"section:{section.value}")
                logger.warning(
                    "section_failed", extra={"section": section.value, "error": "deadline exceeded"}
                )
                continue
            try:
                result = future.result()
            except SectionGenerationError as exc:
                failed_stages.append(f"section:{section.value}")
                tokens += exc.tokens_used
                continue
            drafted[section] = result
            tokens += result.tokens_used

        outcome_batch: Optional[OutcomeBatch] = None
        if outcome_future in pending:
            failed_stages.append("outcomes")
            logger.warning("outcomes_failed", extra={"error": "deadline exceeded"})
        else:
            outcome_batch = outcome_future.result()
            tokens += outcome_batch.tokens_used
            if outcome_batch.failed:
                failed_stages.append("outcomes")
        return drafted, outcome_batch, tokens, bool(pending)

    def _generate_provisions(
        self, context: PlanGenerationContext, outcomes: Tuple[Any, ...], policy: CallPolicy
    ) -> Optional[ProvisionBatch]:
        if policy.expired():
            logger.warning("provisions_skipped", extra={"reason": "deadline exceeded"})
            return None
        return self._provisions.synthesize(context, outcomes, policy)

    def _abort(self, error_cls: type, message: str, tokens: int, started: float) -> None:
        elapsed_ms = self._elapsed_ms(started)
        self._transition(PipelineState.FAILED, error=message, tokens_used=tokens)
        raise error_cls(message, tokens_used=tokens, elapsed_ms=elapsed_ms)

    def _elapsed_ms(self, started: float) -> int:
        return int(round((self._clock() - started) * 1000))

    @staticmethod
    def _transition(state: PipelineState, **details: Any) -> None:
        logger.info("pipeline_state", extra={"state": state.value, **details})
