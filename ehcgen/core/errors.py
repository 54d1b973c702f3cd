"""Exception taxonomy for EHC plan generation.

Updates:
    v0.1.0 - 2025-11-09 - Initial error hierarchy for the generation pipeline.
"""

from __future__ import annotations


class PlanGenerationError(RuntimeError):
    """Base class for every error raised by the generation pipeline."""


class ValidationError(PlanGenerationError):
    """Raised when the generation context or its inputs are malformed."""


class TemplateError(PlanGenerationError):
    """Raised when a prompt template has malformed placeholder syntax."""


class GenerationError(PlanGenerationError):
    """Raised when a single language-generation call fails."""


class GenerationTimeoutError(GenerationError):
    """The language-generation service did not answer within the call timeout."""


class GenerationTransportError(GenerationError):
    """The language-generation service returned an error or unusable response."""


class GenerationRateLimitError(GenerationTransportError):
    """The language-generation service rejected the call due to rate limiting."""


class DeadlineExceededError(GenerationError):
    """The total pipeline deadline was spent before the call could run."""


class MalformedStructuredOutputError(PlanGenerationError):
    """Generated text did not parse as the requested JSON shape."""


class SectionGenerationError(PlanGenerationError):
    """A plan section could not be drafted."""

    def __init__(self, section_type: str, message: str, tokens_used: int = 0) -> None:
        super().__init__(f"Section '{section_type}' failed: {message}")
        self.section_type = section_type
        self.tokens_used = tokens_used


class PipelineError(PlanGenerationError):
    """Fatal pipeline failure carrying the metadata accumulated so far."""

    def __init__(self, message: str, *, tokens_used: int = 0, elapsed_ms: int = 0) -> None:
        super().__init__(message)
        self.tokens_used = tokens_used
        self.elapsed_ms = elapsed_ms


class PipelineExhaustedError(PipelineError):
    """Every requested section and the outcome stage failed."""


class SectionFailureError(PipelineError):
    """A section failed while the pipeline is configured to abort on section failure."""
