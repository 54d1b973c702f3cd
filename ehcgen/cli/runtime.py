"""Runtime wiring for the EHC plan generator CLI."""

from __future__ import annotations

import logging
from typing import Any

from ehcgen.core.llm_gateway import LLMGateway
from ehcgen.core.logging_setup import configure_logging, set_runtime_level
from ehcgen.core.orchestrator import Orchestrator
from ehcgen.services.compliance_evaluator import ComplianceEvaluator
from ehcgen.services.config_service import ConfigService
from ehcgen.services.context_assembler import ContextAssembler
from ehcgen.services.outcome_synthesizer import OutcomeSynthesizer
from ehcgen.services.plan_pipeline import PlanPipeline
from ehcgen.services.prompt_service import PromptService
from ehcgen.services.provision_synthesizer import ProvisionSynthesizer
from ehcgen.services.section_generator import SECTION_STAGE, SectionGenerator
from ehcgen.services.template_engine import TemplateEngine
from ehcgen.workflows.check_compliance import CheckComplianceWorkflow
from ehcgen.workflows.generate_plan import GeneratePlanWorkflow
from ehcgen.workflows.regenerate_section import RegenerateSectionWorkflow

logger = logging.getLogger(__name__)

_RUNTIME_CACHE: Orchestrator | None = None

_DEFAULT_CONFIG_SERVICE = ConfigService
_DEFAULT_LLM_GATEWAY = LLMGateway
_DEFAULT_PROMPT_SERVICE = PromptService


def initialize_runtime() -> Orchestrator:
    """Initialize core services and register the plan workflows."""

    config_service_cls = _resolve_dependency("ConfigService", _DEFAULT_CONFIG_SERVICE)
    config_service = config_service_cls()
    configure_logging(config_service.logging_config)
    logger.debug("Runtime initialization starting.")

    llm_gateway_cls = _resolve_dependency("LLMGateway", _DEFAULT_LLM_GATEWAY)
    llm_gateway = llm_gateway_cls(config_service=config_service)
    engine = TemplateEngine()
    prompt_service_cls = _resolve_dependency("PromptService", _DEFAULT_PROMPT_SERVICE)
    prompt_service = prompt_service_cls(known_placeholders=engine.known_placeholders)

    assembler = ContextAssembler()
    section_generator = SectionGenerator(llm_gateway, prompt_service, engine)
    evaluator = ComplianceEvaluator(llm_gateway, prompt_service, engine)
    pipeline = PlanPipeline(
        assembler,
        section_generator,
        OutcomeSynthesizer(llm_gateway, prompt_service, engine),
        ProvisionSynthesizer(llm_gateway, prompt_service, engine),
        evaluator,
        settings=config_service.pipeline_settings,
        model_identifier=config_service.get_workflow_model_config(SECTION_STAGE).model,
    )

    orchestrator_cls = _resolve_dependency("Orchestrator", Orchestrator)
    orchestrator = orchestrator_cls(
        workflows={
            "generate_plan": GeneratePlanWorkflow(assembler=assembler, pipeline=pipeline),
            "regenerate_section": RegenerateSectionWorkflow(
                assembler=assembler,
                section_generator=section_generator,
                policy_factory=pipeline.new_policy,
            ),
            "check_compliance": CheckComplianceWorkflow(
                assembler=assembler,
                evaluator=evaluator,
                policy_factory=pipeline.new_policy,
            ),
        }
    )
    logger.debug("Runtime initialization completed.")
    return orchestrator


def get_orchestrator() -> Orchestrator:
    """Return the lazily-initialized orchestrator."""

    global _RUNTIME_CACHE
    if _RUNTIME_CACHE is None:
        _RUNTIME_CACHE = initialize_runtime()
    return _RUNTIME_CACHE


def set_runtime(orchestrator: Orchestrator | None) -> None:
    """Replace the cached orchestrator; ``None`` forces re-initialization."""

    global _RUNTIME_CACHE
    _RUNTIME_CACHE = orchestrator


def create_prompt_service() -> PromptService:
    """Return a prompt service validated against the template engine."""

    prompt_service_cls = _resolve_dependency("PromptService", _DEFAULT_PROMPT_SERVICE)
    return prompt_service_cls(known_placeholders=TemplateEngine().known_placeholders)


def _resolve_dependency(name: str, default: Any) -> Any:
    """Return a dependency, preferring overrides on the cli package."""

    from sys import modules

    cli_module = modules.get("ehcgen.cli")
    if cli_module is not None and hasattr(cli_module, name):
        return getattr(cli_module, name)
    return default


__all__ = [
    "create_prompt_service",
    "get_orchestrator",
    "initialize_runtime",
    "set_runtime",
    "set_runtime_level",
]
