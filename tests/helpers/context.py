"""Generation-context fixtures and pipeline builders shared by tests."""

from __future__ import annotations

import copy
import itertools
from datetime import date
from typing import Any, Callable, Dict, Optional

from ehcgen.core.models import PlanGenerationContext
from ehcgen.services.compliance_evaluator import ComplianceEvaluator
from ehcgen.services.config_service import PipelineSettings
from ehcgen.services.context_assembler import ContextAssembler
from ehcgen.services.outcome_synthesizer import OutcomeSynthesizer
from ehcgen.services.plan_pipeline import PlanPipeline
from ehcgen.services.prompt_service import PromptService
from ehcgen.services.provision_synthesizer import ProvisionSynthesizer
from ehcgen.services.section_generator import SectionGenerator
from ehcgen.services.template_engine import TemplateEngine

TODAY = date(2025, 11, 9)

ASD_PAYLOAD: Dict[str, Any] = {
    "child": {
        "id": "child-001",
        "firstName": "Sam",
        "lastName": "Taylor",
        "dateOfBirth": "2015-03-14",
        "gender": "male",
        "primaryDiagnosis": "Autism Spectrum Disorder",
        "secondaryDiagnoses": ["Sensory processing difficulties"],
        "currentNeeds": ["Social communication", "Managing transitions"],
        "strengths": ["Visual memory", "Interest in trains"],
        "challenges": ["Noisy environments"],
        "currentSupport": ["Visual timetable"],
        "yearGroup": "Year 5",
        "schoolType": "Mainstream primary",
    },
    "assessments": [
        {
            "assessmentType": "Educational Psychology",
            "assessor": "Dr A. Patel",
            "assessmentDate": "2025-09-01",
            "keyFindings": ["Strong visual reasoning", "Difficulty with verbal instructions"],
            "recommendations": ["Visual supports", "Small-group social skills work"],
            "scores": {"verbal_comprehension": 82, "visual_spatial": 118},
        }
    ],
    "parentInput": {
        "childViews": "I like trains and drawing. The hall is too loud.",
        "parentViews": "Sam is happy at home but anxious before school.",
        "homeEnvironment": "Lives with both parents and a younger sister.",
        "aspirations": "To make friends and move to secondary school confidently.",
        "concerns": "Transition to secondary school.",
    },
    "currentProvision": ["Teaching assistant support 10 hours per week"],
    "localAuthority": "Leeds City Council",
    "urgencyLevel": "standard",
    "planType": "initial",
}


def asd_payload(**overrides: Any) -> Dict[str, Any]:
    payload = copy.deepcopy(ASD_PAYLOAD)
    payload.update(overrides)
    return payload


def make_context(payload: Optional[Dict[str, Any]] = None) -> PlanGenerationContext:
    assembler = ContextAssembler(today=lambda: TODAY)
    return assembler.assemble_from_payload(payload or asd_payload())


def sequential_ids() -> Callable[[], str]:
    counter = itertools.count(1)
    return lambda: f"OUT-{next(counter)}"


def fast_settings(**overrides: Any) -> PipelineSettings:
    values: Dict[str, Any] = {
        "call_timeout_seconds": 5.0,
        "max_attempts": 2,
        "retry_wait_seconds": 0.0,
        "total_deadline_seconds": 30.0,
        "max_workers": 7,
        "abort_on_section_failure": False,
    }
    values.update(overrides)
    return PipelineSettings(**values)


def build_pipeline(
    llm: Any,
    *,
    settings: Optional[PipelineSettings] = None,
    id_factory: Optional[Callable[[], str]] = None,
    clock: Optional[Callable[[], float]] = None,
) -> PlanPipeline:
    engine = TemplateEngine(today=lambda: TODAY)
    prompts = PromptService(known_placeholders=engine.known_placeholders)
    extra: Dict[str, Any] = {"clock": clock} if clock is not None else {}
    return PlanPipeline(
        ContextAssembler(today=lambda: TODAY),
        SectionGenerator(llm, prompts, engine),
        OutcomeSynthesizer(llm, prompts, engine, id_factory=id_factory or sequential_ids()),
        ProvisionSynthesizer(llm, prompts, engine),
        ComplianceEvaluator(llm, prompts, engine),
        settings=settings or fast_settings(),
        model_identifier="test/model",
        sleep=lambda _: None,
        **extra,
    )


__all__ = [
    "ASD_PAYLOAD",
    "TODAY",
    "asd_payload",
    "build_pipeline",
    "fast_settings",
    "make_context",
    "sequential_ids",
]
