"""Immutable records flowing through EHC plan generation.

Updates:
    v0.1.0 - 2025-11-09 - Initial data model for contexts, stage outputs, and plans.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


class UrgencyLevel(str, Enum):
    URGENT = "urgent"
    HIGH = "high"
    STANDARD = "standard"
    LOW = "low"


class PlanType(str, Enum):
    INITIAL = "initial"
    ANNUAL_REVIEW = "annual_review"
    REASSESSMENT = "reassessment"


class SectionType(str, Enum):
    """The six free-text sections drafted for every plan."""

    CHILD_VIEWS = "child_views"
    PARENT_VIEWS = "parent_views"
    EDUCATIONAL_NEEDS = "educational_needs"
    OUTCOMES = "outcomes"
    EDUCATIONAL_PROVISION = "educational_provision"
    HEALTH_PROVISION = "health_provision"

    @property
    def heading(self) -> str:
        return _SECTION_TITLES[self]


_SECTION_TITLES = {
    SectionType.CHILD_VIEWS: "Section A: Views of the Child",
    SectionType.PARENT_VIEWS: "Section A: Views of the Parent/Carer",
    SectionType.EDUCATIONAL_NEEDS: "Section B: Educational Needs",
    SectionType.OUTCOMES: "Section E: Outcomes",
    SectionType.EDUCATIONAL_PROVISION: "Section F: Educational Provision",
    SectionType.HEALTH_PROVISION: "Section G: Health Provision",
}


class OutcomeCategory(str, Enum):
    EDUCATIONAL = "educational"
    INDEPENDENCE = "independence"
    COMMUNICATION = "communication"
    HEALTH = "health"
    COMMUNITY = "community"
    EMPLOYMENT = "employment"


class ProvisionType(str, Enum):
    EDUCATIONAL = "educational"
    HEALTH = "health"
    SOCIAL_CARE = "social_care"
    THERAPY = "therapy"
    EQUIPMENT = "equipment"
    TRANSPORT = "transport"


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def readonly_mapping(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    """Return a read-only copy of ``mapping``."""

    return MappingProxyType(dict(mapping or {}))


@dataclass(slots=True, frozen=True)
class ChildProfile:
    """Identity, diagnoses, and support picture of the child."""

    first_name: str
    last_name: str
    date_of_birth: date
    gender: str = ""
    primary_diagnosis: str = ""
    secondary_diagnoses: frozenset[str] = frozenset()
    current_needs: Tuple[str, ...] = ()
    strengths: Tuple[str, ...] = ()
    challenges: Tuple[str, ...] = ()
    current_support: Tuple[str, ...] = ()
    year_group: Optional[str] = None
    school_type: Optional[str] = None
    child_id: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def age_on(self, today: date) -> int:
        """Return the child's age in whole years on the given day."""

        age = today.year - self.date_of_birth.year
        if (today.month, today.day) < (self.date_of_birth.month, self.date_of_birth.day):
            age -= 1
        return age

    def as_dict(self) -> Dict[str, Any]:
        return {
            "child_id": self.child_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "date_of_birth": self.date_of_birth.isoformat(),
            "gender": self.gender,
            "primary_diagnosis": self.primary_diagnosis,
            "secondary_diagnoses": sorted(self.secondary_diagnoses),
            "current_needs": list(self.current_needs),
            "strengths": list(self.strengths),
            "challenges": list(self.challenges),
            "current_support": list(self.current_support),
            "year_group": self.year_group,
            "school_type": self.school_type,
        }


@dataclass(slots=True, frozen=True)
class AssessmentRecord:
    """A professional assessment with its findings and recommendations."""

    assessment_type: str
    assessor: str
    assessment_date: str
    key_findings: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()
    scores: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    full_report: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "assessment_type": self.assessment_type,
            "assessor": self.assessor,
            "assessment_date": self.assessment_date,
            "key_findings": list(self.key_findings),
            "recommendations": list(self.recommendations),
            "scores": dict(self.scores),
            "full_report": self.full_report,
        }


@dataclass(slots=True, frozen=True)
class ParentInput:
    """Free-text contributions from the parent or carer."""

    child_views: str = ""
    parent_views: str = ""
    home_environment: str = ""
    family_circumstances: str = ""
    aspirations: str = ""
    concerns: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return {
            "child_views": self.child_views,
            "parent_views": self.parent_views,
            "home_environment": self.home_environment,
            "family_circumstances": self.family_circumstances,
            "aspirations": self.aspirations,
            "concerns": self.concerns,
        }


@dataclass(slots=True, frozen=True)
class PlanGenerationContext:
    """Everything a generation run reads. Shared read-only by every stage."""

    child: ChildProfile
    assessments: Tuple[AssessmentRecord, ...]
    parent_input: ParentInput
    current_provision: Tuple[str, ...]
    local_authority: str
    urgency_level: UrgencyLevel
    plan_type: PlanType

    def as_dict(self) -> Dict[str, Any]:
        return {
            "child": self.child.as_dict(),
            "assessments": [record.as_dict() for record in self.assessments],
            "parent_input": self.parent_input.as_dict(),
            "current_provision": list(self.current_provision),
            "local_authority": self.local_authority,
            "urgency_level": self.urgency_level.value,
            "plan_type": self.plan_type.value,
        }


@dataclass(slots=True, frozen=True)
class SectionResult:
    section_type: SectionType
    text: str
    tokens_used: int
    confidence: int

    @property
    def title(self) -> str:
        return self.section_type.heading

    def as_dict(self) -> Dict[str, Any]:
        return {
            "section_type": self.section_type.value,
            "title": self.title,
            "text": self.text,
            "tokens_used": self.tokens_used,
            "confidence": self.confidence,
        }


@dataclass(slots=True, frozen=True)
class Milestone:
    description: str
    target_date: Optional[date] = None

    def as_dict(self) -> Dict[str, Any]:
        return {"description": self.description, "target_date": _iso(self.target_date)}


@dataclass(slots=True, frozen=True)
class Outcome:
    """A SMART outcome with the identifier provisions link to."""

    outcome_id: str
    category: OutcomeCategory
    title: str
    description: str = ""
    specific_detail: str = ""
    measurable_criteria: str = ""
    achievable_rationale: str = ""
    relevant_justification: str = ""
    time_bound_deadline: Optional[date] = None
    success_criteria: Tuple[str, ...] = ()
    baseline_measurement: str = ""
    milestones: Tuple[Milestone, ...] = ()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.outcome_id,
            "category": self.category.value,
            "title": self.title,
            "description": self.description,
            "specific_detail": self.specific_detail,
            "measurable_criteria": self.measurable_criteria,
            "achievable_rationale": self.achievable_rationale,
            "relevant_justification": self.relevant_justification,
            "time_bound_deadline": _iso(self.time_bound_deadline),
            "success_criteria": list(self.success_criteria),
            "baseline_measurement": self.baseline_measurement,
            "milestones": [milestone.as_dict() for milestone in self.milestones],
        }


@dataclass(slots=True, frozen=True)
class Provision:
    """A costed, scheduled service allocated against one or more outcomes."""

    provision_type: ProvisionType
    title: str
    description: str = ""
    service_provider: str = ""
    delivery_method: str = ""
    frequency_description: str = ""
    hours_per_week: float = 0.0
    weeks_per_year: float = 0.0
    group_size: Optional[int] = None
    staff_qualifications_required: Tuple[str, ...] = ()
    linked_outcomes: frozenset[str] = frozenset()
    expected_impact: str = ""
    start_date: Optional[date] = None
    review_frequency: str = ""
    statutory_requirement: bool = False
    annual_cost: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "provision_type": self.provision_type.value,
            "provision_title": self.title,
            "provision_description": self.description,
            "service_provider": self.service_provider,
            "delivery_method": self.delivery_method,
            "frequency_description": self.frequency_description,
            "hours_per_week": self.hours_per_week,
            "weeks_per_year": self.weeks_per_year,
            "group_size": self.group_size,
            "staff_qualifications_required": list(self.staff_qualifications_required),
            "linked_outcomes": sorted(self.linked_outcomes),
            "expected_impact": self.expected_impact,
            "start_date": _iso(self.start_date),
            "review_frequency": self.review_frequency,
            "statutory_requirement": self.statutory_requirement,
            "annual_cost": self.annual_cost,
        }


@dataclass(slots=True, frozen=True)
class ComplianceReport:
    compliance_score: int
    issues: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()
    statutory_requirements_met: Mapping[str, bool] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def fail_safe(cls) -> "ComplianceReport":
        """Return the report used when the review cannot be completed."""

        return cls(
            compliance_score=0,
            issues=("Unable to complete compliance check",),
            recommendations=("Manual review required",),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "compliance_score": self.compliance_score,
            "issues": list(self.issues),
            "recommendations": list(self.recommendations),
            "statutory_requirements_met": dict(self.statutory_requirements_met),
        }


@dataclass(slots=True, frozen=True)
class PlanMetadata:
    model_identifier: str
    generation_time_ms: int
    confidence_score: int
    tokens_used: int
    failed_stages: Tuple[str, ...] = ()
    deadline_exceeded: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "model_identifier": self.model_identifier,
            "generation_time_ms": self.generation_time_ms,
            "confidence_score": self.confidence_score,
            "tokens_used": self.tokens_used,
            "failed_stages": list(self.failed_stages),
            "deadline_exceeded": self.deadline_exceeded,
        }


@dataclass(slots=True, frozen=True)
class GeneratedPlan:
    """Root aggregate returned by a generation run."""

    sections: Mapping[SectionType, SectionResult]
    outcomes: Tuple[Outcome, ...]
    provisions: Tuple[Provision, ...]
    compliance: ComplianceReport
    metadata: PlanMetadata

    def as_dict(self) -> Dict[str, Any]:
        return {
            "sections": {
                section_type.value: result.as_dict()
                for section_type, result in self.sections.items()
            },
            "outcomes": [outcome.as_dict() for outcome in self.outcomes],
            "provisions": [provision.as_dict() for provision in self.provisions],
            "compliance": self.compliance.as_dict(),
            "metadata": self.metadata.as_dict(),
        }
