"""Assembly and validation of the generation context.

Updates:
    v0.1.0 - 2025-11-09 - Initial assembler accepting model instances or raw mappings.
    v0.1.1 - 2026-10-19 - Datetime dates of birth are compared and stored as plain dates.
"""

from __future__ import annotations

import dataclasses
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Tuple, Union

from ..core.errors import ValidationError
from ..core.models import (
    AssessmentRecord,
    ChildProfile,
    ParentInput,
    PlanGenerationContext,
    PlanType,
    UrgencyLevel,
    readonly_mapping,
)
from .record_utils import parse_date

ChildLike = Union[ChildProfile, Mapping[str, Any]]
AssessmentLike = Union[AssessmentRecord, Mapping[str, Any]]
ParentInputLike = Union[ParentInput, Mapping[str, Any], None]


def _pick(data: Mapping[str, Any], name: str, default: Any = None) -> Any:
    """Read ``name`` from snake_case or camelCase keys."""

    if name in data:
        return data[name]
    head, *rest = name.split("_")
    camel = head + "".join(part.capitalize() for part in rest)
    return data.get(camel, default)


def _strings(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value.strip(),) if value.strip() else ()
    if isinstance(value, Iterable):
        return tuple(str(item).strip() for item in value if str(item).strip())
    return (str(value),)


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class ContextAssembler:
    """Builds immutable :class:`PlanGenerationContext` values."""

    def __init__(self, today: Callable[[], date] = date.today) -> None:
        self._today = today

    def assemble(
        self,
        child: ChildLike,
        assessments: Sequence[AssessmentLike],
        parent_input: ParentInputLike,
        current_provision: Sequence[str],
        local_authority: str,
        urgency_level: Union[UrgencyLevel, str],
        plan_type: Union[PlanType, str],
    ) -> PlanGenerationContext:
        """Validate the inputs and assemble the context.

        Args:
            child (ChildProfile | Mapping): Child profile or its raw mapping.
            assessments (Sequence): Assessment records in the order prompts should list them.
            parent_input (ParentInput | Mapping | None): Parent/carer contributions.
            current_provision (Sequence[str]): Provision already in place.
            local_authority (str): Responsible local authority.
            urgency_level (UrgencyLevel | str): One of urgent, high, standard, low.
            plan_type (PlanType | str): One of initial, annual_review, reassessment.

        Returns:
            PlanGenerationContext: The validated, read-only context.

        Raises:
            ValidationError: If any input violates the context invariants.
        """

        context = PlanGenerationContext(
            child=self._child(child),
            assessments=tuple(self._assessment(entry, idx) for idx, entry in enumerate(assessments or ())),
            parent_input=self._parent_input(parent_input),
            current_provision=_strings(current_provision),
            local_authority=(local_authority or "").strip() if isinstance(local_authority, str) else "",
            urgency_level=self._enum(UrgencyLevel, urgency_level, "urgency_level"),
            plan_type=self._enum(PlanType, plan_type, "plan_type"),
        )
        return self.validate(context)

    def assemble_from_payload(self, payload: Mapping[str, Any]) -> PlanGenerationContext:
        """Assemble a context from one mapping as received from the API layer."""

        if not isinstance(payload, Mapping):
            raise ValidationError("Context payload must be a mapping.")
        child = payload.get("child")
        if child is None:
            raise ValidationError("Context payload missing 'child'.")
        return self.assemble(
            child=child,
            assessments=payload.get("assessments") or [],
            parent_input=_pick(payload, "parent_input"),
            current_provision=_pick(payload, "current_provision") or [],
            local_authority=_pick(payload, "local_authority", ""),
            urgency_level=_pick(payload, "urgency_level", UrgencyLevel.STANDARD.value),
            plan_type=_pick(payload, "plan_type", ""),
        )

    def validate(self, context: PlanGenerationContext) -> PlanGenerationContext:
        """Re-check the invariants of an assembled context and return it unchanged.

        Raises:
            ValidationError: If an invariant does not hold.
        """

        dob = context.child.date_of_birth
        if not isinstance(dob, date):
            raise ValidationError("child.date_of_birth must be a date.")
        if isinstance(dob, datetime):
            dob = dob.date()
        if dob >= self._today():
            raise ValidationError(
                f"child.date_of_birth must be in the past, got {dob.isoformat()}."
            )
        if not isinstance(context.urgency_level, UrgencyLevel):
            raise ValidationError(f"Unknown urgency_level: {context.urgency_level!r}.")
        if not isinstance(context.plan_type, PlanType):
            raise ValidationError(f"Unknown plan_type: {context.plan_type!r}.")
        if not context.local_authority or not context.local_authority.strip():
            raise ValidationError("local_authority must not be empty.")
        return context

    def _child(self, child: ChildLike) -> ChildProfile:
        if isinstance(child, ChildProfile):
            if isinstance(child.date_of_birth, datetime):
                return dataclasses.replace(child, date_of_birth=child.date_of_birth.date())
            return child
        if not isinstance(child, Mapping):
            raise ValidationError("child must be a ChildProfile or a mapping.")
        raw_dob = _pick(child, "date_of_birth")
        dob = parse_date(raw_dob)
        if dob is None:
            raise ValidationError(f"child.date_of_birth does not parse: {raw_dob!r}.")
        return ChildProfile(
            first_name=str(_pick(child, "first_name", "") or "").strip(),
            last_name=str(_pick(child, "last_name", "") or "").strip(),
            date_of_birth=dob,
            gender=str(_pick(child, "gender", "") or "").strip(),
            primary_diagnosis=str(_pick(child, "primary_diagnosis", "") or "").strip(),
            secondary_diagnoses=frozenset(_strings(_pick(child, "secondary_diagnoses"))),
            current_needs=_strings(_pick(child, "current_needs")),
            strengths=_strings(_pick(child, "strengths")),
            challenges=_strings(_pick(child, "challenges")),
            current_support=_strings(_pick(child, "current_support")),
            year_group=_optional_text(_pick(child, "year_group")),
            school_type=_optional_text(_pick(child, "school_type")),
            child_id=_optional_text(_pick(child, "id") or _pick(child, "child_id")),
        )

    @staticmethod
    def _assessment(entry: AssessmentLike, index: int) -> AssessmentRecord:
        if isinstance(entry, AssessmentRecord):
            return entry
        if not isinstance(entry, Mapping):
            raise ValidationError(f"assessments[{index}] must be a mapping.")
        scores = _pick(entry, "scores") or {}
        if not isinstance(scores, Mapping):
            raise ValidationError(f"assessments[{index}].scores must be a mapping.")
        assessment_date = _pick(entry, "assessment_date", "")
        if isinstance(assessment_date, date):
            assessment_date = assessment_date.isoformat()
        return AssessmentRecord(
            assessment_type=str(_pick(entry, "assessment_type", "") or "").strip(),
            assessor=str(_pick(entry, "assessor", "") or "").strip(),
            assessment_date=str(assessment_date or ""),
            key_findings=_strings(_pick(entry, "key_findings")),
            recommendations=_strings(_pick(entry, "recommendations")),
            scores=readonly_mapping(scores),
            full_report=_optional_text(_pick(entry, "full_report")),
        )

    @staticmethod
    def _parent_input(parent_input: ParentInputLike) -> ParentInput:
        if isinstance(parent_input, ParentInput):
            return parent_input
        if parent_input is None:
            return ParentInput()
        if not isinstance(parent_input, Mapping):
            raise ValidationError("parent_input must be a ParentInput or a mapping.")
        return ParentInput(
            **{
                name: str(_pick(parent_input, name, "") or "").strip()
                for name in (
                    "child_views",
                    "parent_views",
                    "home_environment",
                    "family_circumstances",
                    "aspirations",
                    "concerns",
                )
            }
        )

    @staticmethod
    def _enum(enum_cls: Any, value: Any, field_name: str) -> Any:
        if isinstance(value, enum_cls):
            return value
        try:
            return enum_cls(str(value).strip().lower())
        except ValueError as exc:
            allowed = ", ".join(member.value for member in enum_cls)
            raise ValidationError(
                f"{field_name} must be one of {allowed}; got {value!r}."
            ) from exc
