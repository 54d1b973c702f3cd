"""Prompt template rendering against a generation context.

Updates:
    v0.1.0 - 2025-11-09 - Initial placeholder renderer with brace escaping.
"""

from __future__ import annotations

import json
import re
from datetime import date
from typing import Callable, Dict, List, Optional

from ..core.errors import TemplateError
from ..core.models import PlanGenerationContext

_TOKEN = re.compile(r"\{\{|\}\}|\{([A-Za-z_][A-Za-z0-9_]*)\}|[{}]")
_NOT_SPECIFIED = "Not specified"


def _join(values) -> str:
    items = [value for value in values if value]
    return ", ".join(items) if items else _NOT_SPECIFIED


def _text(value: Optional[str]) -> str:
    return value.strip() if value and value.strip() else _NOT_SPECIFIED


def _assessment_summary(context: PlanGenerationContext) -> str:
    if not context.assessments:
        return "No assessments provided"
    return "\n".join(
        f"{record.assessment_type} by {record.assessor}: {', '.join(record.key_findings)}"
        for record in context.assessments
    )


def _assessment_recommendations(context: PlanGenerationContext) -> str:
    return _join(
        recommendation
        for record in context.assessments
        for recommendation in record.recommendations
    )


class TemplateEngine:
    """Resolves ``{name}`` placeholders from a :class:`PlanGenerationContext`.

    ``{{`` and ``}}`` render as literal braces. Unknown placeholders are left
    as written. A brace that opens or closes nothing raises
    :class:`TemplateError`.
    """

    def __init__(self, today: Callable[[], date] = date.today) -> None:
        self._today = today
        self._resolvers: Dict[str, Callable[[PlanGenerationContext], str]] = {
            "childProfile": lambda ctx: json.dumps(ctx.child.as_dict(), ensure_ascii=False),
            "childName": lambda ctx: ctx.child.full_name,
            "childAge": lambda ctx: str(ctx.child.age_on(self._today())),
            "parentInput": lambda ctx: json.dumps(ctx.parent_input.as_dict(), ensure_ascii=False),
            "assessmentData": lambda ctx: json.dumps(
                [record.as_dict() for record in ctx.assessments], ensure_ascii=False
            ),
            "assessmentSummary": _assessment_summary,
            "currentSetting": lambda ctx: _text(ctx.child.school_type),
            "localAuthority": lambda ctx: ctx.local_authority,
            "identifiedNeeds": lambda ctx: _join(ctx.child.current_needs),
            "educationalNeeds": lambda ctx: _join(ctx.child.current_needs + ctx.child.challenges),
            "healthNeeds": lambda ctx: _join(
                [ctx.child.primary_diagnosis, *sorted(ctx.child.secondary_diagnoses)]
            ),
            "currentHealthSupport": lambda ctx: _join(ctx.child.current_support),
            "currentProvision": lambda ctx: _join(ctx.current_provision),
            "parentAspirations": lambda ctx: _text(ctx.parent_input.aspirations),
            "assessmentRecommendations": _assessment_recommendations,
            "urgencyLevel": lambda ctx: ctx.urgency_level.value,
            "planType": lambda ctx: ctx.plan_type.value.replace("_", " "),
        }

    @property
    def known_placeholders(self) -> frozenset[str]:
        return frozenset(self._resolvers)

    def render(self, template: str, context: PlanGenerationContext) -> str:
        """Substitute every known placeholder in ``template``.

        Args:
            template (str): Template text using ``{name}`` placeholders.
            context (PlanGenerationContext): Context supplying the values.

        Returns:
            str: Rendered prompt text.

        Raises:
            TemplateError: If the template contains an unmatched brace.
        """

        values: Dict[str, str] = {}

        def substitute(match: re.Match[str]) -> str:
            token = match.group(0)
            if token == "{{":
                return "{"
            if token == "}}":
                return "}"
            name = match.group(1)
            if name is None:
                raise TemplateError(
                    f"Unmatched '{token}' at offset {match.start()} in template."
                )
            resolver = self._resolvers.get(name)
            if resolver is None:
                return token
            if name not in values:
                values[name] = resolver(context)
            return values[name]

        return _TOKEN.sub(substitute, template)

    @staticmethod
    def placeholders(template: str) -> List[str]:
        """Return placeholder names used in ``template`` in order of first use.

        Raises:
            TemplateError: If the template contains an unmatched brace.
        """

        names: List[str] = []
        for match in _TOKEN.finditer(template):
            token = match.group(0)
            if token in ("{{", "}}"):
                continue
            name = match.group(1)
            if name is None:
                raise TemplateError(
                    f"Unmatched '{token}' at offset {match.start()} in template."
                )
            if name not in names:
                names.append(name)
        return names
