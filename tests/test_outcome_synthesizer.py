from __future__ import annotations

import json
from datetime import date

from ehcgen.core.errors import GenerationTransportError
from ehcgen.core.llm_gateway import GenerationResult
from ehcgen.core.models import OutcomeCategory
from ehcgen.services.outcome_synthesizer import OutcomeSynthesizer, new_outcome_id
from ehcgen.services.prompt_service import PromptService
from ehcgen.services.template_engine import TemplateEngine
from tests.helpers.context import TODAY, make_context, sequential_ids
from tests.helpers.llm import ScriptedGenerationService, outcome_records, outcomes_json


def _synthesizer(llm: ScriptedGenerationService, **kwargs) -> OutcomeSynthesizer:
    engine = TemplateEngine(today=lambda: TODAY)
    return OutcomeSynthesizer(llm, PromptService(), engine, **kwargs)


def test_synthesize_builds_outcomes_with_fresh_ids() -> None:
    llm = ScriptedGenerationService({"plan_outcomes": outcomes_json(7)})

    batch = _synthesizer(llm, id_factory=sequential_ids()).synthesize(make_context())

    assert not batch.failed
    assert batch.error is None
    assert batch.tokens_used == 100
    assert [outcome.outcome_id for outcome in batch.outcomes] == [f"OUT-{n}" for n in range(1, 8)]
    first = batch.outcomes[0]
    assert first.category is OutcomeCategory.EDUCATIONAL
    assert first.time_bound_deadline == date(2026, 7, 20)
    assert first.milestones[0].target_date == date(2026, 1, 15)
    assert first.success_criteria == ("Uses timetable", "Reports feeling calm")
    (call,) = llm.calls
    assert call.options.response_format == "json"
    assert "Child: Sam Taylor" in call.user_prompt
    assert '"outcomes"' in call.user_prompt


def test_model_supplied_ids_are_ignored_and_duplicates_avoided() -> None:
    records = outcome_records(2)
    for record in records:
        record["id"] = "OUT-model"
    llm = ScriptedGenerationService({"plan_outcomes": json.dumps(records)})
    ids = iter(["OUT-a", "OUT-a", "OUT-b"])

    batch = _synthesizer(llm, id_factory=lambda: next(ids)).synthesize(make_context())

    assert [outcome.outcome_id for outcome in batch.outcomes] == ["OUT-a", "OUT-b"]


def test_invalid_records_are_dropped() -> None:
    records = outcome_records(3)
    records[0]["category"] = "wellbeing"
    records[1]["title"] = "  "
    records[2]["time_bound_deadline"] = "next summer"
    payload = {"outcomes": [*records, "not an object", 42]}
    llm = ScriptedGenerationService({"plan_outcomes": json.dumps(payload)})

    batch = _synthesizer(llm).synthesize(make_context())

    assert len(batch.outcomes) == 1
    assert batch.outcomes[0].title == "Outcome 3"
    assert batch.outcomes[0].time_bound_deadline is None


def test_non_json_response_degrades_to_empty_batch_with_tokens() -> None:
    llm = ScriptedGenerationService(
        {"plan_outcomes": GenerationResult("Here are some outcomes: be happy.", 412)}
    )

    batch = _synthesizer(llm).synthesize(make_context())

    assert batch.outcomes == ()
    assert batch.tokens_used == 412
    assert not batch.failed
    assert batch.error


def test_client_failure_marks_batch_failed() -> None:
    llm = ScriptedGenerationService({"plan_outcomes": GenerationTransportError("503")})

    batch = _synthesizer(llm).synthesize(make_context())

    assert batch.failed
    assert batch.outcomes == ()
    assert "503" in (batch.error or "")


def test_default_ids_are_unique() -> None:
    ids = {new_outcome_id() for _ in range(200)}

    assert len(ids) == 200
    assert all(outcome_id.startswith("OUT-") for outcome_id in ids)
