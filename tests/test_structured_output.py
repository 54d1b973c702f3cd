from __future__ import annotations

import pytest

from ehcgen.core.errors import MalformedStructuredOutputError
from ehcgen.core.structured_output import (
    ParsedOk,
    ParseFailure,
    parse_json_object,
    parse_json_records,
    strip_code_fence,
)


def test_strip_code_fence_unwraps_markdown() -> None:
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence("  plain  ") == "plain"


def test_parse_json_object_success() -> None:
    result = parse_json_object('```\n{"compliance_score": 90}\n```')

    assert isinstance(result, ParsedOk)
    assert result.ok
    assert result.unwrap() == {"compliance_score": 90}


@pytest.mark.parametrize("response", ["", "not json", "[1, 2]", "{broken"])
def test_parse_json_object_failure(response: str) -> None:
    result = parse_json_object(response)

    assert isinstance(result, ParseFailure)
    assert not result.ok
    with pytest.raises(MalformedStructuredOutputError):
        result.unwrap()


def test_parse_json_records_accepts_top_level_list_or_key() -> None:
    assert parse_json_records('[{"a": 1}]', ("outcomes",)).unwrap() == [{"a": 1}]
    assert parse_json_records('{"outcomes": [{"a": 2}]}', ("outcomes",)).unwrap() == [{"a": 2}]
    assert parse_json_records('{"provision": []}', ("provisions", "provision")).unwrap() == []


@pytest.mark.parametrize(
    "response",
    ['{"items": []}', '{"outcomes": {"a": 1}}', '"text"', "I cannot help with that."],
)
def test_parse_json_records_failure(response: str) -> None:
    result = parse_json_records(response, ("outcomes",))

    assert isinstance(result, ParseFailure)
    assert result.reason
