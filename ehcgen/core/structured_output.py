"""Fallible parsing of JSON returned by the language-generation service.

Updates:
    v0.1.0 - 2025-11-09 - Tagged parse results replacing parse-or-raise helpers.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Generic, Sequence, TypeVar, Union

from .errors import MalformedStructuredOutputError

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class ParsedOk(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(slots=True, frozen=True)
class ParseFailure:
    reason: str

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        raise MalformedStructuredOutputError(self.reason)


ParseResult = Union[ParsedOk[T], ParseFailure]


def strip_code_fence(response: str) -> str:
    """Remove a surrounding markdown code fence from a model response."""

    cleaned = response.strip()
    if cleaned.startswith("```"):
        parts = cleaned.split("\n", 1)
        cleaned = parts[1] if len(parts) > 1 else ""
        if cleaned.endswith("```"):
            cleaned = cleaned.rsplit("```", 1)[0].strip()
    return cleaned


def parse_json_object(response: str) -> ParseResult[dict]:
    """Parse ``response`` as a JSON object."""

    try:
        parsed = _loads(response)
        if not isinstance(parsed, dict):
            raise MalformedStructuredOutputError(
                f"expected a JSON object, got {type(parsed).__name__}"
            )
    except MalformedStructuredOutputError as exc:
        return ParseFailure(str(exc))
    return ParsedOk(parsed)


def parse_json_records(response: str, keys: Sequence[str]) -> ParseResult[list]:
    """Parse ``response`` as a list of records.

    The list may be the top-level value or sit under the first of ``keys``
    present in a top-level object.

    Args:
        response (str): Raw text returned by the model.
        keys (Sequence[str]): Object keys that may hold the record list.

    Returns:
        ParsedOk | ParseFailure: The record list or the reason parsing failed.
    """

    try:
        parsed = _loads(response)
        if isinstance(parsed, dict):
            parsed = _first_list(parsed, keys)
        if not isinstance(parsed, list):
            raise MalformedStructuredOutputError(
                f"expected a JSON array, got {type(parsed).__name__}"
            )
    except MalformedStructuredOutputError as exc:
        return ParseFailure(str(exc))
    return ParsedOk(parsed)


def _loads(response: str) -> Any:
    cleaned = strip_code_fence(response or "")
    if not cleaned:
        raise MalformedStructuredOutputError("empty response")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedStructuredOutputError(f"invalid JSON: {exc.msg}") from exc


def _first_list(payload: dict, keys: Sequence[str]) -> Any:
    for key in keys:
        if key in payload:
            return payload[key]
    raise MalformedStructuredOutputError(
        f"JSON object has none of the keys {', '.join(keys)}"
    )
