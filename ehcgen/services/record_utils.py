"""Coercion helpers for records parsed from model JSON.

Updates:
    v0.1.0 - 2025-11-09 - Shared string, list, number, and date coercion.
    v0.1.1 - 2026-10-19 - Dates followed by anything but a valid time part are rejected.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Optional, Tuple


def coerce_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value).strip()


def coerce_list(value: Any) -> Tuple[str, ...]:
    if isinstance(value, list):
        return tuple(str(item).strip() for item in value if str(item).strip())
    if isinstance(value, str):
        return tuple(segment.strip() for segment in value.split("\n") if segment.strip())
    return ()


def coerce_number(value: Any) -> float:
    """Return ``value`` as a non-negative float; anything unusable becomes 0."""

    if isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.replace(",", "").replace("£", "").strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number or number < 0:  # NaN or negative
        return 0.0
    return number


def coerce_optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "y", "1"}
    if isinstance(value, (int, float)):
        return value != 0
    return False


def prompt_json(payload: Any) -> str:
    """Serialise ``payload`` for embedding in a prompt."""

    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)


def parse_date(value: Any) -> Optional[date]:
    """Parse ISO dates and datetimes; return ``None`` when not a date."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        if text[10:11] in ("T", " "):
            if text[-1] in "Zz":
                text = text[:-1] + "+00:00"
            return datetime.fromisoformat(text).date()
    except ValueError:
        return None
    return None
