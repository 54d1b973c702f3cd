"""Utility helpers shared across CLI command modules."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import typer
import yaml

logger = logging.getLogger(__name__)


def _cli():
    return sys.modules["ehcgen.cli"]


def apply_log_override(log_level: Optional[str]) -> None:
    """Override logging level for the current invocation."""

    if not log_level or not isinstance(log_level, str):
        return
    try:
        _cli().set_runtime_level(log_level)
        logger.info("Log level overridden to %s", log_level.upper())
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def load_document(path: Path) -> dict[str, Any]:
    """Load a JSON or YAML mapping from ``path``.

    Raises:
        typer.BadParameter: If the file is missing, unreadable, or not a mapping.
    """

    if not path.exists():
        raise typer.BadParameter(f"File not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise typer.BadParameter(f"Could not parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} must contain a mapping at the top level.")
    return data


__all__ = ["apply_log_override", "load_document"]
