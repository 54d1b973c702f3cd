"""Prompt loading utilities.

Updates:
    v0.3.0 - 2025-11-09 - Versioned registry entries declaring required placeholders,
        validated when the registry loads.
    v0.2.0 - 2025-11-09 - Initial implementation of prompt registry loader.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Tuple

import yaml

from ..core.errors import TemplateError
from .template_engine import TemplateEngine

PACKAGE_PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts"


@dataclass(slots=True, frozen=True)
class PromptTemplate:
    """A named prompt and the placeholders it declares."""

    name: str
    text: str
    version: str
    requires: Tuple[str, ...]
    path: Path


class PromptService:
    """Loads prompt templates defined in the registry file."""

    def __init__(
        self,
        base_path: Path | None = None,
        *,
        known_placeholders: Iterable[str] | None = None,
    ) -> None:
        """Initialize the service and read the prompt registry.

        Args:
            base_path (Path | None): Optional override for the prompts directory.
            known_placeholders (Iterable[str] | None): Placeholder names the template
                engine can resolve; declared requirements outside this set are rejected.

        Raises:
            FileNotFoundError: If the registry or a registered prompt file is missing.
            ValueError: If the registry is malformed or a template does not use a
                placeholder it declares.
        """

        env_path = os.environ.get("EHCGEN_PROMPTS_PATH")
        resolved_path = base_path or (Path(env_path) if env_path else PACKAGE_PROMPTS_PATH)
        self._base_path = resolved_path.resolve()
        if not self._base_path.exists():
            raise FileNotFoundError(f"Prompt directory not found: {self._base_path}")

        self._registry_path = self._base_path / "registry.yaml"
        if not self._registry_path.exists():
            raise FileNotFoundError(f"Prompt registry missing: {self._registry_path}")

        self._known = (
            frozenset(known_placeholders)
            if known_placeholders is not None
            else TemplateEngine().known_placeholders
        )
        self._templates = self._load_registry()

    @property
    def registry(self) -> Dict[str, Path]:
        """Return the prompt registry mapping names to file paths."""

        return {name: template.path for name, template in self._templates.items()}

    @property
    def templates(self) -> Dict[str, PromptTemplate]:
        return dict(self._templates)

    def get_prompt(self, name: str) -> str:
        """Return the prompt text associated with the provided name.

        Raises:
            KeyError: If the prompt name does not exist in the registry.
        """

        return self.get_template(name).text

    def get_template(self, name: str) -> PromptTemplate:
        template = self._templates.get(name)
        if template is None:
            raise KeyError(f"Prompt '{name}' is not defined in the registry.")
        return template

    def require(self, names: Iterable[str]) -> None:
        """Fail fast if any of ``names`` is missing from the registry.

        Raises:
            KeyError: Listing every missing prompt name.
        """

        missing = sorted(name for name in names if name not in self._templates)
        if missing:
            raise KeyError(f"Prompt registry is missing: {', '.join(missing)}")

    def _load_registry(self) -> Dict[str, PromptTemplate]:
        """Load, read, and validate every registered template."""

        raw_mapping = yaml.safe_load(self._registry_path.read_text(encoding="utf-8"))
        if raw_mapping is None:
            return {}
        if not isinstance(raw_mapping, dict):
            raise ValueError(
                f"Prompt registry must be a mapping, got {type(raw_mapping).__name__}"
            )

        templates: Dict[str, PromptTemplate] = {}
        for name, entry in raw_mapping.items():
            if not isinstance(name, str):
                raise ValueError(
                    f"Prompt registry keys must be strings, got {type(name).__name__}"
                )
            relative, version, requires = self._parse_entry(name, entry)
            prompt_path = self._resolve_path(relative)
            if not prompt_path.exists():
                raise FileNotFoundError(f"Prompt file not found: {prompt_path}")
            text = prompt_path.read_text(encoding="utf-8")
            self._validate(name, text, requires)
            templates[name] = PromptTemplate(
                name=name,
                text=text,
                version=version,
                requires=requires,
                path=prompt_path,
            )
        return templates

    @staticmethod
    def _parse_entry(name: str, entry: Any) -> Tuple[Any, str, Tuple[str, ...]]:
        if isinstance(entry, (str, os.PathLike)):
            return entry, "1", ()
        if not isinstance(entry, dict):
            raise ValueError(
                "Prompt registry entries must map to a path or a mapping, "
                f"got {type(entry).__name__} for '{name}'"
            )
        relative = entry.get("file")
        if not isinstance(relative, (str, os.PathLike)):
            raise ValueError(f"Prompt registry entry '{name}' requires a 'file' path.")
        requires = entry.get("requires") or []
        if not isinstance(requires, list) or not all(isinstance(item, str) for item in requires):
            raise ValueError(f"Prompt registry entry '{name}' has a non-list 'requires'.")
        return relative, str(entry.get("version", "1")), tuple(requires)

    def _resolve_path(self, relative: Any) -> Path:
        prompt_path = Path(relative)
        if prompt_path.is_absolute():
            return prompt_path
        parts = prompt_path.parts
        if parts and parts[0] == self._base_path.name:
            return self._base_path.joinpath(*parts[1:]).resolve()
        return (self._base_path / prompt_path).resolve()

    def _validate(self, name: str, text: str, requires: Tuple[str, ...]) -> None:
        try:
            used = set(TemplateEngine.placeholders(text))
        except TemplateError as exc:
            raise ValueError(f"Prompt '{name}' has malformed syntax: {exc}") from exc
        unknown = sorted(set(requires) - self._known)
        if unknown:
            raise ValueError(
                f"Prompt '{name}' requires unknown placeholders: {', '.join(unknown)}"
            )
        unused = sorted(set(requires) - used)
        if unused:
            raise ValueError(
                f"Prompt '{name}' declares placeholders it never uses: {', '.join(unused)}"
            )
