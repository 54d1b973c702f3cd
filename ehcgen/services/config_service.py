"""Configuration service for the EHC plan generator.

Updates:
    v0.1.1 - 2025-11-09 - Added pipeline settings for timeouts, retries, and deadlines.
    v0.1.0 - 2025-11-09 - Added module and method docstrings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..core.config_loader import ConfigLoader


@dataclass(slots=True, frozen=True)
class WorkflowModelConfig:
    """Stage-specific model parameters."""

    workflow: str
    model: str
    temperature: float | None = None
    provider: str | None = None
    max_tokens: int | None = None


@dataclass(slots=True, frozen=True)
class PipelineSettings:
    """Timeout, retry, and concurrency limits for one generation run."""

    call_timeout_seconds: float = 60.0
    max_attempts: int = 2
    retry_wait_seconds: float = 1.0
    total_deadline_seconds: float | None = 300.0
    max_workers: int = 7
    abort_on_section_failure: bool = False


class ConfigService:
    """Loads and exposes configuration for generator components."""

    def __init__(self, config_path: Path | None = None) -> None:
        """Initialize configuration caches.

        Args:
            config_path (Path | None): Optional override for the configuration directory.
        """

        self._loader = ConfigLoader(base_path=config_path)
        self._settings = self._loader.load("settings")
        self._models = self._loader.load("models")
        self._providers = self._loader.load("providers")

    @property
    def app_metadata(self) -> dict[str, Any]:
        """Return general application metadata."""
        app_section = self._settings.get("app", {})
        return dict(app_section) if isinstance(app_section, dict) else {}

    @property
    def logging_config(self) -> dict[str, Any]:
        """Return logging configuration settings."""
        logging_section = self._settings.get("logging", {})
        return dict(logging_section) if isinstance(logging_section, dict) else {}

    @property
    def providers(self) -> dict[str, Any]:
        """Return provider configuration registry."""
        provider_section = self._providers.get("providers", {})
        if not isinstance(provider_section, dict):
            return {}
        return {
            name: self._expand_env_values(config)
            for name, config in provider_section.items()
        }

    @property
    def pipeline_settings(self) -> PipelineSettings:
        """Return the pipeline limits, falling back to defaults for missing keys.

        Raises:
            ValueError: If a configured limit is not a positive number.
        """

        section = self._settings.get("pipeline", {})
        if not isinstance(section, dict):
            return PipelineSettings()
        defaults = PipelineSettings()
        deadline = section.get("total_deadline_seconds", defaults.total_deadline_seconds)
        settings = PipelineSettings(
            call_timeout_seconds=float(
                section.get("call_timeout_seconds", defaults.call_timeout_seconds)
            ),
            max_attempts=int(section.get("max_attempts", defaults.max_attempts)),
            retry_wait_seconds=float(
                section.get("retry_wait_seconds", defaults.retry_wait_seconds)
            ),
            total_deadline_seconds=float(deadline) if deadline is not None else None,
            max_workers=int(section.get("max_workers", defaults.max_workers)),
            abort_on_section_failure=bool(
                section.get("abort_on_section_failure", defaults.abort_on_section_failure)
            ),
        )
        if settings.call_timeout_seconds <= 0:
            raise ValueError("pipeline.call_timeout_seconds must be positive.")
        if settings.max_attempts < 1:
            raise ValueError("pipeline.max_attempts must be at least 1.")
        if settings.max_workers < 1:
            raise ValueError("pipeline.max_workers must be at least 1.")
        if settings.total_deadline_seconds is not None and settings.total_deadline_seconds <= 0:
            raise ValueError("pipeline.total_deadline_seconds must be positive.")
        return settings

    def get_workflow_model_config(self, workflow: str) -> WorkflowModelConfig:
        """Return configuration for the requested generation stage.

        Args:
            workflow (str): Name of the stage to retrieve.

        Returns:
            WorkflowModelConfig: Stage-specific model settings.

        Raises:
            KeyError: If the stage configuration is missing.
        """

        workflows = self._models.get("workflows", {})
        defaults = self._models.get("defaults", {})
        data = workflows.get(workflow)

        if not isinstance(data, dict):
            raise KeyError(f"Workflow config not found for '{workflow}'")

        model = data.get("model", defaults.get("model"))
        if not isinstance(model, str) or not model.strip():
            raise ValueError(
                f"Workflow config for '{workflow}' requires a non-empty 'model' value."
            )

        return WorkflowModelConfig(
            workflow=workflow,
            model=model.strip(),
            temperature=data.get("temperature", defaults.get("temperature")),
            provider=data.get("provider", defaults.get("provider")),
            max_tokens=data.get("max_tokens", defaults.get("max_tokens")),
        )

    def iter_workflow_configs(self) -> dict[str, WorkflowModelConfig]:
        """Return mapping of stage names to configuration data."""

        workflows = self._models.get("workflows", {})
        return {name: self.get_workflow_model_config(name) for name in workflows}

    @staticmethod
    def clear_cache() -> None:
        """Clear cached configuration to reflect file updates."""

        ConfigLoader.load.cache_clear()

    @staticmethod
    def _expand_env_values(value: Any, *, current_key: str | None = None) -> Any:
        if isinstance(value, dict):
            return {
                key: ConfigService._expand_env_values(entry, current_key=key)
                for key, entry in value.items()
            }
        if isinstance(value, list):
            return [
                ConfigService._expand_env_values(item, current_key=current_key)
                for item in value
            ]
        if isinstance(value, str) and current_key != "api_key_env":
            return os.path.expandvars(value)
        return value
