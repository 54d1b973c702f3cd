"""Workflow registry and dispatch.

Updates:
    v0.4.0 - 2025-11-09 - Plan workflows; log records carry the workflow name and
        the error class on failure.
    v0.3.0 - 2025-05-09 - Instrumented workflows with structured duration logging.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import Iterable, Protocol


class Workflow(Protocol):
    """Protocol describing the workflow contract."""

    name: str

    def run(self, context: dict) -> dict:
        """Execute the workflow and return a serialisable response.

        Args:
            context (dict): Input data required by the workflow.

        Returns:
            dict: Workflow-specific result payload.
        """

        ...


@dataclass(slots=True)
class Orchestrator:
    workflows: dict[str, Workflow] = field(default_factory=dict)

    _logger = logging.getLogger(__name__)

    @classmethod
    def from_workflows(cls, workflows: Iterable[Workflow]) -> "Orchestrator":
        return cls(workflows={workflow.name: workflow for workflow in workflows})

    def names(self) -> list[str]:
        return sorted(self.workflows)

    def execute(self, workflow_name: str, context: dict) -> dict:
        """Run a registered workflow with the supplied context.

        Args:
            workflow_name (str): Name of the workflow to execute.
            context (dict): Payload passed to the workflow unchanged.

        Returns:
            dict: Output produced by the workflow.

        Raises:
            KeyError: If the workflow name is unknown.
        """

        workflow = self.workflows.get(workflow_name)
        if workflow is None:
            raise KeyError(
                f"Workflow '{workflow_name}' is not registered "
                f"(available: {', '.join(self.names()) or 'none'})."
            )
        started = perf_counter()
        try:
            result = workflow.run(context)
        except Exception as exc:
            self._logger.error(
                "workflow_failed",
                extra={
                    "workflow": workflow_name,
                    "duration_ms": round((perf_counter() - started) * 1000, 2),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            raise

        self._logger.info(
            "workflow_completed",
            extra={
                "workflow": workflow_name,
                "duration_ms": round((perf_counter() - started) * 1000, 2),
                "context_keys": sorted(context.keys()),
            },
        )
        return result

    def register(self, workflow: Workflow) -> None:
        """Register ``workflow`` under its name, replacing any existing entry."""

        self.workflows[workflow.name] = workflow
