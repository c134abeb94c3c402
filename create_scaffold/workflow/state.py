"""Persisted, resumable workflow state.

The state file lives inside the project directory while a run is in
progress and is removed by the finalization step.  A later run against the
same directory picks it up and skips the steps already completed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from create_scaffold.log import get_logger
from create_scaffold.utils import load_json, save_json

STATE_VERSION = "1.0"

logger = get_logger("workflow.state")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StepErrorRecord(BaseModel):
    step: str
    error: str
    timestamp: str = Field(default_factory=utc_now)


class StepProgress(BaseModel):
    """Zero-based index of the current step out of *total* steps."""

    index: int = 0
    total: int = 0


class WorkflowState(BaseModel):
    """Everything a resumed run needs to know about the previous one."""

    version: str = STATE_VERSION
    start_time: str = Field(default_factory=utc_now)
    end_time: Optional[str] = None
    current_step: str = "initialization"
    progress: StepProgress = Field(default_factory=StepProgress)
    completed_steps: list[str] = Field(default_factory=list)
    failed_steps: list[str] = Field(default_factory=list)
    skipped_steps: list[str] = Field(default_factory=list)
    retry_count: int = 0
    project_directory: str = ""
    template_name: str = ""
    repo_url: Optional[str] = None
    branch_name: Optional[str] = None
    options: dict[str, Any] = Field(default_factory=dict)
    placeholders: dict[str, str] = Field(default_factory=dict)
    dimension_selections: dict[str, Any] = Field(default_factory=dict)
    errors: list[StepErrorRecord] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    final_status: Optional[str] = None
    resumed: bool = False

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def should_run(self, step: str) -> bool:
        """Completed steps are skipped unless they are also marked failed."""
        return step not in self.completed_steps or step in self.failed_steps

    def mark_completed(self, step: str) -> None:
        if step not in self.completed_steps:
            self.completed_steps.append(step)
        if step in self.failed_steps:
            self.failed_steps.remove(step)
        if step in self.skipped_steps:
            self.skipped_steps.remove(step)

    def mark_failed(self, step: str, message: str) -> None:
        self.errors.append(StepErrorRecord(step=step, error=message))
        if step in self.completed_steps:
            self.completed_steps.remove(step)
        if step not in self.failed_steps:
            self.failed_steps.append(step)

    def mark_skipped(self, step: str) -> None:
        if step not in self.skipped_steps:
            self.skipped_steps.append(step)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)


class StatePersistence:
    """Reads and writes :class:`WorkflowState` as JSON.

    Once :meth:`close` has been called every further :meth:`save` is a no-op,
    so nothing recreates the file after finalization removed it.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.closed = False

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> WorkflowState | None:
        if not self.path.is_file():
            return None
        try:
            state = WorkflowState.model_validate(load_json(self.path))
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("Ignoring unreadable workflow state %s: %s", self.path, exc)
            return None
        state.resumed = True
        return state

    async def save(self, state: WorkflowState) -> None:
        if self.closed:
            return
        try:
            await save_json(state.model_dump(mode="json"), self.path)
        except OSError as exc:
            logger.warning("Could not save workflow state to %s: %s", self.path, exc)

    def delete(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def close(self) -> None:
        self.closed = True
