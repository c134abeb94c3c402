"""Resumable project-creation workflow."""

from create_scaffold.workflow.orchestrator import (
    WorkflowOrchestrator,
    WorkflowResult,
    parse_options,
)
from create_scaffold.workflow.preview import ScaffoldPlan, build_plan
from create_scaffold.workflow.prompts import ConsolePrompt, PromptAdapter
from create_scaffold.workflow.selection import (
    build_selection_record,
    derive_flags,
    feature_violations,
    gate_violations,
    validate_selection,
)
from create_scaffold.workflow.state import StatePersistence, WorkflowState
from create_scaffold.workflow.steps import StepReport, StepResult, StepStatus, WorkflowStep

__all__ = [
    "ConsolePrompt",
    "PromptAdapter",
    "ScaffoldPlan",
    "StatePersistence",
    "StepReport",
    "StepResult",
    "StepStatus",
    "WorkflowOrchestrator",
    "WorkflowResult",
    "WorkflowState",
    "WorkflowStep",
    "build_plan",
    "build_selection_record",
    "derive_flags",
    "feature_violations",
    "gate_violations",
    "parse_options",
    "validate_selection",
]
