"""Declarative step table primitives."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class StepStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StepResult:
    """What a step action returns.

    ``success=False`` is handled exactly like a raised ``WorkflowStepError``
    carrying *message* and *retryable*.
    """

    success: bool
    message: str = ""
    retryable: bool = True

    @classmethod
    def ok(cls, message: str = "") -> "StepResult":
        return cls(success=True, message=message)

    @classmethod
    def fail(cls, message: str, retryable: bool = True) -> "StepResult":
        return cls(success=False, message=message, retryable=retryable)


StepAction = Callable[[], Awaitable[StepResult]]


@dataclass(frozen=True)
class WorkflowStep:
    name: str
    action: StepAction
    description: str = ""
    critical: bool = False
    condition: Optional[Callable[[], bool]] = None
    # Failures are logged as a warning and the step is still marked completed.
    warn_on_failure: bool = False

    def applies(self) -> bool:
        return self.condition is None or bool(self.condition())

    @property
    def title(self) -> str:
        return " ".join(part.capitalize() for part in self.name.split("-"))


@dataclass
class StepReport:
    name: str
    status: StepStatus
    message: str = ""
