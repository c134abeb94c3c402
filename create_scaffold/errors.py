"""Error taxonomy for create-scaffold.

Every failure that reaches the user is a ``ScaffoldError`` carrying a short
message plus optional remediation suggestions.  The CLI prints the
suggestions beneath the message; library callers can inspect them directly.
"""

from __future__ import annotations

from typing import Any


class ScaffoldError(Exception):
    """Base class for all user-facing scaffolding failures."""

    def __init__(
        self,
        message: str,
        suggestions: list[str] | tuple[str, ...] = (),
        technical_details: str | None = None,
    ) -> None:
        self.message = message
        self.suggestions = list(suggestions)
        self.technical_details = technical_details
        super().__init__(message)

    def render(self) -> str:
        """Return the message followed by bulleted suggestions."""
        lines = [self.message]
        if self.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            lines.extend(f"  - {s}" for s in self.suggestions)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "suggestions": self.suggestions,
            "technical_details": self.technical_details,
        }


# ---------------------------------------------------------------------------
# Input / fetch
# ---------------------------------------------------------------------------


class InputValidationError(ScaffoldError):
    """Malformed or unsafe input.  Never retried."""


class AccessError(ScaffoldError):
    """The git remote denied access (authentication or permission)."""


class FetchError(ScaffoldError):
    """Clone failed, timed out, or the cache entry could not be written."""


class CorruptionError(ScaffoldError):
    """A cache entry is unreadable or incomplete."""


# ---------------------------------------------------------------------------
# Sandbox
# ---------------------------------------------------------------------------


class SandboxError(ScaffoldError):
    """Base class for setup-script failures."""


class SandboxContractError(SandboxError):
    """The setup script does not have the required shape."""


class SandboxRuntimeError(SandboxError):
    """The setup script raised, timed out, or touched a disabled primitive."""


class ContextValidationError(ScaffoldError):
    """The setup context could not be built from the supplied values."""

    def __init__(self, message: str, field: str = "") -> None:
        self.field = field
        super().__init__(message)


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


class WorkflowStepError(ScaffoldError):
    """A workflow step reported failure."""

    def __init__(
        self,
        step: str,
        message: str,
        retryable: bool = True,
        suggestions: list[str] | tuple[str, ...] = (),
    ) -> None:
        self.step = step
        self.retryable = retryable
        super().__init__(message, suggestions=suggestions)


class WorkflowAbortedByUser(ScaffoldError):
    """The operator chose to abort after a step failure."""

    def __init__(self, step: str) -> None:
        self.step = step
        super().__init__(f"Workflow aborted by user at step '{step}'")
