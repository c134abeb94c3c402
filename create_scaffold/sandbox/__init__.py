"""Restricted execution of template setup scripts."""

from create_scaffold.sandbox.context import SetupContext, SetupOptions, create_context
from create_scaffold.sandbox.executor import (
    DISABLED_MODULES,
    DISABLED_PRIMITIVES,
    SandboxEnvironment,
    SandboxExecutor,
    check_source,
)
from create_scaffold.sandbox.presets import IDE_PRESETS
from create_scaffold.sandbox.tools import SetupTools, create_tools

__all__ = [
    "DISABLED_MODULES",
    "DISABLED_PRIMITIVES",
    "IDE_PRESETS",
    "SandboxEnvironment",
    "SandboxExecutor",
    "SetupContext",
    "SetupOptions",
    "SetupTools",
    "check_source",
    "create_context",
    "create_tools",
]
